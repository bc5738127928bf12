"""
Todo task models: tasks, their recurrence rule, and the per-user
categories, tags, notes and reminders that organise them.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Table, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from todo_api.core.database import Base
from todo_api.models.recurrence import RecurrenceRuleMixin


task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("todo_tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class TaskStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TodoTask(Base):
    __tablename__ = "todo_tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(SQLEnum(TaskPriority, values_callable=lambda x: [e.value for e in x]), default=TaskPriority.MEDIUM, nullable=False)
    status = Column(SQLEnum(TaskStatus, values_callable=lambda x: [e.value for e in x]), default=TaskStatus.NOT_STARTED, nullable=False)
    category_id = Column(Integer, ForeignKey("task_categories.id", ondelete="SET NULL"), nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    # Set on occurrences generated from a recurring task
    source_task_id = Column(Integer, ForeignKey("todo_tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User")
    recurrence = relationship("TaskRecurrence", back_populates="task", uselist=False, cascade="all, delete-orphan")
    category = relationship("TaskCategory", back_populates="tasks")
    tags = relationship("Tag", secondary=task_tags, back_populates="tasks")
    notes = relationship("TodoNote", back_populates="task", cascade="all, delete-orphan", order_by="TodoNote.id")
    reminders = relationship("TaskReminder", back_populates="task", cascade="all, delete-orphan", order_by="TaskReminder.reminder_time")


class TaskRecurrence(RecurrenceRuleMixin, Base):
    __tablename__ = "task_recurrences"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("todo_tasks.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    version_id = Column(Integer, nullable=False, default=1)

    task = relationship("TodoTask", back_populates="recurrence")

    __mapper_args__ = {"version_id_col": version_id}
    owner_fk = "task_id"

    @property
    def owner_id(self) -> int:
        return self.task_id

    @property
    def owner(self):
        return self.task


class TaskCategory(Base):
    __tablename__ = "task_categories"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_task_category_user_name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(7), nullable=True)  # "#RRGGBB"
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tasks = relationship("TodoTask", back_populates="category")


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)

    tasks = relationship("TodoTask", secondary=task_tags, back_populates="tags")


class TodoNote(Base):
    __tablename__ = "todo_notes"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("todo_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    task = relationship("TodoTask", back_populates="notes")


class TaskReminder(Base):
    __tablename__ = "task_reminders"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("todo_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_time = Column(DateTime(timezone=True), nullable=False, index=True)
    is_sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    task = relationship("TodoTask", back_populates="reminders")
