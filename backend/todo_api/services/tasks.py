"""
Todo task service.

Tasks belong to one user; every lookup is scoped by user_id so a user can
never read or change another user's task. A recurring task keeps one
TaskRecurrence row and spawns non-recurring copies when occurrences fall due.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from todo_api.core.config import RECURRENCE_MAX_RETRIES
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.recurrence import RecurrenceType
from todo_api.models.task import TodoTask, TaskRecurrence, TaskStatus, TaskPriority, Tag
from todo_api.services.categories import get_category
from todo_api.services.clock import ensure_utc
from todo_api.services.recurrence import Recurring, RecurrenceRule, default_cron_evaluator

logger = logging.getLogger(__name__)


def materialize_task_occurrence(db: Session, rule: TaskRecurrence, occurrence_date: datetime) -> TodoTask:
    """Create the task instance for one occurrence (flushed, not committed)."""
    source = rule.task
    occurrence = TodoTask(
        user_id=source.user_id,
        title=source.title,
        description=source.description,
        priority=source.priority,
        status=TaskStatus.NOT_STARTED,
        category_id=source.category_id,
        due_date=occurrence_date,
        is_recurring=False,
        source_task_id=source.id,
    )
    occurrence.tags = list(source.tags)
    db.add(occurrence)
    db.flush()
    return occurrence


task_recurring = Recurring(
    TaskRecurrence,
    materialize_task_occurrence,
    cron=default_cron_evaluator,
    max_retries=RECURRENCE_MAX_RETRIES,
    name="task",
)


def list_tasks(
    db: Session,
    user_id: Optional[int] = None,
    status: Optional[TaskStatus] = None,
    source_task_id: Optional[int] = None,
    category_id: Optional[int] = None,
    tag_id: Optional[int] = None,
) -> List[TodoTask]:
    """List tasks, newest first. ``user_id=None`` lists every user's tasks (admin view)."""
    query = db.query(TodoTask)
    if user_id is not None:
        query = query.filter(TodoTask.user_id == user_id)
    if status is not None:
        query = query.filter(TodoTask.status == status)
    if source_task_id is not None:
        query = query.filter(TodoTask.source_task_id == source_task_id)
    if category_id is not None:
        query = query.filter(TodoTask.category_id == category_id)
    if tag_id is not None:
        query = query.filter(TodoTask.tags.any(Tag.id == tag_id))
    return query.order_by(TodoTask.created_at.desc(), TodoTask.id.desc()).all()


def get_task(db: Session, task_id: int, user_id: int) -> TodoTask:
    task = db.query(TodoTask).filter(
        TodoTask.id == task_id,
        TodoTask.user_id == user_id
    ).first()
    if not task:
        raise NotFoundError("Task not found")
    return task


def create_task(
    db: Session,
    user_id: int,
    title: str,
    description: Optional[str] = None,
    priority: TaskPriority = TaskPriority.MEDIUM,
    due_date: Optional[datetime] = None,
    category_id: Optional[int] = None,
) -> TodoTask:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if category_id is not None:
        get_category(db, category_id, user_id)

    task = TodoTask(
        user_id=user_id,
        title=title,
        description=description,
        priority=priority,
        status=TaskStatus.NOT_STARTED,
        due_date=ensure_utc(due_date),
        category_id=category_id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Created task {task.id} for user {user_id}")
    return task


def update_task(db: Session, task_id: int, user_id: int, **changes) -> TodoTask:
    """Partial update; only keys present in ``changes`` are applied."""
    task = get_task(db, task_id, user_id)

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise ValidationError("Title is required")
        task.title = title
    if "description" in changes:
        task.description = changes["description"]
    if "priority" in changes and changes["priority"] is not None:
        task.priority = changes["priority"]
    if "due_date" in changes:
        task.due_date = ensure_utc(changes["due_date"])
    if "category_id" in changes:
        category_id = changes["category_id"]
        if category_id is not None:
            get_category(db, category_id, user_id)
        task.category_id = category_id
    if "status" in changes and changes["status"] is not None:
        new_status = TaskStatus(changes["status"])
        if new_status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            task.completed_at = task_recurring.clock.now()
        elif new_status != TaskStatus.COMPLETED:
            task.completed_at = None
        task.status = new_status

    db.commit()
    db.refresh(task)
    logger.info(f"Updated task {task.id}")
    return task


def delete_task(db: Session, task_id: int, user_id: int) -> None:
    task = get_task(db, task_id, user_id)
    db.delete(task)
    db.commit()
    logger.info(f"Deleted task {task_id} (user {user_id})")


def set_task_recurrence(
    db: Session,
    task_id: int,
    user_id: int,
    recurrence_type: RecurrenceType,
    start_date: datetime,
    interval: int = 1,
    end_date: Optional[datetime] = None,
    custom_cron_expression: Optional[str] = None,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> Optional[TaskRecurrence]:
    """Create or replace the task's recurrence rule; type NONE cancels it."""
    task = get_task(db, task_id, user_id)
    rule = RecurrenceRule(
        recurrence_type=RecurrenceType(recurrence_type),
        start_date=ensure_utc(start_date),
        interval=interval,
        end_date=ensure_utc(end_date),
        custom_cron_expression=custom_cron_expression,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
    )
    return task_recurring.set_rule(db, task, rule)


def cancel_task_recurrence(db: Session, task_id: int, user_id: int) -> None:
    task = get_task(db, task_id, user_id)
    task_recurring.cancel(db, task.id)


def process_task_recurrence(db: Session, task_id: int, user_id: int, now: Optional[datetime] = None) -> List[datetime]:
    """Materialize the task's due occurrences now instead of waiting for the sweep."""
    task = get_task(db, task_id, user_id)
    rule = task.recurrence
    if rule is None or not task.is_recurring:
        raise NotFoundError("Task has no recurrence")
    return task_recurring.process_with_retry(db, rule.id, now)
