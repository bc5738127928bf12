"""
Expense, expense recurrence and budget models.
"""
import enum
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from todo_api.core.database import Base
from todo_api.models.recurrence import RecurrenceRuleMixin


class ExpenseType(str, enum.Enum):
    REGULAR = "regular"
    INCOME = "income"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    category = Column(String(100), nullable=True, index=True)
    payment_method = Column(String(100), nullable=True)
    expense_type = Column(SQLEnum(ExpenseType, values_callable=lambda x: [e.value for e in x]), default=ExpenseType.REGULAR, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    # Set on occurrences generated from a recurring expense
    source_expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User")
    recurrence = relationship("ExpenseRecurrence", back_populates="expense", uselist=False, cascade="all, delete-orphan")


class ExpenseRecurrence(RecurrenceRuleMixin, Base):
    __tablename__ = "expense_recurrences"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    version_id = Column(Integer, nullable=False, default=1)

    expense = relationship("Expense", back_populates="recurrence")

    __mapper_args__ = {"version_id_col": version_id}
    owner_fk = "expense_id"

    @property
    def owner_id(self) -> int:
        return self.expense_id

    @property
    def owner(self):
        return self.expense


class BudgetPeriod(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # Matches Expense.category; NULL budgets cover all spending
    category = Column(String(100), nullable=True, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    period = Column(SQLEnum(BudgetPeriod, values_callable=lambda x: [e.value for e in x]), default=BudgetPeriod.MONTHLY, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User")
