"""
Expense service.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from todo_api.core.config import RECURRENCE_MAX_RETRIES
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.expense import Expense, ExpenseRecurrence, ExpenseType
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.clock import ensure_utc
from todo_api.services.recurrence import Recurring, RecurrenceRule, default_cron_evaluator

logger = logging.getLogger(__name__)


def materialize_expense_occurrence(db: Session, rule: ExpenseRecurrence, occurrence_date: datetime) -> Expense:
    """Book the expense for one occurrence, dated at the occurrence."""
    source = rule.expense
    occurrence = Expense(
        user_id=source.user_id,
        amount=source.amount,
        description=source.description,
        date=occurrence_date,
        category=source.category,
        payment_method=source.payment_method,
        expense_type=source.expense_type,
        is_recurring=False,
        source_expense_id=source.id,
    )
    db.add(occurrence)
    db.flush()
    return occurrence


expense_recurring = Recurring(
    ExpenseRecurrence,
    materialize_expense_occurrence,
    cron=default_cron_evaluator,
    max_retries=RECURRENCE_MAX_RETRIES,
    name="expense",
)


def _validate_amount(amount) -> Decimal:
    if amount is None:
        raise ValidationError("Amount is required")
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def list_expenses(
    db: Session,
    user_id: int,
    category: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[Expense]:
    query = db.query(Expense).filter(Expense.user_id == user_id)
    if category:
        query = query.filter(Expense.category == category)
    if date_from is not None:
        query = query.filter(Expense.date >= ensure_utc(date_from))
    if date_to is not None:
        query = query.filter(Expense.date <= ensure_utc(date_to))
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def get_expense(db: Session, expense_id: int, user_id: int) -> Expense:
    expense = db.query(Expense).filter(
        Expense.id == expense_id,
        Expense.user_id == user_id
    ).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def create_expense(
    db: Session,
    user_id: int,
    amount,
    date: datetime,
    description: Optional[str] = None,
    category: Optional[str] = None,
    payment_method: Optional[str] = None,
    expense_type: ExpenseType = ExpenseType.REGULAR,
) -> Expense:
    expense = Expense(
        user_id=user_id,
        amount=_validate_amount(amount),
        date=ensure_utc(date),
        description=description,
        category=category,
        payment_method=payment_method,
        expense_type=ExpenseType(expense_type),
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info(f"Created expense {expense.id} for user {user_id}")
    return expense


def update_expense(db: Session, expense_id: int, user_id: int, **changes) -> Expense:
    """Partial update; only keys present in ``changes`` are applied."""
    expense = get_expense(db, expense_id, user_id)

    if "amount" in changes:
        expense.amount = _validate_amount(changes["amount"])
    if "date" in changes and changes["date"] is not None:
        expense.date = ensure_utc(changes["date"])
    for field in ("description", "category", "payment_method"):
        if field in changes:
            setattr(expense, field, changes[field])
    if changes.get("expense_type") is not None:
        expense.expense_type = ExpenseType(changes["expense_type"])

    db.commit()
    db.refresh(expense)
    logger.info(f"Updated expense {expense.id}")
    return expense


def delete_expense(db: Session, expense_id: int, user_id: int) -> None:
    expense = get_expense(db, expense_id, user_id)
    db.delete(expense)
    db.commit()
    logger.info(f"Deleted expense {expense_id} (user {user_id})")


def set_expense_recurrence(
    db: Session,
    expense_id: int,
    user_id: int,
    recurrence_type: RecurrenceType,
    start_date: datetime,
    interval: int = 1,
    end_date: Optional[datetime] = None,
    custom_cron_expression: Optional[str] = None,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> Optional[ExpenseRecurrence]:
    expense = get_expense(db, expense_id, user_id)
    rule = RecurrenceRule(
        recurrence_type=RecurrenceType(recurrence_type),
        start_date=ensure_utc(start_date),
        interval=interval,
        end_date=ensure_utc(end_date),
        custom_cron_expression=custom_cron_expression,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
    )
    return expense_recurring.set_rule(db, expense, rule)


def cancel_expense_recurrence(db: Session, expense_id: int, user_id: int) -> None:
    expense = get_expense(db, expense_id, user_id)
    expense_recurring.cancel(db, expense.id)


def process_expense_recurrence(db: Session, expense_id: int, user_id: int, now: Optional[datetime] = None) -> List[datetime]:
    expense = get_expense(db, expense_id, user_id)
    rule = expense.recurrence
    if rule is None or not expense.is_recurring:
        raise NotFoundError("Expense has no recurrence")
    return expense_recurring.process_with_retry(db, rule.id, now)
