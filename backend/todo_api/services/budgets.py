"""
Budget service.

A budget caps spending in one expense category (or in all categories when
``category`` is None) between start_date and end_date. Spending is the sum of
the owner's regular and adjustment expenses in that range; income and
transfers never count against a budget.

The monthly summary pro-rates each overlapping budget by the number of its
days that fall in the month, and compares it with the spending inside that
overlap.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.expense import Budget, BudgetPeriod, Expense, ExpenseType
from todo_api.services.clock import Clock, ensure_utc, system_clock

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
NEAR_LIMIT_PERCENTAGE = 80.0

_SPENDING_TYPES = (ExpenseType.REGULAR, ExpenseType.ADJUSTMENT)
_CENT = Decimal("0.01")


@dataclass
class BudgetStatus:
    budget: Budget
    amount: Decimal  # Pro-rated in a monthly summary, the full amount otherwise
    spent: Decimal
    start_date: datetime
    end_date: datetime

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.spent

    @property
    def percentage(self) -> float:
        if self.amount <= 0:
            return 0.0
        return round(float(self.spent / self.amount * 100), 2)

    @property
    def is_over_budget(self) -> bool:
        return self.percentage > 100

    @property
    def is_near_limit(self) -> bool:
        return NEAR_LIMIT_PERCENTAGE <= self.percentage <= 100


@dataclass
class BudgetSummary:
    month: date
    budgets: List[BudgetStatus] = field(default_factory=list)
    spending_by_category: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def total_budget(self) -> Decimal:
        return sum((status.amount for status in self.budgets), Decimal("0"))

    @property
    def total_spent(self) -> Decimal:
        return sum((status.spent for status in self.budgets), Decimal("0"))

    @property
    def total_remaining(self) -> Decimal:
        return self.total_budget - self.total_spent

    @property
    def total_percentage(self) -> float:
        if self.total_budget <= 0:
            return 0.0
        return round(float(self.total_spent / self.total_budget * 100), 2)


def _validate_amount(amount) -> Decimal:
    if amount is None:
        raise ValidationError("Amount is required")
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Budget name is required")
    return name


def _validate_range(start_date: datetime, end_date: datetime):
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if ensure_utc(start_date) >= ensure_utc(end_date):
        raise ValidationError("Start date must be before end date")


def _check_overlap(
    db: Session,
    user_id: int,
    category: Optional[str],
    start_date: datetime,
    end_date: datetime,
    exclude_id: Optional[int] = None,
):
    query = db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.start_date <= end_date,
        Budget.end_date >= start_date,
    )
    if category is None:
        query = query.filter(Budget.category.is_(None))
    else:
        query = query.filter(Budget.category == category)
    if exclude_id is not None:
        query = query.filter(Budget.id != exclude_id)
    if query.first():
        raise ValidationError("A budget for this category with overlapping dates already exists")


def _spent(db: Session, user_id: int, category: Optional[str], start: datetime, end: datetime) -> Decimal:
    """Spending in [start, end]."""
    query = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.user_id == user_id,
        Expense.expense_type.in_(_SPENDING_TYPES),
        Expense.date >= start,
        Expense.date <= end,
    )
    if category is not None:
        query = query.filter(Expense.category == category)
    return Decimal(str(query.scalar())).quantize(_CENT)


def budget_status(db: Session, budget: Budget) -> BudgetStatus:
    start, end = ensure_utc(budget.start_date), ensure_utc(budget.end_date)
    return BudgetStatus(
        budget=budget,
        amount=Decimal(budget.amount),
        spent=_spent(db, budget.user_id, budget.category, start, end),
        start_date=start,
        end_date=end,
    )


def list_budgets(db: Session, user_id: int) -> List[Budget]:
    return db.query(Budget).filter(Budget.user_id == user_id).order_by(Budget.start_date, Budget.id).all()


def get_budget(db: Session, budget_id: int, user_id: int) -> Budget:
    budget = db.query(Budget).filter(Budget.id == budget_id, Budget.user_id == user_id).first()
    if not budget:
        raise NotFoundError("Budget not found")
    return budget


def create_budget(
    db: Session,
    user_id: int,
    name: str,
    amount,
    start_date: datetime,
    end_date: datetime,
    category: Optional[str] = None,
    period: BudgetPeriod = BudgetPeriod.MONTHLY,
) -> Budget:
    name = _validate_name(name)
    amount = _validate_amount(amount)
    _validate_range(start_date, end_date)
    start_date, end_date = ensure_utc(start_date), ensure_utc(end_date)
    _check_overlap(db, user_id, category, start_date, end_date)

    budget = Budget(
        user_id=user_id,
        name=name,
        amount=amount,
        category=category,
        start_date=start_date,
        end_date=end_date,
        period=BudgetPeriod(period),
    )
    db.add(budget)
    db.commit()
    db.refresh(budget)
    logger.info(f"Created budget {budget.id} for user {user_id}")
    return budget


def update_budget(db: Session, budget_id: int, user_id: int, **changes) -> Budget:
    """Partial update; only keys present in ``changes`` are applied."""
    budget = get_budget(db, budget_id, user_id)

    start_date = ensure_utc(changes.get("start_date") or budget.start_date)
    end_date = ensure_utc(changes.get("end_date") or budget.end_date)
    category = changes["category"] if "category" in changes else budget.category
    _validate_range(start_date, end_date)
    _check_overlap(db, user_id, category, start_date, end_date, exclude_id=budget.id)

    if changes.get("name") is not None:
        budget.name = _validate_name(changes["name"])
    if changes.get("amount") is not None:
        budget.amount = _validate_amount(changes["amount"])
    if changes.get("period") is not None:
        budget.period = BudgetPeriod(changes["period"])
    budget.category = category
    budget.start_date = start_date
    budget.end_date = end_date

    db.commit()
    db.refresh(budget)
    logger.info(f"Updated budget {budget.id}")
    return budget


def delete_budget(db: Session, budget_id: int, user_id: int) -> None:
    budget = get_budget(db, budget_id, user_id)
    db.delete(budget)
    db.commit()
    logger.info(f"Deleted budget {budget_id} (user {user_id})")


def monthly_summary(
    db: Session,
    user_id: int,
    month: Optional[date] = None,
    clock: Clock = system_clock,
) -> BudgetSummary:
    """Budgets overlapping ``month`` (default: the current month) against spending in it."""
    month = month or clock.now().date()
    month_start = datetime(month.year, month.month, 1, tzinfo=timezone.utc)
    month_end = month_start + relativedelta(months=1) - timedelta(microseconds=1)
    summary = BudgetSummary(month=month_start.date())

    budgets = db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.start_date <= month_end,
        Budget.end_date >= month_start,
    ).order_by(Budget.start_date, Budget.id).all()

    for budget in budgets:
        start, end = ensure_utc(budget.start_date), ensure_utc(budget.end_date)
        overlap_start, overlap_end = max(start, month_start), min(end, month_end)
        total_days = (end.date() - start.date()).days + 1
        overlap_days = (overlap_end.date() - overlap_start.date()).days + 1
        prorated = (Decimal(budget.amount) * overlap_days / total_days).quantize(_CENT, rounding=ROUND_HALF_UP)
        summary.budgets.append(BudgetStatus(
            budget=budget,
            amount=prorated,
            spent=_spent(db, user_id, budget.category, overlap_start, overlap_end),
            start_date=overlap_start,
            end_date=overlap_end,
        ))

    rows = db.query(Expense.category, func.sum(Expense.amount)).filter(
        Expense.user_id == user_id,
        Expense.expense_type.in_(_SPENDING_TYPES),
        Expense.date >= month_start,
        Expense.date <= month_end,
    ).group_by(Expense.category).all()
    for category, total in rows:
        key = category or UNCATEGORIZED
        summary.spending_by_category[key] = (
            summary.spending_by_category.get(key, Decimal("0")) + Decimal(str(total))
        ).quantize(_CENT)

    return summary
