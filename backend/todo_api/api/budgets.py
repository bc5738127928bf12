"""
Budget API endpoints (requires the ExpenseApp feature).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.core.auth import require_feature
from todo_api.core.database import get_db
from todo_api.models.expense import BudgetPeriod
from todo_api.models.user import User
from todo_api.services import budgets as budget_service
from todo_api.services.budgets import BudgetStatus
from todo_api.services.features import EXPENSE_APP

router = APIRouter()


class BudgetCreate(BaseModel):
    name: str = Field(..., max_length=100)
    amount: Decimal
    category: Optional[str] = Field(None, max_length=100)  # None covers all spending
    start_date: datetime
    end_date: datetime
    period: BudgetPeriod = BudgetPeriod.MONTHLY


class BudgetUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    amount: Optional[Decimal] = None
    category: Optional[str] = Field(None, max_length=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    period: Optional[BudgetPeriod] = None


class BudgetResponse(BaseModel):
    id: int
    name: str
    category: Optional[str]
    period: BudgetPeriod
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float
    is_over_budget: bool
    is_near_limit: bool
    start_date: datetime
    end_date: datetime
    created_at: Optional[datetime]


class BudgetSummaryResponse(BaseModel):
    month: date
    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    total_percentage: float
    budgets: List[BudgetResponse]
    spending_by_category: Dict[str, Decimal]


def budget_response(budget_status: BudgetStatus) -> BudgetResponse:
    budget = budget_status.budget
    return BudgetResponse(
        id=budget.id,
        name=budget.name,
        category=budget.category,
        period=budget.period,
        amount=budget_status.amount,
        spent=budget_status.spent,
        remaining=budget_status.remaining,
        percentage=budget_status.percentage,
        is_over_budget=budget_status.is_over_budget,
        is_near_limit=budget_status.is_near_limit,
        start_date=budget_status.start_date,
        end_date=budget_status.end_date,
        created_at=budget.created_at,
    )


@router.get("", response_model=List[BudgetResponse])
async def list_budgets(
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    """List the current user's budgets with spending over each budget's full range."""
    return [
        budget_response(budget_service.budget_status(db, budget))
        for budget in budget_service.list_budgets(db, current_user.id)
    ]


@router.post("", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(
    request: BudgetCreate,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    budget = budget_service.create_budget(db, current_user.id, **request.model_dump())
    return budget_response(budget_service.budget_status(db, budget))


@router.get("/summary", response_model=BudgetSummaryResponse)
async def get_budget_summary(
    month: Optional[date] = None,  # Any day in the month; defaults to the current month
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    summary = budget_service.monthly_summary(db, current_user.id, month)
    return BudgetSummaryResponse(
        month=summary.month,
        total_budget=summary.total_budget,
        total_spent=summary.total_spent,
        total_remaining=summary.total_remaining,
        total_percentage=summary.total_percentage,
        budgets=[budget_response(budget_status) for budget_status in summary.budgets],
        spending_by_category=summary.spending_by_category,
    )


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    budget = budget_service.get_budget(db, budget_id, current_user.id)
    return budget_response(budget_service.budget_status(db, budget))


@router.put("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: int,
    request: BudgetUpdate,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    budget = budget_service.update_budget(db, budget_id, current_user.id, **request.model_dump(exclude_unset=True))
    return budget_response(budget_service.budget_status(db, budget))


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    budget_service.delete_budget(db, budget_id, current_user.id)
