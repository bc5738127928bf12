"""
Expense API endpoints (requires the ExpenseApp feature).
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.api.recurrence_schemas import (
    RecurrenceRequest,
    RecurrenceResponse,
    ProcessRecurrenceResponse,
    recurrence_response,
)
from todo_api.core.auth import require_feature
from todo_api.core.database import get_db
from todo_api.models.expense import Expense, ExpenseType
from todo_api.models.user import User
from todo_api.services import expenses as expense_service
from todo_api.services.features import EXPENSE_APP

router = APIRouter()


class ExpenseCreate(BaseModel):
    amount: Decimal
    date: datetime
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=100)
    expense_type: ExpenseType = ExpenseType.REGULAR


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=100)
    expense_type: Optional[ExpenseType] = None


class ExpenseResponse(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    date: datetime
    description: Optional[str]
    category: Optional[str]
    payment_method: Optional[str]
    expense_type: ExpenseType
    is_recurring: bool
    source_expense_id: Optional[int]
    recurrence: Optional[RecurrenceResponse] = None
    created_at: Optional[datetime]


def expense_response(expense: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        id=expense.id,
        user_id=expense.user_id,
        amount=expense.amount,
        date=expense.date,
        description=expense.description,
        category=expense.category,
        payment_method=expense.payment_method,
        expense_type=expense.expense_type,
        is_recurring=expense.is_recurring,
        source_expense_id=expense.source_expense_id,
        recurrence=recurrence_response(expense.recurrence),
        created_at=expense.created_at,
    )


@router.get("", response_model=List[ExpenseResponse])
async def list_expenses(
    category: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    """List the current user's expenses, newest first."""
    expenses = expense_service.list_expenses(db, current_user.id, category, date_from, date_to)
    return [expense_response(expense) for expense in expenses]


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    request: ExpenseCreate,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    expense = expense_service.create_expense(db, current_user.id, **request.model_dump())
    return expense_response(expense)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    return expense_response(expense_service.get_expense(db, expense_id, current_user.id))


@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    request: ExpenseUpdate,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    expense = expense_service.update_expense(db, expense_id, current_user.id, **request.model_dump(exclude_unset=True))
    return expense_response(expense)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    expense_service.delete_expense(db, expense_id, current_user.id)


# Recurrence

@router.put("/{expense_id}/recurrence", response_model=Optional[RecurrenceResponse])
async def set_expense_recurrence(
    expense_id: int,
    request: RecurrenceRequest,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    rule = expense_service.set_expense_recurrence(db, expense_id, current_user.id, **request.model_dump())
    return recurrence_response(rule)


@router.delete("/{expense_id}/recurrence", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_expense_recurrence(
    expense_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    expense_service.cancel_expense_recurrence(db, expense_id, current_user.id)


@router.post("/{expense_id}/recurrence/process", response_model=ProcessRecurrenceResponse)
async def process_expense_recurrence(
    expense_id: int,
    current_user: User = Depends(require_feature(EXPENSE_APP)),
    db: Session = Depends(get_db)
):
    occurrences = expense_service.process_expense_recurrence(db, expense_id, current_user.id)
    return ProcessRecurrenceResponse(occurrences=occurrences, count=len(occurrences))
