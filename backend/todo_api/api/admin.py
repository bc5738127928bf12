"""
Admin API endpoints: statistics and on-demand recurrence sweep.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker
from todo_api.core.auth import get_current_admin_user_dependency
from todo_api.core.database import get_db
from todo_api.models.expense import Expense
from todo_api.models.feature import FeatureDefinition
from todo_api.models.task import TodoTask, TaskStatus
from todo_api.models.user import User
from todo_api.services.recurrence.jobs import default_recurrings, run_sweep

router = APIRouter()


class StatisticsResponse(BaseModel):
    users: int
    active_users: int
    tasks: int
    completed_tasks: int
    recurring_tasks: int
    expenses: int
    recurring_expenses: int
    features: int


class SweepResponse(BaseModel):
    processed: int
    occurrences: int
    failed: int
    conflicts: int
    interrupted: bool


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Platform-wide counts."""
    return StatisticsResponse(
        users=db.query(User).count(),
        active_users=db.query(User).filter(User.is_active == True).count(),
        tasks=db.query(TodoTask).count(),
        completed_tasks=db.query(TodoTask).filter(TodoTask.status == TaskStatus.COMPLETED).count(),
        recurring_tasks=db.query(TodoTask).filter(TodoTask.is_recurring == True).count(),
        expenses=db.query(Expense).count(),
        recurring_expenses=db.query(Expense).filter(Expense.is_recurring == True).count(),
        features=db.query(FeatureDefinition).count(),
    )


@router.post("/recurrence/sweep", response_model=SweepResponse)
async def run_recurrence_sweep(
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Materialize every due task and expense occurrence now."""
    # One session per rule, on the same database as the request session
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())
    result = run_sweep(session_factory, default_recurrings())
    return SweepResponse(**result.to_dict())
