"""
Request/response models shared by the task and expense recurrence endpoints.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.recurrence import default_cron_evaluator, rule_from_model, rule_state


class RecurrenceRequest(BaseModel):
    """Recurrence rule for a task or expense."""
    recurrence_type: RecurrenceType
    start_date: datetime
    interval: int = 1  # Every N days/weeks/months/quarters/years
    end_date: Optional[datetime] = None
    custom_cron_expression: Optional[str] = None  # 5-field crontab, only for 'custom'
    day_of_month: Optional[int] = None  # 1-31 for monthly/quarterly
    day_of_week: Optional[int] = None  # 0-6 (Monday-Sunday) for weekly


class RecurrenceResponse(BaseModel):
    id: int
    recurrence_type: RecurrenceType
    interval: int
    start_date: datetime
    end_date: Optional[datetime]
    custom_cron_expression: Optional[str]
    day_of_month: Optional[int]
    day_of_week: Optional[int]
    last_processed_date: Optional[datetime]
    next_processing_date: Optional[datetime]
    state: str


class ProcessRecurrenceResponse(BaseModel):
    occurrences: List[datetime]
    count: int


def recurrence_response(row) -> Optional[RecurrenceResponse]:
    if row is None:
        return None
    return RecurrenceResponse(
        id=row.id,
        recurrence_type=row.recurrence_type,
        interval=row.interval,
        start_date=row.start_date,
        end_date=row.end_date,
        custom_cron_expression=row.custom_cron_expression,
        day_of_month=row.day_of_month,
        day_of_week=row.day_of_week,
        last_processed_date=row.last_processed_date,
        next_processing_date=row.next_processing_date,
        state=rule_state(rule_from_model(row), default_cron_evaluator).value,
    )
