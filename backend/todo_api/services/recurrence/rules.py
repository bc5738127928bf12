"""
Recurrence rule value type.

The scheduler works on immutable RecurrenceRule values, never on ORM rows;
``rule_from_model`` and ``apply_to_model`` convert at the persistence edge.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from todo_api.core.errors import ValidationError, InvalidCronExpression
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.clock import ensure_utc


@dataclass(frozen=True)
class RecurrenceRule:
    recurrence_type: RecurrenceType
    start_date: datetime
    interval: int = 1
    end_date: Optional[datetime] = None
    custom_cron_expression: Optional[str] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None  # 0=Monday .. 6=Sunday
    last_processed_date: Optional[datetime] = None
    next_processing_date: Optional[datetime] = None

    @property
    def anchor(self) -> datetime:
        """Later of start_date and last_processed_date."""
        start = ensure_utc(self.start_date)
        last = ensure_utc(self.last_processed_date)
        if last is None or last < start:
            return start
        return last


def rule_from_model(row) -> RecurrenceRule:
    """Build a RecurrenceRule from a TaskRecurrence/ExpenseRecurrence row."""
    return RecurrenceRule(
        recurrence_type=RecurrenceType(row.recurrence_type),
        start_date=ensure_utc(row.start_date),
        interval=row.interval or 1,
        end_date=ensure_utc(row.end_date),
        custom_cron_expression=row.custom_cron_expression,
        day_of_month=row.day_of_month,
        day_of_week=row.day_of_week,
        last_processed_date=ensure_utc(row.last_processed_date),
        next_processing_date=ensure_utc(row.next_processing_date),
    )


def apply_to_model(rule: RecurrenceRule, row) -> None:
    """Copy the scheduler-owned fields of ``rule`` back onto a row."""
    row.last_processed_date = rule.last_processed_date
    row.next_processing_date = rule.next_processing_date


def validate_rule(rule: RecurrenceRule, cron=None) -> None:
    """
    Reject malformed rules before anything is persisted.

    Raises ValidationError (InvalidCronExpression for bad cron text). The
    cron syntax is only checked when an evaluator is passed.
    """
    if rule.start_date is None:
        raise ValidationError("start_date is required")
    if rule.interval is None or rule.interval < 1:
        raise ValidationError("interval must be at least 1")
    if rule.day_of_month is not None and not 1 <= rule.day_of_month <= 31:
        raise ValidationError("day_of_month must be between 1 and 31")
    if rule.day_of_week is not None and not 0 <= rule.day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    if rule.end_date is not None and ensure_utc(rule.end_date) < ensure_utc(rule.start_date):
        raise ValidationError("end_date must not be before start_date")

    if rule.recurrence_type == RecurrenceType.CUSTOM:
        expression = (rule.custom_cron_expression or "").strip()
        if not expression:
            raise InvalidCronExpression("", "custom recurrence requires a cron expression")
        if cron is not None:
            cron.validate(expression)
