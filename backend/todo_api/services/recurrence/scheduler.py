"""
Recurrence scheduler.

Pure computation over RecurrenceRule values: no database access, no clock
reads. The caller persists the returned rule and materializes the
occurrence (see todo_api.services.recurrence.recurring).

Calendar arithmetic uses dateutil's relativedelta:
- Monthly/Quarterly: relativedelta(months=n, day=d) clamps d to the last
  day of the target month (day 31 in April -> April 30)
- Yearly: relativedelta(years=n, month=m, day=d) clamps Feb 29 to Feb 28
- Weekly: relativedelta(weekday=XX(+1)) moves to the weekday on/after
"""
import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterator, Optional
from dateutil.relativedelta import relativedelta, weekday
from todo_api.core.errors import InvalidCronExpression
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.clock import ensure_utc
from todo_api.services.recurrence.rules import RecurrenceRule

logger = logging.getLogger(__name__)


class RuleState(str, enum.Enum):
    PENDING = "pending"  # No occurrence generated yet
    ACTIVE = "active"
    EXHAUSTED = "exhausted"  # Next occurrence would pass end_date
    CANCELLED = "cancelled"  # Rule deleted or owner no longer recurring


@dataclass(frozen=True)
class DueOccurrence:
    occurrence_date: datetime
    rule: RecurrenceRule  # Rule advanced past occurrence_date


def _candidate(rule: RecurrenceRule, cron) -> Optional[datetime]:
    anchor = rule.anchor
    interval = rule.interval or 1
    recurrence_type = rule.recurrence_type

    if recurrence_type == RecurrenceType.DAILY:
        return anchor + timedelta(days=interval)

    if recurrence_type == RecurrenceType.WEEKLY:
        candidate = anchor + relativedelta(weeks=interval)
        if rule.day_of_week is not None:
            candidate = candidate + relativedelta(weekday=weekday(rule.day_of_week)(+1))
        return candidate

    if recurrence_type in (RecurrenceType.MONTHLY, RecurrenceType.QUARTERLY):
        months = interval * 3 if recurrence_type == RecurrenceType.QUARTERLY else interval
        target_day = rule.day_of_month or ensure_utc(rule.start_date).day
        return anchor + relativedelta(months=months, day=target_day)

    if recurrence_type == RecurrenceType.YEARLY:
        start = ensure_utc(rule.start_date)
        return anchor + relativedelta(years=interval, month=start.month, day=start.day)

    if recurrence_type == RecurrenceType.CUSTOM:
        if not rule.custom_cron_expression:
            raise InvalidCronExpression("", "custom recurrence requires a cron expression")
        if cron is None:
            raise InvalidCronExpression(rule.custom_cron_expression, "no cron evaluator configured")
        return cron.next_after(rule.custom_cron_expression, anchor)

    return None


def next_occurrence(rule: RecurrenceRule, cron=None) -> Optional[datetime]:
    """
    Next occurrence after the rule's anchor, or None when the rule is not
    recurring or the series is exhausted. Never modifies ``rule``.
    """
    if rule.recurrence_type == RecurrenceType.NONE:
        return None

    candidate = _candidate(rule, cron)
    if candidate is None:
        return None

    end_date = ensure_utc(rule.end_date)
    if end_date is not None and candidate > end_date:
        return None
    return candidate


def process_due(rule: RecurrenceRule, now: datetime, cron=None) -> Optional[DueOccurrence]:
    """
    If the next occurrence is due at ``now``, return it together with the
    advanced rule (last_processed_date = occurrence, next_processing_date
    recomputed). Returns None when nothing is due.
    """
    occurrence = next_occurrence(rule, cron)
    if occurrence is None or occurrence > ensure_utc(now):
        return None

    advanced = replace(rule, last_processed_date=occurrence)
    advanced = replace(advanced, next_processing_date=next_occurrence(advanced, cron))
    return DueOccurrence(occurrence_date=occurrence, rule=advanced)


def pending_occurrences(rule: RecurrenceRule, now: datetime, cron=None) -> Iterator[DueOccurrence]:
    """Every occurrence due at ``now``, oldest first (catch-up after downtime)."""
    due = process_due(rule, now, cron)
    while due is not None:
        yield due
        due = process_due(due.rule, now, cron)


def rule_state(rule: Optional[RecurrenceRule], cron=None) -> RuleState:
    if rule is None or rule.recurrence_type == RecurrenceType.NONE:
        return RuleState.CANCELLED
    if next_occurrence(rule, cron) is None:
        return RuleState.EXHAUSTED
    if rule.last_processed_date is None:
        return RuleState.PENDING
    return RuleState.ACTIVE
