"""
Cron expression evaluation for custom recurrences.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from apscheduler.triggers.cron import CronTrigger
from todo_api.core.errors import InvalidCronExpression
from todo_api.services.clock import ensure_utc

logger = logging.getLogger(__name__)


class CronEvaluator(ABC):
    """Computes the next fire time of a cron expression."""

    @abstractmethod
    def next_after(self, expression: str, anchor: datetime) -> Optional[datetime]:
        """
        First fire time strictly after ``anchor``, or None if the expression
        never fires again. Raises InvalidCronExpression on malformed input.
        """
        pass

    def validate(self, expression: str) -> None:
        self.next_after(expression, datetime(2000, 1, 1, tzinfo=timezone.utc))


class CronTriggerEvaluator(CronEvaluator):
    """
    Standard 5-field crontab ("minute hour day month day_of_week") evaluated
    with APScheduler's CronTrigger in UTC.
    """

    def __init__(self):
        self._triggers: Dict[str, CronTrigger] = {}

    def _trigger(self, expression: str) -> CronTrigger:
        expression = (expression or "").strip()
        trigger = self._triggers.get(expression)
        if trigger is not None:
            return trigger

        if len(expression.split()) != 5:
            raise InvalidCronExpression(expression, "expected 5 fields")
        try:
            trigger = CronTrigger.from_crontab(expression, timezone=timezone.utc)
        except ValueError as e:
            raise InvalidCronExpression(expression, str(e)) from e

        self._triggers[expression] = trigger
        return trigger

    def next_after(self, expression: str, anchor: datetime) -> Optional[datetime]:
        trigger = self._trigger(expression)
        # get_next_fire_time returns the first whole-second fire time >= now
        after = ensure_utc(anchor).replace(microsecond=0) + timedelta(seconds=1)
        fire_time = trigger.get_next_fire_time(None, after)
        if fire_time is None:
            logger.debug(f"Cron expression {expression!r} has no fire time after {anchor}")
            return None
        return fire_time.astimezone(timezone.utc)


default_cron_evaluator = CronTriggerEvaluator()
