"""
Recurrence sweep and the APScheduler background job that runs it.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
from todo_api.core.errors import ConcurrentUpdateConflict
from todo_api.services.clock import ensure_utc
from todo_api.services.recurrence.recurring import Recurring

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "recurrence_sweep"

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None
# Set on shutdown so a running sweep stops between rules
_stop_event = threading.Event()


@dataclass
class SweepResult:
    processed: int = 0  # Rules looked at
    occurrences: int = 0  # Occurrences materialized
    failed: int = 0
    conflicts: int = 0
    interrupted: bool = False

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "occurrences": self.occurrences,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "interrupted": self.interrupted,
        }


def run_sweep(
    session_factory: Callable[[], Session],
    recurrings: Iterable[Recurring],
    now: Optional[datetime] = None,
    stop_event: Optional[threading.Event] = None,
) -> SweepResult:
    """
    Materialize every due occurrence of every rule.

    Each rule gets its own session. A failing rule is logged and counted;
    the sweep moves on to the next one. ``stop_event`` is checked before each
    rule, so an interrupted sweep never stops halfway through a rule and the
    next sweep resumes from the persisted state.
    """
    result = SweepResult()

    for recurring in recurrings:
        sweep_now = ensure_utc(now or recurring.clock.now())
        db = session_factory()
        try:
            rule_ids = recurring.due_rule_ids(db, sweep_now)
        finally:
            db.close()

        for rule_id in rule_ids:
            if stop_event is not None and stop_event.is_set():
                result.interrupted = True
                logger.info(f"Recurrence sweep interrupted: {result.to_dict()}")
                return result

            result.processed += 1
            db = session_factory()
            try:
                applied = recurring.process_with_retry(db, rule_id, sweep_now)
                result.occurrences += len(applied)
            except ConcurrentUpdateConflict:
                result.conflicts += 1
                logger.warning(f"Giving up on {recurring.name} rule {rule_id} after {recurring.max_retries} conflicting attempts")
            except Exception as e:
                db.rollback()
                result.failed += 1
                logger.error(f"Error processing {recurring.name} rule {rule_id}: {e}", exc_info=True)
            finally:
                db.close()

    logger.info(f"Recurrence sweep finished: {result.to_dict()}")
    return result


def default_recurrings():
    """Recurring handlers for tasks and expenses, configured from settings."""
    from todo_api.services.tasks import task_recurring
    from todo_api.services.expenses import expense_recurring
    return [task_recurring, expense_recurring]


def execute_sweep():
    """Job entry point run by the background scheduler; also dispatches due task reminders."""
    from todo_api.core.database import SessionLocal
    from todo_api.services.reminders import dispatch_due_reminders
    try:
        run_sweep(SessionLocal, default_recurrings(), stop_event=_stop_event)
    except Exception as e:
        logger.error(f"Recurrence sweep failed: {e}", exc_info=True)

    if _stop_event.is_set():
        return
    try:
        sent = dispatch_due_reminders(SessionLocal)
        if sent:
            logger.info(f"Dispatched {sent} task reminders")
    except Exception as e:
        logger.error(f"Reminder dispatch failed: {e}", exc_info=True)


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone=timezone.utc)
    return _scheduler


def add_sweep_job(cron_expression: str):
    """Register (or replace) the periodic sweep job."""
    scheduler = get_scheduler()
    scheduler.add_job(
        execute_sweep,
        trigger=CronTrigger.from_crontab(cron_expression, timezone=timezone.utc),
        id=SWEEP_JOB_ID,
        name="Recurrence sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Recurrence sweep scheduled with cron '{cron_expression}'")


def start_scheduler(cron_expression: str):
    """Start the scheduler with the sweep job."""
    scheduler = get_scheduler()
    if not scheduler.running:
        _stop_event.clear()
        add_sweep_job(cron_expression)
        scheduler.start()
        logger.info("Recurrence scheduler started")
    else:
        logger.debug("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler, asking a running sweep to stop after its current rule."""
    global _scheduler
    _stop_event.set()
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=True)
        logger.info("Recurrence scheduler stopped")
    _scheduler = None
