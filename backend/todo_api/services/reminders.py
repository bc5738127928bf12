"""
Task reminders.

A reminder is a point in time attached to a task. Delivery is not handled
here: dispatch_due_reminders logs each due reminder and marks it sent, once.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.task import TaskReminder, TodoTask
from todo_api.services.clock import Clock, ensure_utc, system_clock
from todo_api.services.tasks import get_task

logger = logging.getLogger(__name__)


def list_reminders(db: Session, task_id: int, user_id: int) -> List[TaskReminder]:
    return list(get_task(db, task_id, user_id).reminders)


def create_reminder(db: Session, task_id: int, user_id: int, reminder_time: datetime) -> TaskReminder:
    task = get_task(db, task_id, user_id)
    if reminder_time is None:
        raise ValidationError("reminder_time is required")

    reminder = TaskReminder(task_id=task.id, reminder_time=ensure_utc(reminder_time), is_sent=False)
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    logger.info(f"Reminder {reminder.id} set for task {task.id} at {reminder.reminder_time}")
    return reminder


def delete_reminder(db: Session, reminder_id: int, task_id: int, user_id: int) -> None:
    task = get_task(db, task_id, user_id)
    reminder = db.query(TaskReminder).filter(
        TaskReminder.id == reminder_id,
        TaskReminder.task_id == task.id
    ).first()
    if not reminder:
        raise NotFoundError("Reminder not found")
    db.delete(reminder)
    db.commit()


def due_reminders(db: Session, now: datetime) -> List[TaskReminder]:
    """Unsent reminders at or before ``now``, oldest first."""
    return db.query(TaskReminder).filter(
        TaskReminder.is_sent == False,
        TaskReminder.reminder_time <= ensure_utc(now)
    ).order_by(TaskReminder.reminder_time, TaskReminder.id).all()


def dispatch_due_reminders(
    session_factory: Callable[[], Session],
    now: Optional[datetime] = None,
    clock: Clock = system_clock,
) -> int:
    """Mark every due reminder as sent; returns how many were dispatched."""
    now = ensure_utc(now or clock.now())
    db = session_factory()
    try:
        reminders = due_reminders(db, now)
        for reminder in reminders:
            task: TodoTask = reminder.task
            logger.info(f"Reminder {reminder.id}: task {task.id} '{task.title}' for user {task.user_id}")
            reminder.is_sent = True
            reminder.sent_at = now
        db.commit()
        return len(reminders)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
