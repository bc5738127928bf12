"""
Tests for the recurrence sweep and its background job registration.
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from todo_api.models.expense import Expense
from todo_api.models.recurrence import RecurrenceType
from todo_api.models.task import TodoTask, TaskRecurrence
from todo_api.services import expenses as expense_service
from todo_api.services import tasks as task_service
from todo_api.services.recurrence import Recurring
from todo_api.services.recurrence import jobs
from todo_api.services.recurrence.jobs import SWEEP_JOB_ID, run_sweep
from todo_api.services.tasks import materialize_task_occurrence


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_recurring_task(db, user, title, start=None):
    task = task_service.create_task(db, user.id, title)
    task_service.set_task_recurrence(db, task.id, user.id, RecurrenceType.DAILY, start_date=start or utc(2024, 1, 1))
    return task


def test_sweep_processes_tasks_and_expenses(db, session_factory, user):
    make_recurring_task(db, user, "Stretch")
    expense = expense_service.create_expense(db, user.id, Decimal("9.99"), utc(2024, 1, 1), description="Music")
    expense_service.set_expense_recurrence(
        db, expense.id, user.id, RecurrenceType.MONTHLY, start_date=utc(2024, 1, 1),
    )

    result = run_sweep(session_factory, jobs.default_recurrings(), now=utc(2024, 2, 1, 12))

    assert result.processed == 2
    # 31 daily task occurrences plus the February expense
    assert result.occurrences == 32
    assert result.failed == 0
    assert result.interrupted is False
    db.expire_all()
    booked = db.query(Expense).filter(Expense.source_expense_id == expense.id).one()
    assert booked.amount == Decimal("9.99")


def test_failing_rule_does_not_stop_the_sweep(db, session_factory, user):
    def materializer(session, rule, occurrence_date):
        if rule.task.title == "Broken":
            raise RuntimeError("materializer failed")
        return materialize_task_occurrence(session, rule, occurrence_date)

    recurring = Recurring(TaskRecurrence, materializer, name="task")
    broken = make_recurring_task(db, user, "Broken")
    healthy = make_recurring_task(db, user, "Healthy")

    result = run_sweep(session_factory, [recurring], now=utc(2024, 1, 3, 6))

    assert result.processed == 2
    assert result.failed == 1
    assert result.occurrences == 2
    db.expire_all()
    assert db.query(TodoTask).filter(TodoTask.source_task_id == healthy.id).count() == 2
    assert db.query(TodoTask).filter(TodoTask.source_task_id == broken.id).count() == 0
    # Broken rule is still due and will be retried by the next sweep
    assert recurring.due_rule_ids(db, utc(2024, 1, 3, 6)) == [broken.recurrence.id]


def test_stop_event_interrupts_between_rules(db, session_factory, user):
    stop_event = threading.Event()

    def materializer(session, rule, occurrence_date):
        stop_event.set()
        return materialize_task_occurrence(session, rule, occurrence_date)

    recurring = Recurring(TaskRecurrence, materializer, name="task")
    first = make_recurring_task(db, user, "First")
    second = make_recurring_task(db, user, "Second")

    result = run_sweep(session_factory, [recurring], now=utc(2024, 1, 3, 6), stop_event=stop_event)

    assert result.interrupted is True
    assert result.processed == 1
    db.expire_all()
    # The rule being processed when the stop arrived is finished, the next one is left alone
    assert db.query(TodoTask).filter(TodoTask.source_task_id == first.id).count() == 2
    assert db.query(TodoTask).filter(TodoTask.source_task_id == second.id).count() == 0

    resumed = run_sweep(session_factory, [recurring], now=utc(2024, 1, 3, 6))
    assert resumed.processed == 1
    assert resumed.occurrences == 2


def test_sweep_result_to_dict():
    result = jobs.SweepResult(processed=3, occurrences=5, failed=1)
    assert result.to_dict() == {
        "processed": 3,
        "occurrences": 5,
        "failed": 1,
        "conflicts": 0,
        "interrupted": False,
    }


@pytest.fixture
def scheduler():
    yield jobs.get_scheduler()
    jobs.stop_scheduler()


def test_sweep_job_registration(scheduler):
    jobs.add_sweep_job("*/10 * * * *")

    job = scheduler.get_job(SWEEP_JOB_ID)
    assert job is not None
    assert job.max_instances == 1
    assert str(job.trigger.fields[6]) == "*/10"
