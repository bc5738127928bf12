"""
Tests for the admin statistics and sweep endpoints.
"""

from datetime import datetime, timedelta, timezone

from todo_api.models.task import TodoTask
from todo_api.services import tasks as task_service
from todo_api.models.recurrence import RecurrenceType


def test_statistics(client, login, db, admin, user):
    task = task_service.create_task(db, user.id, "Plan trip")
    task_service.update_task(db, task.id, user.id, status="completed")

    login(admin)
    stats = client.get("/api/admin/statistics").json()

    assert stats["users"] == 2
    assert stats["active_users"] == 2
    assert stats["tasks"] == 1
    assert stats["completed_tasks"] == 1
    assert stats["features"] == 2


def test_statistics_requires_admin(client, login, user):
    login(user)
    assert client.get("/api/admin/statistics").status_code == 403


def test_sweep_materializes_due_occurrences(client, login, db, admin, user):
    task = task_service.create_task(db, user.id, "Journal")
    task_service.set_task_recurrence(
        db, task.id, user.id, RecurrenceType.DAILY,
        start_date=datetime.now(timezone.utc) - timedelta(days=2, hours=1),
    )

    login(admin)
    response = client.post("/api/admin/recurrence/sweep")

    assert response.status_code == 200
    assert response.json() == {
        "processed": 1,
        "occurrences": 2,
        "failed": 0,
        "conflicts": 0,
        "interrupted": False,
    }
    assert db.query(TodoTask).filter(TodoTask.source_task_id == task.id).count() == 2

    # Nothing is due any more
    assert client.post("/api/admin/recurrence/sweep").json()["occurrences"] == 0


def test_sweep_requires_admin(client, login, user):
    login(user)
    assert client.post("/api/admin/recurrence/sweep").status_code == 403
