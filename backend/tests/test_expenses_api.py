"""
Tests for the expense endpoints.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from todo_api.services.features import get_feature_by_name, set_user_feature_flag


@pytest.fixture
def user_client(client, login, user):
    login(user)
    return client


def _create(client, **payload):
    payload.setdefault("amount", "12.50")
    payload.setdefault("date", "2024-03-01T10:00:00Z")
    response = client.post("/api/expenses", json=payload)
    assert response.status_code == 201
    return response.json()


def test_create_and_get(user_client):
    expense = _create(user_client, category="Food", payment_method="Card")

    fetched = user_client.get(f"/api/expenses/{expense['id']}").json()
    assert Decimal(fetched["amount"]) == Decimal("12.50")
    assert fetched["category"] == "Food"
    assert fetched["expense_type"] == "regular"


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_amount_must_be_positive(user_client, amount):
    response = user_client.post("/api/expenses", json={"amount": amount, "date": "2024-03-01T10:00:00Z"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Amount must be greater than zero"


def test_filters(user_client):
    _create(user_client, category="Food", date="2024-01-10T00:00:00Z")
    _create(user_client, category="Travel", date="2024-02-10T00:00:00Z")
    _create(user_client, category="Food", date="2024-03-10T00:00:00Z")

    food = user_client.get("/api/expenses", params={"category": "Food"}).json()
    assert len(food) == 2

    february = user_client.get("/api/expenses", params={
        "date_from": "2024-02-01T00:00:00Z",
        "date_to": "2024-02-29T23:59:59Z",
    }).json()
    assert [e["category"] for e in february] == ["Travel"]


def test_update_and_delete(user_client):
    expense = _create(user_client)

    updated = user_client.put(f"/api/expenses/{expense['id']}", json={"amount": "20", "category": "Rent"}).json()
    assert Decimal(updated["amount"]) == Decimal("20")
    assert updated["category"] == "Rent"

    assert user_client.delete(f"/api/expenses/{expense['id']}").status_code == 204
    assert user_client.get(f"/api/expenses/{expense['id']}").status_code == 404


def test_monthly_recurrence(user_client):
    expense = _create(user_client, description="Gym")
    start = datetime.now(timezone.utc) - timedelta(days=70)

    rule = user_client.put(f"/api/expenses/{expense['id']}/recurrence", json={
        "recurrence_type": "monthly",
        "start_date": start.isoformat(),
        "day_of_month": 1,
    }).json()
    assert rule["day_of_month"] == 1

    processed = user_client.post(f"/api/expenses/{expense['id']}/recurrence/process").json()
    assert processed["count"] >= 2
    assert all(datetime.fromisoformat(d.replace("Z", "+00:00")).day == 1 for d in processed["occurrences"])

    booked = [e for e in user_client.get("/api/expenses").json() if e["source_expense_id"] == expense["id"]]
    assert len(booked) == processed["count"]


def test_gated_by_expense_feature(client, login, db, user):
    feature = get_feature_by_name(db, "ExpenseApp")
    set_user_feature_flag(db, feature.id, user.id, False)

    login(user)
    assert client.get("/api/expenses").status_code == 403
