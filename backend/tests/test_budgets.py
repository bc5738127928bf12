"""
Tests for budgets: validation, spending against a budget, and the monthly
summary with pro-rated budgets.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.expense import BudgetPeriod, ExpenseType
from todo_api.services import budgets as budget_service
from todo_api.services import expenses as expense_service
from todo_api.services.features import get_feature_by_name, set_user_feature_flag


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def spending(db, user):
    def spend(amount, when, category, expense_type=ExpenseType.REGULAR):
        expense_service.create_expense(db, user.id, amount, when, category=category, expense_type=expense_type)

    spend("30", utc(2024, 2, 28, 9), "Food")
    spend("40", utc(2024, 3, 3, 9), "Food")
    spend("250", utc(2024, 3, 20, 18), "Food")
    spend("100", utc(2024, 3, 5, 12), "Travel")
    spend("1000", utc(2024, 3, 1, 8), "Food", ExpenseType.INCOME)


@pytest.fixture
def groceries(db, user):
    return budget_service.create_budget(
        db, user.id, "Groceries", "300", utc(2024, 3, 1), utc(2024, 3, 31, 23, 59, 59), category="Food",
    )


@pytest.fixture
def quarterly(db, user):
    return budget_service.create_budget(
        db, user.id, "Everything", "900", utc(2024, 1, 1), utc(2024, 3, 31, 23, 59, 59),
        period=BudgetPeriod.QUARTERLY,
    )


class TestValidation:
    def test_start_must_precede_end(self, db, user):
        with pytest.raises(ValidationError, match="Start date must be before end date"):
            budget_service.create_budget(db, user.id, "Bad", "10", utc(2024, 3, 2), utc(2024, 3, 1))

    def test_amount_must_be_positive(self, db, user):
        with pytest.raises(ValidationError):
            budget_service.create_budget(db, user.id, "Zero", "0", utc(2024, 3, 1), utc(2024, 3, 31))

    def test_overlapping_budget_for_same_category(self, db, user, groceries):
        with pytest.raises(ValidationError, match="overlapping"):
            budget_service.create_budget(
                db, user.id, "More food", "50", utc(2024, 3, 15), utc(2024, 4, 15), category="Food",
            )

    def test_other_category_may_overlap(self, db, user, groceries):
        budget = budget_service.create_budget(
            db, user.id, "Trips", "200", utc(2024, 3, 15), utc(2024, 4, 15), category="Travel",
        )
        assert budget.category == "Travel"

    def test_update_rechecks_overlap(self, db, user, groceries):
        april = budget_service.create_budget(
            db, user.id, "April food", "300", utc(2024, 4, 1), utc(2024, 4, 30), category="Food",
        )
        with pytest.raises(ValidationError):
            budget_service.update_budget(db, april.id, user.id, start_date=utc(2024, 3, 25))

    def test_budgets_are_private(self, db, make_user, groceries):
        other = make_user("bob@example.com")
        with pytest.raises(NotFoundError):
            budget_service.get_budget(db, groceries.id, other.id)


class TestBudgetStatus:
    def test_spending_in_category(self, db, spending, groceries):
        status = budget_service.budget_status(db, groceries)

        assert status.spent == Decimal("290.00")
        assert status.remaining == Decimal("10.00")
        assert status.percentage == pytest.approx(96.67)
        assert status.is_near_limit is True
        assert status.is_over_budget is False

    def test_budget_without_category_counts_all_spending(self, db, spending, quarterly):
        status = budget_service.budget_status(db, quarterly)
        # Income is never spending
        assert status.spent == Decimal("420.00")


class TestMonthlySummary:
    def test_prorates_budgets_overlapping_the_month(self, db, user, spending, groceries, quarterly):
        summary = budget_service.monthly_summary(db, user.id, date(2024, 3, 10))

        assert summary.month == date(2024, 3, 1)
        by_name = {status.budget.name: status for status in summary.budgets}
        assert by_name["Groceries"].amount == Decimal("300.00")
        assert by_name["Groceries"].spent == Decimal("290.00")
        # 31 of the quarter's 91 days fall in March
        assert by_name["Everything"].amount == Decimal("306.59")
        assert by_name["Everything"].spent == Decimal("390.00")
        assert by_name["Everything"].is_over_budget is True
        assert by_name["Everything"].start_date == utc(2024, 3, 1)

        assert summary.total_budget == Decimal("606.59")
        assert summary.total_spent == Decimal("680.00")
        assert summary.spending_by_category == {"Food": Decimal("290.00"), "Travel": Decimal("100.00")}

    def test_month_without_budgets(self, db, user, spending):
        summary = budget_service.monthly_summary(db, user.id, date(2024, 5, 1))

        assert summary.budgets == []
        assert summary.total_budget == Decimal("0")
        assert summary.total_percentage == 0.0
        assert summary.spending_by_category == {}


@pytest.fixture
def user_client(client, login, user):
    login(user)
    return client


class TestBudgetApi:
    def test_crud(self, user_client):
        created = user_client.post("/api/budgets", json={
            "name": "Groceries",
            "amount": "300",
            "category": "Food",
            "start_date": "2024-03-01T00:00:00Z",
            "end_date": "2024-03-31T23:59:59Z",
        })
        assert created.status_code == 201
        budget = created.json()
        assert budget["period"] == "monthly"
        assert Decimal(budget["spent"]) == Decimal("0")

        updated = user_client.put(f"/api/budgets/{budget['id']}", json={"amount": "350"}).json()
        assert Decimal(updated["amount"]) == Decimal("350")
        assert [b["id"] for b in user_client.get("/api/budgets").json()] == [budget["id"]]

        assert user_client.delete(f"/api/budgets/{budget['id']}").status_code == 204
        assert user_client.get(f"/api/budgets/{budget['id']}").status_code == 404

    def test_inverted_range_is_rejected(self, user_client):
        response = user_client.post("/api/budgets", json={
            "name": "Backwards",
            "amount": "10",
            "start_date": "2024-03-31T00:00:00Z",
            "end_date": "2024-03-01T00:00:00Z",
        })
        assert response.status_code == 400

    def test_summary(self, user_client):
        user_client.post("/api/budgets", json={
            "name": "Groceries",
            "amount": "300",
            "category": "Food",
            "start_date": "2024-03-01T00:00:00Z",
            "end_date": "2024-03-31T23:59:59Z",
        })
        user_client.post("/api/expenses", json={"amount": "75", "date": "2024-03-04T10:00:00Z", "category": "Food"})

        summary = user_client.get("/api/budgets/summary", params={"month": "2024-03-15"}).json()

        assert summary["month"] == "2024-03-01"
        assert Decimal(summary["total_spent"]) == Decimal("75")
        assert summary["total_percentage"] == 25.0
        assert [b["name"] for b in summary["budgets"]] == ["Groceries"]
        assert Decimal(summary["spending_by_category"]["Food"]) == Decimal("75")

    def test_gated_by_expense_feature(self, client, login, db, user):
        set_user_feature_flag(db, get_feature_by_name(db, "ExpenseApp").id, user.id, False)

        login(user)
        assert client.get("/api/budgets").status_code == 403

    def test_read_only_role_cannot_create(self, client, login, make_user):
        login(make_user("viewer@example.com", roles=["ReadOnly"]))
        response = client.post("/api/budgets", json={
            "name": "Nope",
            "amount": "10",
            "start_date": "2024-03-01T00:00:00Z",
            "end_date": "2024-03-31T00:00:00Z",
        })
        assert response.status_code == 403
