"""
Tests for the route policy table and PermissionMiddleware.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from todo_api.core.auth import create_session
from todo_api.core.config import SESSION_COOKIE_NAME
from todo_api.core.permissions import (
    DEFAULT_ROUTE_PERMISSIONS,
    PermissionMiddleware,
    RoutePermission,
    find_route_permission,
    is_allowed,
    load_route_permissions,
    template_matches,
)


class TestTemplateMatching:
    @pytest.mark.parametrize("template,path,expected", [
        ("/api/tasks/{id}", "/api/tasks/42", True),
        ("/api/tasks/{id}", "/API/Tasks/42/", True),
        ("/api/tasks/{id}", "/api/tasks", False),
        ("/api/tasks/{id}", "/api/tasks/42/recurrence", False),
        ("/api/users", "/api/roles", False),
    ])
    def test_template_matches(self, template, path, expected):
        assert template_matches(template, path) is expected

    def test_literal_template_wins(self):
        entry = find_route_permission(DEFAULT_ROUTE_PERMISSIONS, "/api/tasks/all", "GET")
        assert entry.path_template == "/api/tasks/all"
        assert entry.permissions == ("ViewAllTodos",)

    def test_parameterised_match(self):
        entry = find_route_permission(DEFAULT_ROUTE_PERMISSIONS, "/api/users/7", "put")
        assert entry.permissions == ("UpdateUsers",)

    def test_unlisted_method_has_no_entry(self):
        assert find_route_permission(DEFAULT_ROUTE_PERMISSIONS, "/api/users", "PATCH") is None

    def test_unlisted_path_has_no_entry(self):
        assert find_route_permission(DEFAULT_ROUTE_PERMISSIONS, "/api/features/me", "GET") is None


class TestIsAllowed:
    def test_needs_role_and_permission(self):
        entry = RoutePermission("/api/users", "GET", ("Admin",), ("ViewUsers",))
        assert is_allowed(entry, ["admin"], ["ViewUsers"])
        assert not is_allowed(entry, ["Admin"], [])
        assert not is_allowed(entry, ["Manager"], ["ViewUsers"])

    def test_any_listed_role_is_enough(self):
        entry = RoutePermission("/api/tasks", "GET", ("Admin", "User"))
        assert is_allowed(entry, ["User"], [])

    def test_empty_entry_allows_everyone(self):
        assert is_allowed(RoutePermission("/api/open", "GET"), [], [])


def test_load_route_permissions_from_dicts():
    table = load_route_permissions([
        {"path_template": "/api/reports/{id}", "method": "get", "roles": ["Auditor"]},
        RoutePermission("/api/reports", "POST", ("Admin",)),
    ])

    assert table[0] == RoutePermission("/api/reports/{id}", "GET", ("Auditor",), ())
    assert table[1].method == "POST"
    assert load_route_permissions(None) == DEFAULT_ROUTE_PERMISSIONS


@pytest.fixture
def reports_client():
    """A bare app with an injected policy table, no database involved."""
    app = FastAPI()
    app.add_middleware(
        PermissionMiddleware,
        route_permissions=[RoutePermission("/api/reports/{id}", "GET", ("Auditor",), ("ViewReports",))],
    )

    @app.get("/api/reports/{report_id}")
    async def get_report(report_id: int):
        return {"id": report_id}

    @app.get("/api/ping")
    async def ping():
        return {"pong": True}

    @app.get("/status")
    async def status():
        return {"ok": True}

    return TestClient(app)


def _session_cookie(client, roles, permissions):
    client.cookies.set(SESSION_COOKIE_NAME, create_session(1, "auditor@example.com", roles, permissions))


class TestMiddleware:
    def test_non_api_paths_are_open(self, reports_client):
        assert reports_client.get("/status").status_code == 200

    def test_api_requires_session(self, reports_client):
        response = reports_client.get("/api/ping")
        assert response.status_code == 401
        assert response.json() == {"success": False, "detail": "Authentication required"}

    def test_tampered_session_is_rejected(self, reports_client):
        token = create_session(1, "auditor@example.com", ["Auditor"], ["ViewReports"])
        reports_client.cookies.set(SESSION_COOKIE_NAME, token[:-4] + "0000")
        assert reports_client.get("/api/reports/1").status_code == 401

    def test_route_without_entry_only_needs_session(self, reports_client):
        _session_cookie(reports_client, [], [])
        assert reports_client.get("/api/ping").status_code == 200

    def test_policy_denies(self, reports_client):
        _session_cookie(reports_client, ["Auditor"], [])
        response = reports_client.get("/api/reports/3")
        assert response.status_code == 403
        assert response.json()["detail"] == "You don't have permission to access this resource"

    def test_policy_allows(self, reports_client):
        _session_cookie(reports_client, ["auditor"], ["ViewReports"])
        response = reports_client.get("/api/reports/3")
        assert response.status_code == 200
        assert response.json() == {"id": 3}


class TestDefaultPolicy:
    def test_read_only_role_cannot_list_tasks(self, client, login, make_user):
        login(make_user("viewer@example.com", roles=["ReadOnly"]))
        assert client.get("/api/tasks").status_code == 403

    def test_user_cannot_list_all_tasks(self, client, login, user):
        login(user)
        assert client.get("/api/tasks/all").status_code == 403

    def test_admin_lists_all_tasks(self, client, login, admin):
        login(admin)
        assert client.get("/api/tasks/all").status_code == 200

    def test_manager_is_not_admin(self, client, login, make_user):
        login(make_user("manager@example.com", roles=["Manager"]))
        assert client.get("/api/users").status_code == 403

    def test_auth_routes_are_exempt(self, client):
        response = client.post("/api/auth/register", json={"email": "new@example.com", "password": "secret123"})
        assert response.status_code == 201
