"""
Tests for user and role administration.
"""

import pytest

from todo_api.services.users import get_role_by_name


@pytest.fixture
def admin_client(client, login, admin):
    login(admin)
    return client


def test_list_users(admin_client, user):
    emails = [u["email"] for u in admin_client.get("/api/users").json()]
    assert emails == ["admin@example.com", "alice@example.com"]


def test_assign_roles(admin_client, user):
    response = admin_client.put(f"/api/users/{user.id}", json={"roles": ["User", "Manager"]})

    assert response.status_code == 200
    assert response.json()["roles"] == ["Manager", "User"]
    assert "ViewAllTodos" in response.json()["permissions"]


def test_assign_unknown_role(admin_client, user):
    response = admin_client.put(f"/api/users/{user.id}", json={"roles": ["Ghost"]})
    assert response.status_code == 400


def test_deactivate_user(admin_client, client, login, user):
    admin_client.put(f"/api/users/{user.id}", json={"is_active": False})

    login(user)
    assert client.get("/api/auth/me").status_code == 401


def test_role_lifecycle(admin_client):
    created = admin_client.post("/api/roles", json={"name": "Auditor", "permissions": ["ViewUsers"]})
    assert created.status_code == 201
    role = created.json()
    assert role["permissions"] == ["ViewUsers"]

    updated = admin_client.put(f"/api/roles/{role['id']}/permissions", json={"permissions": ["ViewStatistics", "ViewRoles"]})
    assert updated.json()["permissions"] == ["ViewRoles", "ViewStatistics"]

    assert admin_client.delete(f"/api/roles/{role['id']}").status_code == 204
    assert admin_client.get(f"/api/roles/{role['id']}").status_code == 404


def test_role_in_use_cannot_be_deleted(admin_client, db, user):
    role = get_role_by_name(db, "User")
    response = admin_client.delete(f"/api/roles/{role.id}")
    assert response.status_code == 400


def test_unknown_permission(admin_client):
    response = admin_client.post("/api/roles", json={"name": "Broken", "permissions": ["FlyPlanes"]})
    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown permission: FlyPlanes"


def test_list_permissions_by_category(admin_client):
    permissions = admin_client.get("/api/roles/permissions", params={"category": "RoleManagement"}).json()
    assert [p["name"] for p in permissions] == ["ManagePermissions", "ManageRoles", "ViewRoles"]
