"""
Tests for default data seeding and the health endpoint.
"""

from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess
from todo_api.models.user import Permission, Role
from todo_api.services.seed import DEFAULT_PERMISSIONS, seed_default_data
from todo_api.services.users import get_role_by_name


def test_seed_is_idempotent(db):
    seed_default_data(db)
    seed_default_data(db)

    assert db.query(Role).count() == 4
    assert db.query(Permission).count() == sum(len(p) for p in DEFAULT_PERMISSIONS.values())
    assert db.query(FeatureDefinition).count() == 2
    # TodoApp and ExpenseApp enabled for Admin and User
    assert db.query(RoleFeatureAccess).filter(RoleFeatureAccess.is_enabled == True).count() == 4


def test_admin_holds_every_permission(db):
    admin = get_role_by_name(db, "Admin")
    assert len(admin.permissions) == db.query(Permission).count()


def test_read_only_permissions(db):
    read_only = get_role_by_name(db, "ReadOnly")
    assert sorted(p.name for p in read_only.permissions) == ["ViewAllTodos", "ViewRoles", "ViewStatistics", "ViewUsers"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
