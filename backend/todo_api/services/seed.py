"""
Default roles, permissions and feature definitions.

Seeding is idempotent: existing rows are left untouched, missing ones are
created. Runs on startup when SEED_DEFAULT_DATA is enabled.
"""
import logging
from sqlalchemy.orm import Session
from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess
from todo_api.models.user import Role, Permission

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    "Admin": "Administrator role with full access to all features",
    "User": "Standard user role with limited access",
    "Manager": "Manager role with access to manage team members",
    "ReadOnly": "Read-only role with view-only access",
}

# category -> [(name, description)]
DEFAULT_PERMISSIONS = {
    "UserManagement": [
        ("ViewUsers", "Can view user list"),
        ("CreateUsers", "Can create users"),
        ("UpdateUsers", "Can update users"),
        ("DeleteUsers", "Can delete users"),
        ("ManageUserRoles", "Can manage user roles"),
    ],
    "RoleManagement": [
        ("ViewRoles", "Can view role list"),
        ("ManageRoles", "Can manage roles"),
        ("ManagePermissions", "Can manage permissions"),
    ],
    "ToDoManagement": [
        ("ViewAllTodos", "Can view all users' todos"),
        ("ManageAllTodos", "Can manage all users' todos"),
        ("ExportTodos", "Can export todos to file"),
        ("ImportTodos", "Can import todos from file"),
    ],
    "SystemManagement": [
        ("ViewSystemLogs", "Can view system logs"),
        ("ManageSettings", "Can manage application settings"),
        ("ViewStatistics", "Can view system statistics"),
        ("ViewAllExpenses", "Can view all users' expenses"),
    ],
}

# Admin gets every permission
ROLE_PERMISSIONS = {
    "User": ["ViewUsers"],
    "Manager": ["ViewUsers", "ViewRoles", "ViewAllTodos", "ManageAllTodos", "ExportTodos", "ViewStatistics"],
    "ReadOnly": ["ViewUsers", "ViewRoles", "ViewAllTodos", "ViewStatistics"],
}

DEFAULT_FEATURES = {
    "TodoApp": "Todo task management features",
    "ExpenseApp": "Expense tracking and budgeting features",
}

# Roles with an explicit enabled override for every default feature
FEATURE_ROLES = ["Admin", "User"]


def seed_roles(db: Session) -> dict:
    roles = {role.name: role for role in db.query(Role).all()}
    for name, description in DEFAULT_ROLES.items():
        if name not in roles:
            roles[name] = Role(name=name, description=description)
            db.add(roles[name])
            logger.info(f"Seeded role {name}")
    db.flush()
    return roles


def seed_permissions(db: Session, roles: dict) -> None:
    permissions = {permission.name: permission for permission in db.query(Permission).all()}
    for category, entries in DEFAULT_PERMISSIONS.items():
        for name, description in entries:
            if name not in permissions:
                permissions[name] = Permission(name=name, description=description, category=category)
                db.add(permissions[name])
    db.flush()

    assignments = dict(ROLE_PERMISSIONS)
    assignments["Admin"] = list(permissions.keys())
    for role_name, permission_names in assignments.items():
        role = roles.get(role_name)
        if role is None:
            continue
        for permission_name in permission_names:
            permission = permissions[permission_name]
            if permission not in role.permissions:
                role.permissions.append(permission)
    db.flush()


def seed_features(db: Session, roles: dict) -> None:
    for name, description in DEFAULT_FEATURES.items():
        feature = db.query(FeatureDefinition).filter(FeatureDefinition.name == name).first()
        if not feature:
            feature = FeatureDefinition(name=name, description=description, enabled_by_default=True)
            db.add(feature)
            db.flush()
            logger.info(f"Seeded feature {name}")

        for role_name in FEATURE_ROLES:
            role = roles.get(role_name)
            if role is None:
                continue
            exists = db.query(RoleFeatureAccess).filter(
                RoleFeatureAccess.feature_id == feature.id,
                RoleFeatureAccess.role_id == role.id
            ).first()
            if not exists:
                db.add(RoleFeatureAccess(feature_id=feature.id, role_id=role.id, is_enabled=True))
    db.flush()


def seed_default_data(db: Session) -> None:
    """Seed roles, permissions and features in one transaction."""
    try:
        roles = seed_roles(db)
        seed_permissions(db, roles)
        seed_features(db, roles)
        db.commit()
        logger.info("Default roles, permissions and features seeded")
    except Exception:
        db.rollback()
        logger.error("Seeding default data failed", exc_info=True)
        raise
