"""
Feature administration service.

Feature CRUD plus user/role override upserts and resets. Raises
NotFoundError for unknown features, users, roles and overrides, and
ValidationError for rejected input; nothing is written when either is raised.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess, UserFeatureFlag
from todo_api.models.user import User, Role
from todo_api.services.clock import ensure_utc
from todo_api.services.features.stores import (
    FeatureDefinitionStore,
    RoleFeatureAccessStore,
    UserFeatureFlagStore,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _validate_window(available_from: Optional[datetime], available_until: Optional[datetime]):
    if available_from is not None and available_until is not None:
        if ensure_utc(available_from) > ensure_utc(available_until):
            raise ValidationError("available_from must be on or before available_until")


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Feature name is required")
    if len(name) > 100:
        raise ValidationError("Feature name must be at most 100 characters")
    return name


def list_features(db: Session) -> List[FeatureDefinition]:
    return FeatureDefinitionStore(db).list()


def get_feature(db: Session, feature_id: int) -> FeatureDefinition:
    feature = FeatureDefinitionStore(db).get_by_id(feature_id)
    if not feature:
        raise NotFoundError("Feature not found")
    return feature


def get_feature_by_name(db: Session, name: str) -> FeatureDefinition:
    feature = FeatureDefinitionStore(db).get_by_name(name)
    if not feature:
        raise NotFoundError("Feature not found")
    return feature


def create_feature(
    db: Session,
    name: str,
    description: Optional[str] = None,
    enabled_by_default: bool = True,
    available_from: Optional[datetime] = None,
    available_until: Optional[datetime] = None,
    enabled_for_roles: Optional[List[str]] = None,
) -> FeatureDefinition:
    """
    Create a feature definition.

    ``enabled_for_roles`` lists role names that get an enabled role override
    right away. Unknown role names are rejected before anything is written.
    """
    store = FeatureDefinitionStore(db)
    name = _validate_name(name)
    _validate_window(available_from, available_until)

    if store.get_by_name(name):
        raise ValidationError("A feature with this name already exists")

    roles = []
    for role_name in enabled_for_roles or []:
        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            raise ValidationError(f"Unknown role: {role_name}")
        roles.append(role)

    feature = FeatureDefinition(
        name=name,
        description=description,
        enabled_by_default=enabled_by_default,
        available_from=ensure_utc(available_from),
        available_until=ensure_utc(available_until),
    )
    store.upsert(feature)

    access_store = RoleFeatureAccessStore(db)
    for role in roles:
        access_store.set(feature.id, role.id, True)

    db.commit()
    db.refresh(feature)
    logger.info(f"Created feature {feature.name} (id={feature.id})")
    return feature


def update_feature(
    db: Session,
    feature_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    enabled_by_default: Optional[bool] = None,
    available_from=_UNSET,
    available_until=_UNSET,
    clear_time_restrictions: bool = False,
) -> FeatureDefinition:
    """
    Partially update a feature.

    Window bounds are only touched when passed; ``clear_time_restrictions``
    removes both bounds and wins over any bound passed alongside it.
    """
    store = FeatureDefinitionStore(db)
    feature = get_feature(db, feature_id)

    if name is not None and name != feature.name:
        name = _validate_name(name)
        existing = store.get_by_name(name)
        if existing and existing.id != feature.id:
            raise ValidationError("A feature with this name already exists")

    new_from = feature.available_from if available_from is _UNSET else available_from
    new_until = feature.available_until if available_until is _UNSET else available_until
    if clear_time_restrictions:
        new_from, new_until = None, None
    _validate_window(new_from, new_until)

    if name is not None:
        feature.name = name
    if description is not None:
        feature.description = description
    if enabled_by_default is not None:
        feature.enabled_by_default = enabled_by_default
    feature.available_from = ensure_utc(new_from)
    feature.available_until = ensure_utc(new_until)

    store.upsert(feature)
    db.commit()
    db.refresh(feature)
    logger.info(f"Updated feature {feature.name} (id={feature.id})")
    return feature


def delete_feature(db: Session, feature_id: int) -> None:
    feature = get_feature(db, feature_id)
    name = feature.name
    FeatureDefinitionStore(db).delete(feature)
    db.commit()
    logger.info(f"Deleted feature {name} (id={feature_id})")


# User overrides

def list_user_feature_flags(db: Session, user_id: int) -> List[UserFeatureFlag]:
    return UserFeatureFlagStore(db).list_for_user(user_id)


def get_user_feature_flag(db: Session, feature_id: int, user_id: int) -> UserFeatureFlag:
    flag = UserFeatureFlagStore(db).get(feature_id, user_id)
    if not flag:
        raise NotFoundError("User feature flag not found")
    return flag


def set_user_feature_flag(db: Session, feature_id: int, user_id: int, is_enabled: bool) -> UserFeatureFlag:
    get_feature(db, feature_id)
    if not db.query(User).filter(User.id == user_id).first():
        raise NotFoundError("User not found")

    flag = UserFeatureFlagStore(db).set(feature_id, user_id, is_enabled)
    db.commit()
    db.refresh(flag)
    logger.info(f"Set feature {feature_id} for user {user_id} to {is_enabled}")
    return flag


def reset_user_feature_flag(db: Session, feature_id: int, user_id: int) -> None:
    """Remove the user override so role/default resolution applies again."""
    store = UserFeatureFlagStore(db)
    flag = store.get(feature_id, user_id)
    if not flag:
        raise NotFoundError("User feature flag not found")
    store.remove(flag)
    db.commit()
    logger.info(f"Reset feature {feature_id} for user {user_id} to default")


# Role overrides

def list_role_feature_access(db: Session, feature_id: int) -> List[RoleFeatureAccess]:
    get_feature(db, feature_id)
    return RoleFeatureAccessStore(db).list_for_feature(feature_id)


def get_role_feature_access(db: Session, feature_id: int, role_id: int) -> RoleFeatureAccess:
    access = RoleFeatureAccessStore(db).get(feature_id, role_id)
    if not access:
        raise NotFoundError("Role feature access not found")
    return access


def set_role_feature_access(db: Session, feature_id: int, role_id: int, is_enabled: bool) -> RoleFeatureAccess:
    get_feature(db, feature_id)
    if not db.query(Role).filter(Role.id == role_id).first():
        raise NotFoundError("Role not found")

    access = RoleFeatureAccessStore(db).set(feature_id, role_id, is_enabled)
    db.commit()
    db.refresh(access)
    logger.info(f"Set feature {feature_id} for role {role_id} to {is_enabled}")
    return access


def reset_role_feature_access(db: Session, feature_id: int, role_id: int) -> None:
    store = RoleFeatureAccessStore(db)
    access = store.get(feature_id, role_id)
    if not access:
        raise NotFoundError("Role feature access not found")
    store.remove(access)
    db.commit()
    logger.info(f"Reset feature {feature_id} for role {role_id}")
