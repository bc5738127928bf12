"""
SQLAlchemy-backed stores for feature definitions and entitlement overrides.

The evaluator only reads through these; administrative writes go through
``set``/``remove`` which keep the (feature, role) and (feature, user)
uniqueness constraints by updating an existing row instead of inserting a
duplicate. Stores flush but never commit; the calling service owns the
transaction.
"""
import logging
from typing import Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess, UserFeatureFlag

logger = logging.getLogger(__name__)


class FeatureDefinitionStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_name(self, name: str) -> Optional[FeatureDefinition]:
        return self.db.query(FeatureDefinition).filter(FeatureDefinition.name == name).first()

    def get_by_id(self, feature_id: int) -> Optional[FeatureDefinition]:
        return self.db.query(FeatureDefinition).filter(FeatureDefinition.id == feature_id).first()

    def list(self) -> List[FeatureDefinition]:
        return self.db.query(FeatureDefinition).order_by(FeatureDefinition.name).all()

    def upsert(self, feature: FeatureDefinition) -> FeatureDefinition:
        if feature.id is None:
            self.db.add(feature)
        self.db.flush()
        return feature

    def delete(self, feature: FeatureDefinition) -> None:
        self.db.delete(feature)
        self.db.flush()


class RoleFeatureAccessStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, feature_id: int, role_id: int) -> Optional[RoleFeatureAccess]:
        return self.db.query(RoleFeatureAccess).filter(
            RoleFeatureAccess.feature_id == feature_id,
            RoleFeatureAccess.role_id == role_id
        ).first()

    def list_for_feature(self, feature_id: int) -> List[RoleFeatureAccess]:
        return self.db.query(RoleFeatureAccess).filter(
            RoleFeatureAccess.feature_id == feature_id
        ).order_by(RoleFeatureAccess.role_id).all()

    def list_for_roles(self, feature_id: int, role_ids: Iterable[int]) -> List[RoleFeatureAccess]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        return self.db.query(RoleFeatureAccess).filter(
            RoleFeatureAccess.feature_id == feature_id,
            RoleFeatureAccess.role_id.in_(role_ids)
        ).all()

    def set(self, feature_id: int, role_id: int, is_enabled: bool) -> RoleFeatureAccess:
        access = self.get(feature_id, role_id)
        if access:
            access.is_enabled = is_enabled
            self.db.flush()
            return access

        access = RoleFeatureAccess(feature_id=feature_id, role_id=role_id, is_enabled=is_enabled)
        try:
            with self.db.begin_nested():
                self.db.add(access)
        except IntegrityError:
            # A concurrent writer created the row first; last writer wins
            logger.info(f"Role feature access ({feature_id}, {role_id}) created concurrently, updating instead")
            access = self.get(feature_id, role_id)
            access.is_enabled = is_enabled
            self.db.flush()
        return access

    def remove(self, access: RoleFeatureAccess) -> None:
        self.db.delete(access)
        self.db.flush()


class UserFeatureFlagStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, feature_id: int, user_id: int) -> Optional[UserFeatureFlag]:
        return self.db.query(UserFeatureFlag).filter(
            UserFeatureFlag.feature_id == feature_id,
            UserFeatureFlag.user_id == user_id
        ).first()

    def list_for_user(self, user_id: int) -> List[UserFeatureFlag]:
        return self.db.query(UserFeatureFlag).filter(
            UserFeatureFlag.user_id == user_id
        ).order_by(UserFeatureFlag.feature_id).all()

    def set(self, feature_id: int, user_id: int, is_enabled: bool) -> UserFeatureFlag:
        flag = self.get(feature_id, user_id)
        if flag:
            flag.is_enabled = is_enabled
            self.db.flush()
            return flag

        flag = UserFeatureFlag(feature_id=feature_id, user_id=user_id, is_enabled=is_enabled)
        try:
            with self.db.begin_nested():
                self.db.add(flag)
        except IntegrityError:
            logger.info(f"User feature flag ({feature_id}, {user_id}) created concurrently, updating instead")
            flag = self.get(feature_id, user_id)
            flag.is_enabled = is_enabled
            self.db.flush()
        return flag

    def remove(self, flag: UserFeatureFlag) -> None:
        self.db.delete(flag)
        self.db.flush()
