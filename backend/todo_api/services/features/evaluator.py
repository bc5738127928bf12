"""
Feature evaluation engine.

Resolution order for (feature, user, roles, now):
1. Unknown feature -> disabled (fail closed, not an error)
2. Outside the availability window -> disabled, whatever the overrides say
3. User override -> its value
4. Role overrides -> enabled if any of the user's roles is enabled,
   disabled if the user's roles only carry disabled overrides
5. enabled_by_default
"""
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence
from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess, UserFeatureFlag
from todo_api.services.clock import Clock, ensure_utc, system_clock
from todo_api.services.features.stores import (
    FeatureDefinitionStore,
    RoleFeatureAccessStore,
    UserFeatureFlagStore,
)


def is_feature_time_valid(feature: Optional[FeatureDefinition], now: datetime) -> bool:
    """True if ``now`` falls inside the feature's availability window (bounds inclusive)."""
    if feature is None:
        return False

    now = ensure_utc(now)
    available_from = ensure_utc(feature.available_from)
    available_until = ensure_utc(feature.available_until)

    if available_from is not None and now < available_from:
        return False
    if available_until is not None and now > available_until:
        return False
    return True


def resolve_feature(
    feature: FeatureDefinition,
    user_flag: Optional[UserFeatureFlag],
    role_access: Sequence[RoleFeatureAccess],
    now: datetime,
) -> bool:
    """Pure precedence decision given already-loaded overrides."""
    if not is_feature_time_valid(feature, now):
        return False

    if user_flag is not None:
        return user_flag.is_enabled

    if role_access:
        # Entitlements are additive across roles
        return any(access.is_enabled for access in role_access)

    return feature.enabled_by_default


class FeatureEvaluator:
    """Read-only evaluation over the feature stores."""

    def __init__(
        self,
        definitions: FeatureDefinitionStore,
        role_access: RoleFeatureAccessStore,
        user_flags: UserFeatureFlagStore,
        clock: Clock = system_clock,
    ):
        self.definitions = definitions
        self.role_access = role_access
        self.user_flags = user_flags
        self.clock = clock

    @classmethod
    def for_session(cls, db, clock: Clock = system_clock) -> "FeatureEvaluator":
        return cls(
            FeatureDefinitionStore(db),
            RoleFeatureAccessStore(db),
            UserFeatureFlagStore(db),
            clock=clock,
        )

    def is_enabled(
        self,
        feature_name: str,
        user_id: int,
        roles: Iterable[int],
        now: Optional[datetime] = None,
    ) -> bool:
        feature = self.definitions.get_by_name(feature_name)
        if feature is None:
            return False
        return self._evaluate(feature, user_id, list(roles), now or self.clock.now())

    def effective_features(
        self,
        user_id: int,
        roles: Iterable[int],
        now: Optional[datetime] = None,
    ) -> Dict[str, bool]:
        """Evaluate every defined feature for one user."""
        role_ids = list(roles)
        now = now or self.clock.now()
        return {
            feature.name: self._evaluate(feature, user_id, role_ids, now)
            for feature in self.definitions.list()
        }

    def _evaluate(self, feature: FeatureDefinition, user_id: int, role_ids: list, now: datetime) -> bool:
        # Skip the override lookups when the window already rules the feature out
        if not is_feature_time_valid(feature, now):
            return False
        user_flag = self.user_flags.get(feature.id, user_id)
        role_access = [] if user_flag is not None else self.role_access.list_for_roles(feature.id, role_ids)
        return resolve_feature(feature, user_flag, role_access, now)


def is_feature_enabled(db, feature_name: str, user_id: int, roles: Iterable[int], now: Optional[datetime] = None) -> bool:
    """Convenience wrapper used at the HTTP boundary."""
    return FeatureEvaluator.for_session(db).is_enabled(feature_name, user_id, roles, now)
