"""
Feature flags and entitlements.
"""
from todo_api.services.features.evaluator import (
    FeatureEvaluator,
    is_feature_time_valid,
    resolve_feature,
    is_feature_enabled,
)
from todo_api.services.features.stores import (
    FeatureDefinitionStore,
    RoleFeatureAccessStore,
    UserFeatureFlagStore,
)
from todo_api.services.features.management import (
    list_features,
    get_feature,
    get_feature_by_name,
    create_feature,
    update_feature,
    delete_feature,
    list_user_feature_flags,
    get_user_feature_flag,
    set_user_feature_flag,
    reset_user_feature_flag,
    list_role_feature_access,
    get_role_feature_access,
    set_role_feature_access,
    reset_role_feature_access,
)

# Features gating the two application areas
TODO_APP = "TodoApp"
EXPENSE_APP = "ExpenseApp"

__all__ = [
    "FeatureEvaluator",
    "is_feature_time_valid",
    "resolve_feature",
    "is_feature_enabled",
    "FeatureDefinitionStore",
    "RoleFeatureAccessStore",
    "UserFeatureFlagStore",
    "list_features",
    "get_feature",
    "get_feature_by_name",
    "create_feature",
    "update_feature",
    "delete_feature",
    "list_user_feature_flags",
    "get_user_feature_flag",
    "set_user_feature_flag",
    "reset_user_feature_flag",
    "list_role_feature_access",
    "get_role_feature_access",
    "set_role_feature_access",
    "reset_role_feature_access",
    "TODO_APP",
    "EXPENSE_APP",
]
