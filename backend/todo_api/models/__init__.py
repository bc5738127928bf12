"""
Database models.
"""
from todo_api.models.user import User, Role, Permission, user_roles, role_permissions
from todo_api.models.feature import FeatureDefinition, RoleFeatureAccess, UserFeatureFlag
from todo_api.models.recurrence import RecurrenceType, RecurrenceRuleMixin
from todo_api.models.task import (
    TodoTask,
    TaskRecurrence,
    TaskStatus,
    TaskPriority,
    TaskCategory,
    Tag,
    TodoNote,
    TaskReminder,
    task_tags,
)
from todo_api.models.expense import Expense, ExpenseRecurrence, ExpenseType, Budget, BudgetPeriod

__all__ = [
    "User",
    "Role",
    "Permission",
    "user_roles",
    "role_permissions",
    "FeatureDefinition",
    "RoleFeatureAccess",
    "UserFeatureFlag",
    "RecurrenceType",
    "RecurrenceRuleMixin",
    "TodoTask",
    "TaskRecurrence",
    "TaskStatus",
    "TaskPriority",
    "TaskCategory",
    "Tag",
    "TodoNote",
    "TaskReminder",
    "task_tags",
    "Expense",
    "ExpenseRecurrence",
    "ExpenseType",
    "Budget",
    "BudgetPeriod",
]
