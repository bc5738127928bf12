"""
Recurrence scheduling for tasks and expenses.
"""
from todo_api.services.recurrence.rules import RecurrenceRule, rule_from_model, apply_to_model, validate_rule
from todo_api.services.recurrence.scheduler import (
    DueOccurrence,
    RuleState,
    next_occurrence,
    process_due,
    pending_occurrences,
    rule_state,
)
from todo_api.services.recurrence.cron import CronEvaluator, CronTriggerEvaluator, default_cron_evaluator
from todo_api.services.recurrence.recurring import Recurring

__all__ = [
    "RecurrenceRule",
    "rule_from_model",
    "apply_to_model",
    "validate_rule",
    "DueOccurrence",
    "RuleState",
    "next_occurrence",
    "process_due",
    "pending_occurrences",
    "rule_state",
    "CronEvaluator",
    "CronTriggerEvaluator",
    "default_cron_evaluator",
    "Recurring",
]
