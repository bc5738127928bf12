"""
Tests for the pure recurrence computations.
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from todo_api.core.errors import InvalidCronExpression, ValidationError
from todo_api.models.recurrence import RecurrenceType
from todo_api.services.recurrence import (
    RecurrenceRule,
    RuleState,
    default_cron_evaluator,
    next_occurrence,
    pending_occurrences,
    process_due,
    rule_state,
    validate_rule,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def advance(rule: RecurrenceRule) -> RecurrenceRule:
    """Use the next occurrence as the new anchor."""
    return replace(rule, last_processed_date=next_occurrence(rule))


class TestDaily:
    def test_interval_two_round_trip(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1), interval=2)

        seen = []
        for _ in range(3):
            seen.append(next_occurrence(rule))
            rule = advance(rule)

        assert seen == [utc(2024, 1, 3), utc(2024, 1, 5), utc(2024, 1, 7)]

    def test_next_occurrence_does_not_mutate(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1))
        next_occurrence(rule)
        assert rule.last_processed_date is None
        assert rule.next_processing_date is None

    def test_none_type_has_no_occurrence(self):
        rule = RecurrenceRule(RecurrenceType.NONE, start_date=utc(2024, 1, 1))
        assert next_occurrence(rule) is None

    def test_naive_start_is_treated_as_utc(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=datetime(2024, 1, 1))
        assert next_occurrence(rule) == utc(2024, 1, 2)


class TestWeekly:
    def test_keeps_weekday_without_day_of_week(self):
        # 2024-01-03 is a Wednesday
        rule = RecurrenceRule(RecurrenceType.WEEKLY, start_date=utc(2024, 1, 3))
        assert next_occurrence(rule) == utc(2024, 1, 10)

    def test_moves_to_day_of_week_on_or_after(self):
        rule = RecurrenceRule(RecurrenceType.WEEKLY, start_date=utc(2024, 1, 3), day_of_week=4)
        assert next_occurrence(rule) == utc(2024, 1, 12)

    def test_raw_increment_already_on_day_of_week(self):
        rule = RecurrenceRule(RecurrenceType.WEEKLY, start_date=utc(2024, 1, 3), day_of_week=2)
        assert next_occurrence(rule) == utc(2024, 1, 10)

    def test_interval(self):
        rule = RecurrenceRule(RecurrenceType.WEEKLY, start_date=utc(2024, 1, 1), interval=2)
        assert next_occurrence(rule) == utc(2024, 1, 15)


class TestMonthly:
    def test_day_31_clamps_to_end_of_april(self):
        rule = RecurrenceRule(RecurrenceType.MONTHLY, start_date=utc(2024, 3, 31), day_of_month=31)
        assert next_occurrence(rule) == utc(2024, 4, 30)

    def test_clamp_does_not_drift(self):
        rule = RecurrenceRule(RecurrenceType.MONTHLY, start_date=utc(2024, 1, 31), day_of_month=31)

        seen = []
        for _ in range(3):
            seen.append(next_occurrence(rule))
            rule = advance(rule)

        assert seen == [utc(2024, 2, 29), utc(2024, 3, 31), utc(2024, 4, 30)]

    def test_defaults_to_start_day(self):
        rule = RecurrenceRule(RecurrenceType.MONTHLY, start_date=utc(2024, 1, 15, 9, 30))
        assert next_occurrence(rule) == utc(2024, 2, 15, 9, 30)

    def test_quarterly_is_three_months(self):
        rule = RecurrenceRule(RecurrenceType.QUARTERLY, start_date=utc(2024, 1, 31))
        assert next_occurrence(rule) == utc(2024, 4, 30)


class TestYearly:
    def test_feb_29_clamps_in_non_leap_year(self):
        rule = RecurrenceRule(RecurrenceType.YEARLY, start_date=utc(2024, 2, 29))
        assert next_occurrence(rule) == utc(2025, 2, 28)

    def test_returns_to_feb_29_in_next_leap_year(self):
        rule = RecurrenceRule(RecurrenceType.YEARLY, start_date=utc(2024, 2, 29), interval=4)
        assert next_occurrence(rule) == utc(2028, 2, 29)


class TestCustom:
    def test_delegates_to_cron_evaluator(self):
        rule = RecurrenceRule(
            RecurrenceType.CUSTOM,
            start_date=utc(2024, 1, 1, 10, 0),
            custom_cron_expression="0 9 * * *",
        )
        assert next_occurrence(rule, default_cron_evaluator) == utc(2024, 1, 2, 9, 0)

    def test_requires_evaluator(self):
        rule = RecurrenceRule(RecurrenceType.CUSTOM, start_date=utc(2024, 1, 1), custom_cron_expression="0 9 * * *")
        with pytest.raises(InvalidCronExpression):
            next_occurrence(rule)


class TestEndDate:
    def test_exhausted_series_is_stable(self):
        rule = RecurrenceRule(
            RecurrenceType.DAILY,
            start_date=utc(2024, 1, 1),
            end_date=utc(2024, 1, 1, 12),
        )

        assert next_occurrence(rule) is None
        assert next_occurrence(rule) is None
        assert process_due(rule, utc(2030, 1, 1)) is None
        assert rule.last_processed_date is None

    def test_occurrence_on_end_date_is_included(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1), end_date=utc(2024, 1, 2))
        assert next_occurrence(rule) == utc(2024, 1, 2)


class TestProcessDue:
    def test_not_due_yet(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1))
        assert process_due(rule, utc(2024, 1, 1, 23, 59)) is None

    def test_advances_rule(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1))
        due = process_due(rule, utc(2024, 1, 2))

        assert due.occurrence_date == utc(2024, 1, 2)
        assert due.rule.last_processed_date == utc(2024, 1, 2)
        assert due.rule.next_processing_date == utc(2024, 1, 3)
        assert rule.last_processed_date is None

    def test_catch_up_is_in_order(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1))
        dates = [due.occurrence_date for due in pending_occurrences(rule, utc(2024, 1, 4, 6))]
        assert dates == [utc(2024, 1, 2), utc(2024, 1, 3), utc(2024, 1, 4)]

    def test_last_occurrence_before_end_leaves_no_next(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1), end_date=utc(2024, 1, 2))
        due = process_due(rule, utc(2024, 1, 5))
        assert due.rule.next_processing_date is None


class TestRuleState:
    def test_lifecycle(self):
        rule = RecurrenceRule(RecurrenceType.DAILY, start_date=utc(2024, 1, 1), end_date=utc(2024, 1, 3))
        assert rule_state(rule) == RuleState.PENDING

        rule = process_due(rule, utc(2024, 1, 2)).rule
        assert rule_state(rule) == RuleState.ACTIVE

        rule = process_due(rule, utc(2024, 1, 3)).rule
        assert rule_state(rule) == RuleState.EXHAUSTED

    def test_cancelled(self):
        assert rule_state(None) == RuleState.CANCELLED
        assert rule_state(RecurrenceRule(RecurrenceType.NONE, start_date=utc(2024, 1, 1))) == RuleState.CANCELLED


class TestValidateRule:
    @pytest.mark.parametrize("changes", [
        {"interval": 0},
        {"day_of_month": 32},
        {"day_of_month": 0},
        {"day_of_week": 7},
        {"end_date": utc(2023, 12, 31)},
    ])
    def test_rejects_malformed(self, changes):
        rule = replace(RecurrenceRule(RecurrenceType.MONTHLY, start_date=utc(2024, 1, 1)), **changes)
        with pytest.raises(ValidationError):
            validate_rule(rule)

    def test_custom_requires_expression(self):
        rule = RecurrenceRule(RecurrenceType.CUSTOM, start_date=utc(2024, 1, 1))
        with pytest.raises(InvalidCronExpression):
            validate_rule(rule)

    def test_custom_expression_checked_with_evaluator(self):
        rule = RecurrenceRule(RecurrenceType.CUSTOM, start_date=utc(2024, 1, 1), custom_cron_expression="61 * * * *")
        validate_rule(rule)
        with pytest.raises(InvalidCronExpression):
            validate_rule(rule, default_cron_evaluator)
