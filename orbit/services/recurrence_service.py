"""
Recurrence evaluation service.
Decides whether a recurring task is due on a given calendar date.
"""
import json
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from orbit.constants import RULE_TYPE_DAILY, RULE_TYPE_WEEKLY, RULE_TYPE_WEEKDAYS
from orbit.exceptions import ValidationException


@dataclass(frozen=True)
class DailyRule:
    pass


@dataclass(frozen=True)
class WeeklyRule:
    # Monday=0 .. Sunday=6; None means "weekday of the task's creation date"
    anchor_weekday: Optional[int] = None


@dataclass(frozen=True)
class WeekdaysRule:
    weekdays: frozenset


RuleSpec = Union[DailyRule, WeeklyRule, WeekdaysRule]


def _validate_weekday(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise ValidationException(field, f"{value!r} is not a weekday (0-6)")
    return value


class RecurrenceService:
    """Service for recurrence rule parsing and evaluation"""

    @staticmethod
    def parse_rule(rule_type: str, rule_config: Optional[str] = None) -> RuleSpec:
        """
        Convert a stored rule row into its variant.

        Args:
            rule_type: "daily", "weekly" or "weekdays"
            rule_config: JSON object string, may be empty

        Returns:
            DailyRule, WeeklyRule or WeekdaysRule

        Raises:
            ValidationException: On unknown types or malformed config
        """
        try:
            config = json.loads(rule_config) if rule_config else {}
        except json.JSONDecodeError:
            raise ValidationException("rule_config", f"invalid JSON: {rule_config!r}")
        if not isinstance(config, dict):
            raise ValidationException("rule_config", "must be a JSON object")

        if rule_type == RULE_TYPE_DAILY:
            return DailyRule()

        if rule_type == RULE_TYPE_WEEKLY:
            anchor = config.get("anchor_weekday")
            if anchor is not None:
                anchor = _validate_weekday(anchor, "anchor_weekday")
            return WeeklyRule(anchor_weekday=anchor)

        if rule_type == RULE_TYPE_WEEKDAYS:
            days = config.get("weekdays") or []
            if not isinstance(days, list) or not days:
                raise ValidationException("weekdays", "must be a non-empty list")
            return WeekdaysRule(weekdays=frozenset(_validate_weekday(d, "weekdays") for d in days))

        raise ValidationException("rule_type", f"unknown rule type '{rule_type}'")

    @staticmethod
    def is_due(rule: RuleSpec, candidate_date: date, task_created_date: Optional[date]) -> bool:
        """
        Check whether an occurrence is due on candidate_date.

        Weekly rules without an explicit anchor use the weekday of the
        task's creation date; when that is unknown the rule is never due.

        Args:
            rule: Parsed rule variant
            candidate_date: Calendar date being materialized
            task_created_date: Logical day the task was created on

        Returns:
            True if an obligation should exist for that date
        """
        if isinstance(rule, DailyRule):
            return True

        if isinstance(rule, WeeklyRule):
            anchor = rule.anchor_weekday
            if anchor is None:
                if task_created_date is None:
                    return False
                anchor = task_created_date.weekday()
            return candidate_date.weekday() == anchor

        if isinstance(rule, WeekdaysRule):
            return candidate_date.weekday() in rule.weekdays

        raise TypeError(f"Unhandled recurrence rule: {rule!r}")
