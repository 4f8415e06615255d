"""Cross-field validation: conditions and step-level group rules."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from claimflow.wizard.models import Condition, CrossFieldRule
from claimflow.wizard.validators.common import is_blank


def condition_holds(condition: Condition | None, data: dict[str, Any]) -> bool:
    """Evaluate a Condition against the answer set. ``None`` always holds."""
    if condition is None:
        return True

    actual = data.get(condition.field)
    if condition.present is not None:
        return (not is_blank(actual)) == condition.present
    if condition.contains is not None:
        return isinstance(actual, (list, tuple, set)) and condition.contains in actual
    if condition.not_equals is not None:
        return actual != condition.not_equals
    return actual == condition.equals


class CrossFieldValidator:
    """Validates relationships between fields of one step.

    Rule types:
    - at_least_one: one of ``fields`` must be non-empty; on failure every
      field in the group receives the same message
    - mutual_exclusion: field_a and field_b cannot both be set
    - date_order: field_a <= field_b
    """

    def validate(
        self, rules: list[CrossFieldRule], data: dict[str, Any]
    ) -> dict[str, list[str]]:
        """Validate rules against the answer set.

        Returns:
            Dict mapping field IDs to lists of error messages. Empty dict means valid.
        """
        errors: dict[str, list[str]] = {}

        for rule in rules:
            for field_id, msgs in self.check_rule(rule, data).items():
                errors.setdefault(field_id, []).extend(msgs)

        return errors

    def check_rule(
        self, rule: CrossFieldRule, data: dict[str, Any]
    ) -> dict[str, list[str]]:
        if rule.type == "at_least_one":
            return self._check_at_least_one(rule, data)
        elif rule.type == "mutual_exclusion":
            return self._check_mutual_exclusion(rule, data)
        elif rule.type == "date_order":
            return self._check_date_order(rule, data)
        return {}

    def _check_at_least_one(
        self, rule: CrossFieldRule, data: dict[str, Any]
    ) -> dict[str, list[str]]:
        if any(not is_blank(data.get(f)) for f in rule.fields):
            return {}
        msg = rule.message or f"At least one of {', '.join(rule.fields)} is required"
        return {f: [msg] for f in rule.fields}

    def _check_mutual_exclusion(
        self, rule: CrossFieldRule, data: dict[str, Any]
    ) -> dict[str, list[str]]:
        if is_blank(data.get(rule.field_a)) or is_blank(data.get(rule.field_b)):
            return {}
        msg = rule.message or f"{rule.field_a} and {rule.field_b} cannot both be set"
        return {rule.field_b: [msg]}

    def _check_date_order(
        self, rule: CrossFieldRule, data: dict[str, Any]
    ) -> dict[str, list[str]]:
        val_a = data.get(rule.field_a)
        val_b = data.get(rule.field_b)

        if not val_a or not val_b:
            return {}

        try:
            date_a = self._parse_date(val_a)
            date_b = self._parse_date(val_b)
        except (ValueError, TypeError):
            return {}

        if date_a > date_b:
            msg = rule.message or f"{rule.field_a} must be on or before {rule.field_b}"
            return {rule.field_b: [msg]}
        return {}

    @staticmethod
    def _parse_date(value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return datetime.strptime(str(value), "%Y-%m-%d").date()
