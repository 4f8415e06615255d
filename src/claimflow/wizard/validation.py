"""Validation engine for wizard steps."""

from __future__ import annotations

from typing import Any, Callable

from claimflow.wizard.models import (
    CollectionDefinition,
    FieldDefinition,
    StepDefinition,
)
from claimflow.wizard.state import base_key, item_error_key
from claimflow.wizard.validators.common import VALIDATORS, is_blank
from claimflow.wizard.validators.cross_field import CrossFieldValidator, condition_holds


def parse_validator_spec(spec: str) -> tuple[str, dict[str, Any]]:
    """Split ``"numeric:min_val=0,max_val=180"`` into a name and params.

    A ``regex`` spec takes everything after ``pattern=`` verbatim, so
    patterns may contain commas (``regex:pattern=\\d{3,4}``).
    """
    name, _, rest = spec.partition(":")
    params: dict[str, Any] = {}
    if not rest:
        return name, params
    if name == "regex":
        k, _, v = rest.partition("=")
        params[k.strip()] = v
        return name, params
    for pair in rest.split(","):
        k, _, v = pair.partition("=")
        params[k.strip()] = v.strip()
    return name, params


class ValidationEngine:
    """Registry-based validation engine.

    Builds ErrorMaps (field key -> first error message) for a step from its
    field validators, collection invariants, and cross-field rules. Every
    method is pure: the answer set is only read.
    """

    def __init__(self) -> None:
        self._validators: dict[str, Callable[..., str | None]] = dict(VALIDATORS)
        self._cross_field = CrossFieldValidator()

    def register(self, name: str, fn: Callable[..., str | None]) -> None:
        self._validators[name] = fn

    @property
    def validator_names(self) -> set[str]:
        return set(self._validators)

    def validate_field(
        self,
        field: FieldDefinition,
        value: Any,
        answers: dict[str, Any] | None = None,
    ) -> list[str]:
        """Validate a single field value. Returns list of error messages."""
        errors: list[str] = []
        answers = answers or {}

        if not condition_holds(field.show_if, answers):
            return errors

        required = field.required or (
            field.required_if is not None and condition_holds(field.required_if, answers)
        )
        if required and is_blank(value):
            errors.append(
                field.required_message or self._validators["required"](value, label=field.label)
            )
            return errors  # No point running other validators on empty

        if field.options and not is_blank(value):
            chosen = value if isinstance(value, list) else [value]
            if any(v not in field.options for v in chosen):
                errors.append(
                    field.messages.get("options")
                    or field.required_message
                    or f"Please select a valid {field.label.lower()}"
                )
                return errors

        for spec in field.validators:
            name, params = parse_validator_spec(spec)
            if name == "required":
                continue

            fn = self._validators.get(name)
            if fn is None:
                continue

            err = fn(value, **params)
            if err:
                errors.append(field.messages.get(name, err))

        return errors

    def validate_collection(
        self, collection: CollectionDefinition, items: list[dict[str, Any]]
    ) -> dict[str, str]:
        """Validate every item of a collection plus its cardinality rules."""
        errors: dict[str, str] = {}

        if collection.min_items > 0:
            filled = items
            if collection.non_empty_field:
                filled = [
                    item for item in items
                    if not is_blank(item.get(collection.non_empty_field))
                ]
            if len(filled) < collection.min_items:
                noun = collection.label.lower()
                errors[collection.id] = (
                    collection.min_message or f"At least one {noun} is required"
                )

        if collection.primary_flag and items:
            primaries = sum(1 for item in items if item.get("is_primary"))
            if primaries != 1:
                errors.setdefault(
                    collection.id, f"Exactly one {collection.label.lower()} must be primary"
                )

        for item in items:
            for field in collection.item_fields:
                field_errors = self.validate_field(field, item.get(field.id), item)
                if field_errors:
                    errors[item_error_key(collection.id, item["id"], field.id)] = field_errors[0]

        return errors

    def validate_step(
        self, step: StepDefinition, answers: dict[str, Any]
    ) -> dict[str, str]:
        """Validate all fields of a step. Empty dict means the step is valid.

        Keys come back in document order: fields first, then collections,
        so the first key is where the UI should scroll to.
        """
        if not condition_holds(step.show_if, answers):
            return {}

        found: dict[str, str] = {}

        for field in step.fields:
            field_errors = self.validate_field(field, answers.get(field.id), answers)
            if field_errors:
                found[field.id] = field_errors[0]

        for collection in step.collections:
            found.update(self.validate_collection(collection, answers.get(collection.id) or []))

        for field_id, msgs in self._cross_field.validate(self._active_rules(step, answers), answers).items():
            found.setdefault(field_id, msgs[0])

        order = {key: position for position, key in enumerate(step.owned_keys())}
        return dict(sorted(found.items(), key=lambda kv: order.get(base_key(kv[0]), len(order))))

    def validate_key(
        self, step: StepDefinition, key: str, answers: dict[str, Any]
    ) -> str | None:
        """Re-run only the checks that can attach an error to ``key``."""
        if not condition_holds(step.show_if, answers):
            return None

        owner = base_key(key)
        for collection in step.collections:
            if collection.id == owner:
                return self.validate_collection(collection, answers.get(owner) or []).get(key)

        for field in step.fields:
            if field.id == key:
                field_errors = self.validate_field(field, answers.get(key), answers)
                if field_errors:
                    return field_errors[0]
                break

        rules = [r for r in self._active_rules(step, answers) if key in r.targets()]
        msgs = self._cross_field.validate(rules, answers).get(key)
        return msgs[0] if msgs else None

    def _active_rules(self, step: StepDefinition, answers: dict[str, Any]):
        # Rules over hidden fields do not apply.
        hidden = {f.id for f in step.fields if not condition_holds(f.show_if, answers)}
        return [r for r in step.rules if not hidden.intersection(r.references())]
