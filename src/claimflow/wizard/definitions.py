"""Loading and checking YAML wizard definitions."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable

import yaml

from claimflow.core.types import DataClassification
from claimflow.wizard.models import (
    CollectionDefinition,
    Condition,
    CrossFieldRule,
    FieldDefinition,
    FieldType,
    PhaseDefinition,
    StepDefinition,
    WizardDefinition,
)
from claimflow.wizard.validation import parse_validator_spec
from claimflow.wizard.validators.common import VALIDATORS

logger = logging.getLogger(__name__)

_DEFAULT_WIZARDS_DIR = Path(__file__).resolve().parents[3] / "config" / "wizards"


class WizardDefinitionError(ValueError):
    """A wizard definition is malformed or references undeclared keys."""


def _parse_condition(data: dict[str, Any] | None) -> Condition | None:
    if data is None:
        return None
    return Condition(**data)


def _parse_field(data: dict[str, Any]) -> FieldDefinition:
    return FieldDefinition(
        id=data["id"],
        label=data.get("label", data["id"]),
        field_type=FieldType(data.get("type", "text")),
        required=data.get("required", False),
        required_if=_parse_condition(data.get("required_if")),
        required_message=data.get("required_message"),
        validators=data.get("validators", []),
        messages=data.get("messages", {}),
        options=data.get("options", []),
        default=data.get("default"),
        placeholder=data.get("placeholder", ""),
        help_text=data.get("help_text", ""),
        classification=DataClassification(data.get("classification", "public")),
        show_if=_parse_condition(data.get("show_if")),
    )


def _parse_collection(data: dict[str, Any]) -> CollectionDefinition:
    return CollectionDefinition(
        id=data["id"],
        label=data.get("label", data["id"]),
        item_fields=[_parse_field(f) for f in data.get("item_fields", [])],
        min_items=data.get("min_items", 0),
        max_items=data.get("max_items"),
        primary_flag=data.get("primary_flag", False),
        initial_items=data.get("initial_items", 0),
        non_empty_field=data.get("non_empty_field"),
        min_message=data.get("min_message"),
    )


def _parse_step(data: dict[str, Any]) -> StepDefinition:
    return StepDefinition(
        id=data["id"],
        title=data.get("title", data["id"]),
        description=data.get("description", ""),
        fields=[_parse_field(f) for f in data.get("fields", [])],
        collections=[_parse_collection(c) for c in data.get("collections", [])],
        rules=[CrossFieldRule(**r) for r in data.get("rules", [])],
        show_if=_parse_condition(data.get("show_if")),
        review=data.get("review", False),
    )


def parse_wizard(data: dict[str, Any]) -> WizardDefinition:
    """Build a WizardDefinition from its YAML mapping."""
    try:
        return WizardDefinition(
            id=data["id"],
            title=data.get("title", data["id"]),
            description=data.get("description", ""),
            steps=[_parse_step(s) for s in data.get("steps", [])],
            submission_phases=[PhaseDefinition(**p) for p in data.get("submission_phases", [])],
            classification=DataClassification(data.get("classification", "public")),
        )
    except (KeyError, ValueError) as exc:
        raise WizardDefinitionError(f"Invalid wizard definition: {exc}") from exc


def check_wizard(defn: WizardDefinition, validator_names: Iterable[str] | None = None) -> None:
    """Reject definitions whose keys, rules or validators don't line up.

    Raises:
        WizardDefinitionError: On the first problem found.
    """
    known_validators = set(validator_names if validator_names is not None else VALIDATORS)

    if not defn.steps:
        raise WizardDefinitionError(f"Wizard {defn.id!r} has no steps")

    keys: set[str] = set()
    for step in defn.steps:
        for key in step.owned_keys():
            if key in keys:
                raise WizardDefinitionError(f"Wizard {defn.id!r}: duplicate key {key!r}")
            keys.add(key)

    for index, step in enumerate(defn.steps, start=1):
        if step.review and index != defn.step_count:
            raise WizardDefinitionError(
                f"Wizard {defn.id!r}: review step {step.id!r} must be the last step"
            )

        conditions = [step.show_if]
        for field in step.fields:
            conditions.extend([field.show_if, field.required_if])
            _check_validators(defn.id, field, known_validators)
        for cond in conditions:
            if cond is not None and cond.field not in keys:
                raise WizardDefinitionError(
                    f"Wizard {defn.id!r}: condition references unknown key {cond.field!r}"
                )

        own = {f.id for f in step.fields}
        for rule in step.rules:
            for ref in rule.references():
                if ref not in own:
                    raise WizardDefinitionError(
                        f"Wizard {defn.id!r}: rule {rule.type!r} in step {step.id!r} "
                        f"references {ref!r}, which the step does not own"
                    )

        for collection in step.collections:
            _check_collection(defn.id, collection, known_validators)


def _check_validators(wizard_id: str, field: FieldDefinition, known: set[str]) -> None:
    for spec in field.validators:
        name, params = parse_validator_spec(spec)
        if name not in known:
            raise WizardDefinitionError(
                f"Wizard {wizard_id!r}: field {field.id!r} uses unknown validator {name!r}"
            )
        if name == "regex":
            try:
                re.compile(params.get("pattern", ""))
            except re.error as e:
                raise WizardDefinitionError(
                    f"Wizard {wizard_id!r}: field {field.id!r} has a bad regex pattern: {e}"
                ) from e


def _check_collection(wizard_id: str, collection: CollectionDefinition, known: set[str]) -> None:
    if collection.max_items is not None and collection.max_items < collection.min_items:
        raise WizardDefinitionError(
            f"Wizard {wizard_id!r}: collection {collection.id!r} has max_items < min_items"
        )
    upper = collection.max_items if collection.max_items is not None else collection.initial_items
    if not 0 <= collection.initial_items <= upper:
        raise WizardDefinitionError(
            f"Wizard {wizard_id!r}: collection {collection.id!r} initial_items out of bounds"
        )

    item_keys = {f.id for f in collection.item_fields}
    if collection.non_empty_field and collection.non_empty_field not in item_keys:
        raise WizardDefinitionError(
            f"Wizard {wizard_id!r}: collection {collection.id!r} non_empty_field "
            f"{collection.non_empty_field!r} is not an item field"
        )
    for field in collection.item_fields:
        _check_validators(wizard_id, field, known)
        for cond in (field.show_if, field.required_if):
            if cond is not None and cond.field not in item_keys:
                raise WizardDefinitionError(
                    f"Wizard {wizard_id!r}: item condition references unknown key {cond.field!r}"
                )


def load_wizard(path: Path, validator_names: Iterable[str] | None = None) -> WizardDefinition:
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}
    defn = parse_wizard(data)
    check_wizard(defn, validator_names)
    return defn


class WizardRegistry:
    """Wizard definitions loaded from YAML files in a directory.

    Definitions are checked at load time, so a misspelt field key fails
    startup instead of silently never validating.
    """

    def __init__(
        self,
        wizards_dir: str | Path | None = None,
        validator_names: Iterable[str] | None = None,
    ) -> None:
        self._wizards: dict[str, WizardDefinition] = {}
        self._validator_names = set(validator_names) if validator_names is not None else None
        self._load_wizards(Path(wizards_dir) if wizards_dir else _DEFAULT_WIZARDS_DIR)

    def _load_wizards(self, wizards_dir: Path) -> None:
        if not wizards_dir.exists():
            logger.warning("Wizards directory %s does not exist", wizards_dir)
            return
        for path in sorted(wizards_dir.glob("*.yml")):
            defn = load_wizard(path, self._validator_names)
            self._wizards[defn.id] = defn
            logger.info("Loaded wizard %s (%d steps)", defn.id, defn.step_count)

    def register(self, defn: WizardDefinition) -> None:
        check_wizard(defn, self._validator_names)
        self._wizards[defn.id] = defn

    def get(self, wizard_id: str) -> WizardDefinition | None:
        return self._wizards.get(wizard_id)

    @property
    def wizard_definitions(self) -> dict[str, WizardDefinition]:
        return dict(self._wizards)
