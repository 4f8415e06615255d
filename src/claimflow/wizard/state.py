"""Initial-state factory and answer-set key helpers."""

from __future__ import annotations

import copy
from typing import Any

from claimflow.wizard.models import (
    CollectionDefinition,
    FieldDefinition,
    FieldType,
    WizardDefinition,
    WizardState,
)

_LIST_TYPES = frozenset({FieldType.MULTISELECT, FieldType.FILE_LIST})


def item_error_key(collection_id: str, item_id: int, field_id: str) -> str:
    """ErrorMap key for one field of one collection item."""
    return f"{collection_id}[{item_id}].{field_id}"


def base_key(error_key: str) -> str:
    """Answer-set key an ErrorMap key belongs to (``diagnosisCodes[2].code`` -> ``diagnosisCodes``)."""
    return error_key.split("[", 1)[0]


def default_value(field: FieldDefinition) -> Any:
    if field.default is not None:
        return copy.deepcopy(field.default)
    if field.field_type == FieldType.CHECKBOX:
        return False
    if field.field_type in _LIST_TYPES:
        return []
    return ""


def new_item(collection: CollectionDefinition, item_id: int, primary: bool = False) -> dict[str, Any]:
    """A blank collection item with every own field at its default."""
    item: dict[str, Any] = {"id": item_id}
    for field in collection.item_fields:
        item[field.id] = default_value(field)
    if collection.primary_flag:
        item["is_primary"] = primary
    return item


def key_owners(defn: WizardDefinition) -> dict[str, int]:
    """Map every answer-set key to the 1-based ordinal of the step owning it."""
    owners: dict[str, int] = {}
    for ordinal, step in enumerate(defn.steps, start=1):
        for key in step.owned_keys():
            owners[key] = ordinal
    return owners


def build_initial_state(defn: WizardDefinition) -> WizardState:
    """Return the documented initial default for a wizard.

    Every key any step's validators read exists in the answer set with its
    default value, and every collection starts with ``initial_items`` blank
    items (the first one primary where the collection has a primary flag).
    """
    answers: dict[str, Any] = {}
    next_item_ids: dict[str, int] = {}

    for step in defn.steps:
        for field in step.fields:
            answers[field.id] = default_value(field)
        for collection in step.collections:
            items = [
                new_item(collection, item_id, primary=item_id == 1)
                for item_id in range(1, collection.initial_items + 1)
            ]
            answers[collection.id] = items
            next_item_ids[collection.id] = collection.initial_items + 1

    return WizardState(
        wizard_id=defn.id,
        current_step_index=1,
        answers=answers,
        next_item_ids=next_item_ids,
    )


def merge_answers(defn: WizardDefinition, saved: dict[str, Any]) -> WizardState:
    """Build a fresh state with ``saved`` answers laid over the defaults.

    Keys the wizard does not declare are dropped, so the shape invariant
    holds even for drafts saved by an older definition.
    """
    state = build_initial_state(defn)
    for key, value in saved.items():
        if key in state.answers:
            state.answers[key] = copy.deepcopy(value)

    for collection_id in state.next_item_ids:
        items = state.answers.get(collection_id) or []
        highest = max((int(item.get("id", 0)) for item in items), default=0)
        state.next_item_ids[collection_id] = highest + 1
    return state
