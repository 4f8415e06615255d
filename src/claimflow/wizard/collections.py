"""Sub-entity collection mutations.

Each function mutates ``items`` in place and returns True when it changed
something. Calls that would break a cardinality or primary-uniqueness
invariant are refused by returning False; they never raise.
"""

from __future__ import annotations

from typing import Any

from claimflow.wizard.models import CollectionDefinition
from claimflow.wizard.state import new_item


def find_item(items: list[dict[str, Any]], item_id: int) -> dict[str, Any] | None:
    for item in items:
        if item.get("id") == item_id:
            return item
    return None


def can_add(collection: CollectionDefinition, items: list[dict[str, Any]]) -> bool:
    return collection.max_items is None or len(items) < collection.max_items


def can_remove(collection: CollectionDefinition, items: list[dict[str, Any]]) -> bool:
    return len(items) > max(collection.min_items, 0)


def add_item(
    collection: CollectionDefinition, items: list[dict[str, Any]], item_id: int
) -> bool:
    """Append a blank item; a no-op once ``max_items`` is reached."""
    if not can_add(collection, items):
        return False
    items.append(new_item(collection, item_id, primary=not items))
    return True


def remove_item(
    collection: CollectionDefinition, items: list[dict[str, Any]], item_id: int
) -> bool:
    """Remove an item; refuses to drop below ``min_items``.

    Removing the primary item promotes the first remaining item.
    """
    item = find_item(items, item_id)
    if item is None or not can_remove(collection, items):
        return False

    items.remove(item)
    if collection.primary_flag and item.get("is_primary") and items:
        items[0]["is_primary"] = True
    return True


def set_primary(
    collection: CollectionDefinition, items: list[dict[str, Any]], item_id: int
) -> bool:
    """Make ``item_id`` the single primary item."""
    if not collection.primary_flag or find_item(items, item_id) is None:
        return False
    for item in items:
        item["is_primary"] = item.get("id") == item_id
    return True


def update_item(
    collection: CollectionDefinition,
    items: list[dict[str, Any]],
    item_id: int,
    field_id: str,
    value: Any,
) -> bool:
    """Write one of an item's own fields."""
    item = find_item(items, item_id)
    if item is None or field_id not in {f.id for f in collection.item_fields}:
        return False
    item[field_id] = value
    return True
