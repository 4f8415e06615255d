"""Save-for-later draft storage."""

from __future__ import annotations

from typing import Any, Awaitable, Protocol, runtime_checkable

from claimflow.wizard.models import Draft


@runtime_checkable
class DraftRepository(Protocol):
    """Protocol for draft storage.

    Methods may return plain values or awaitables; callers go through
    ``claimflow.repositories.resolve``.
    """

    def save_draft(self, draft: Draft) -> Any | Awaitable[Any]: ...

    def get_draft(self, session_id: str, wizard_id: str) -> Draft | None | Awaitable[Draft | None]: ...

    def delete_draft(self, session_id: str, wizard_id: str) -> Any | Awaitable[Any]: ...


class DraftStore:
    """In-memory dict store for drafts, keyed by session and wizard.

    Saving is idempotent: the latest save for a key replaces the previous one.
    """

    def __init__(self) -> None:
        self._drafts: dict[tuple[str, str], Draft] = {}

    def save_draft(self, draft: Draft) -> None:
        self._drafts[(draft.session_id, draft.wizard_id)] = draft

    def get_draft(self, session_id: str, wizard_id: str) -> Draft | None:
        return self._drafts.get((session_id, wizard_id))

    def delete_draft(self, session_id: str, wizard_id: str) -> None:
        self._drafts.pop((session_id, wizard_id), None)

    def list_drafts(self, session_id: str) -> list[Draft]:
        return [
            d for d in self._drafts.values()
            if d.session_id == session_id
        ]

    @property
    def draft_count(self) -> int:
        return len(self._drafts)
