"""In-memory registry of live wizard sessions.

Each session owns one WizardController. Sessions are fully independent:
no state is shared between them beyond the read-only wizard definitions
and the collaborators handed in at construction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.config import WizardConfig
from claimflow.wizard.controller import WizardController
from claimflow.wizard.definitions import WizardRegistry
from claimflow.wizard.drafts import DraftRepository, DraftStore
from claimflow.wizard.submission import SubmissionPipeline
from claimflow.wizard.validation import ValidationEngine

logger = logging.getLogger(__name__)


class WizardSession(BaseModel):
    """A live wizard session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    wizard_id: str
    controller: WizardController
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WizardSessionManager:
    """Creates, looks up and closes wizard sessions.

    Args:
        registry: Source of wizard definitions.
        validation_engine: Shared validator registry.
        pipeline: Shared submission pipeline.
        draft_store: Shared save-for-later store.
        config: Engine configuration passed to every controller.
        sleep: Transition-cue sleep passed to every controller.
    """

    def __init__(
        self,
        registry: WizardRegistry,
        validation_engine: ValidationEngine | None = None,
        pipeline: SubmissionPipeline | None = None,
        draft_store: DraftRepository | None = None,
        config: WizardConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._registry = registry
        self._validation = validation_engine or ValidationEngine()
        self._pipeline = pipeline or SubmissionPipeline()
        self._drafts = draft_store if draft_store is not None else DraftStore()
        self._config = config or WizardConfig()
        self._sleep = sleep
        self._sessions: dict[str, WizardSession] = {}

    def create_session(self, wizard_id: str, session_id: str | None = None) -> WizardSession:
        """Start a wizard at its initial default.

        Passing an existing ``session_id`` resumes that user's drafts.

        Raises:
            ValueError: If the wizard is not registered.
        """
        defn = self._registry.get(wizard_id)
        if defn is None:
            raise ValueError(f"Unknown wizard: {wizard_id!r}")

        session_id = session_id or str(uuid.uuid4())
        previous = self._sessions.get(session_id)
        if previous is not None:
            previous.controller.close()

        controller = WizardController(
            defn,
            validation_engine=self._validation,
            pipeline=self._pipeline,
            draft_store=self._drafts,
            session_id=session_id,
            config=self._config,
            sleep=self._sleep,
        )
        session = WizardSession(session_id=session_id, wizard_id=wizard_id, controller=controller)
        self._sessions[session_id] = session
        logger.info("Session %s started wizard %s", session_id, wizard_id)
        return session

    def get_session(self, session_id: str) -> WizardSession | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        """Hard-abort a session. Returns False if it did not exist."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.controller.close()
        return True

    def list_sessions(self) -> list[WizardSession]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)

    @property
    def draft_store(self) -> DraftRepository:
        return self._drafts

    @property
    def pipeline(self) -> SubmissionPipeline:
        return self._pipeline
