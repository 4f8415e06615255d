"""FastAPI application for the claimflow wizard engine.

Exposes the stepped-form intents as JSON endpoints plus a health check.
Rendering is left to whatever client drives the API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from claimflow.core.config import Settings
from claimflow.web.wizard_router import router as wizard_router
from claimflow.wizard.definitions import WizardRegistry
from claimflow.wizard.drafts import DraftRepository, DraftStore
from claimflow.wizard.sessions import WizardSessionManager
from claimflow.wizard.submission import SubmissionBackend, SubmissionPipeline
from claimflow.wizard.validation import ValidationEngine

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = "0.1.0"
    wizards: int = 0


# --- Application factory ---


def create_app(
    settings: Settings | None = None,
    registry: WizardRegistry | None = None,
    backend: SubmissionBackend | None = None,
    draft_store: DraftRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with mock collaborators.

    Args:
        settings: Application settings. Defaults to Settings().
        registry: Pre-loaded wizard definitions.
        backend: Submission backend. Defaults to the mock backend.
        draft_store: Draft storage. Defaults to the in-memory store.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("claimflow").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Claimflow",
        description="Stepped-form engine for claim, screening and eligibility wizards",
        version="0.1.0",
        debug=settings.debug,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    validation_engine = ValidationEngine()
    if registry is None:
        registry = WizardRegistry(
            settings.wizard.wizards_dir or None,
            validator_names=validation_engine.validator_names,
        )
    if draft_store is None:
        draft_store = DraftStore()

    pipeline = SubmissionPipeline(backend=backend, config=settings.submission)
    session_manager = WizardSessionManager(
        registry,
        validation_engine=validation_engine,
        pipeline=pipeline,
        draft_store=draft_store,
        config=settings.wizard,
    )

    # Store on app state for access in route handlers
    app.state.settings = settings
    app.state.wizard_registry = registry
    app.state.validation_engine = validation_engine
    app.state.draft_store = draft_store
    app.state.pipeline = pipeline
    app.state.session_manager = session_manager

    app.include_router(wizard_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            service="claimflow",
            wizards=len(registry.wizard_definitions),
        )

    logger.info(
        "Claimflow app created (%s) with %d wizards",
        settings.environment,
        len(registry.wizard_definitions),
    )
    return app
