"""FastAPI router carrying wizard intents over JSON."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from claimflow.wizard.models import (
    ActionResult,
    AssistantContext,
    SubmissionResult,
    WizardState,
)
from claimflow.wizard.sessions import WizardSession

router = APIRouter()


# --- Request/Response models ---


class StartSessionRequest(BaseModel):
    session_id: str | None = None


class SessionResponse(BaseModel):
    session_id: str
    wizard_id: str
    step_id: str | None
    step_count: int
    state: WizardState


class FieldUpdateRequest(BaseModel):
    value: Any = None


class JumpRequest(BaseModel):
    step_index: int


class FocusRequest(BaseModel):
    field_key: str


class ActionResponse(BaseModel):
    result: ActionResult
    state: WizardState


class SubmissionResponse(BaseModel):
    result: SubmissionResult
    state: WizardState


class StepValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)


# --- Helpers ---


def _get_session(request: Request, session_id: str) -> WizardSession:
    session = request.app.state.session_manager.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
    return session


def _session_response(session: WizardSession) -> SessionResponse:
    controller = session.controller
    step = controller.current_step
    return SessionResponse(
        session_id=session.session_id,
        wizard_id=session.wizard_id,
        step_id=step.id if step else None,
        step_count=controller.definition.step_count,
        state=controller.snapshot(),
    )


def _action(session: WizardSession, result: ActionResult) -> ActionResponse:
    return ActionResponse(result=result, state=session.controller.snapshot())


# --- Wizard endpoints ---


@router.get("/api/wizards")
async def list_wizards(request: Request) -> list[dict[str, Any]]:
    registry = request.app.state.wizard_registry
    return [
        {
            "id": defn.id,
            "title": defn.title,
            "description": defn.description,
            "steps": [{"id": s.id, "title": s.title, "review": s.review} for s in defn.steps],
        }
        for defn in registry.wizard_definitions.values()
    ]


@router.get("/api/wizards/{wizard_id}")
async def get_wizard(wizard_id: str, request: Request) -> dict[str, Any]:
    defn = request.app.state.wizard_registry.get(wizard_id)
    if defn is None:
        raise HTTPException(status_code=404, detail=f"Wizard {wizard_id!r} not found")
    return defn.model_dump(mode="json")


@router.post("/api/wizards/{wizard_id}/sessions")
async def start_session(
    wizard_id: str, request: Request, body: StartSessionRequest | None = None
) -> SessionResponse:
    manager = request.app.state.session_manager
    try:
        session = manager.create_session(wizard_id, session_id=body.session_id if body else None)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _session_response(session)


@router.get("/api/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> SessionResponse:
    return _session_response(_get_session(request, session_id))


@router.delete("/api/sessions/{session_id}")
async def close_session(session_id: str, request: Request) -> dict[str, Any]:
    if not request.app.state.session_manager.close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
    return {"session_id": session_id, "closed": True}


@router.put("/api/sessions/{session_id}/fields/{field_key}")
async def update_field(
    session_id: str, field_key: str, body: FieldUpdateRequest, request: Request
) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.update_field(field_key, body.value))


@router.get("/api/sessions/{session_id}/validate")
async def validate_current_step(session_id: str, request: Request) -> StepValidationResponse:
    errors = _get_session(request, session_id).controller.validate_current_step()
    return StepValidationResponse(valid=not errors, errors=errors)


# --- Navigation ---


@router.post("/api/sessions/{session_id}/next")
async def go_next(session_id: str, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, await session.controller.go_next())


@router.post("/api/sessions/{session_id}/back")
async def go_back(session_id: str, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.go_back())


@router.post("/api/sessions/{session_id}/jump")
async def jump_to_step(session_id: str, body: JumpRequest, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.jump_to_step(body.step_index))


# --- Collections ---


@router.post("/api/sessions/{session_id}/collections/{collection_key}/items")
async def add_collection_item(
    session_id: str, collection_key: str, request: Request
) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.add_collection_item(collection_key))


@router.delete("/api/sessions/{session_id}/collections/{collection_key}/items/{item_id}")
async def remove_collection_item(
    session_id: str, collection_key: str, item_id: int, request: Request
) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.remove_collection_item(collection_key, item_id))


@router.post("/api/sessions/{session_id}/collections/{collection_key}/items/{item_id}/primary")
async def set_primary(
    session_id: str, collection_key: str, item_id: int, request: Request
) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.set_primary(collection_key, item_id))


@router.put("/api/sessions/{session_id}/collections/{collection_key}/items/{item_id}/{field_key}")
async def update_collection_item(
    session_id: str,
    collection_key: str,
    item_id: int,
    field_key: str,
    body: FieldUpdateRequest,
    request: Request,
) -> ActionResponse:
    session = _get_session(request, session_id)
    result = session.controller.update_collection_item(collection_key, item_id, field_key, body.value)
    return _action(session, result)


# --- Drafts and submission ---


@router.post("/api/sessions/{session_id}/draft")
async def save_draft(session_id: str, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, await session.controller.save_draft())


@router.post("/api/sessions/{session_id}/draft/restore")
async def restore_draft(session_id: str, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, await session.controller.restore_draft())


@router.post("/api/sessions/{session_id}/submit")
async def submit(session_id: str, request: Request) -> SubmissionResponse:
    session = _get_session(request, session_id)
    result = await session.controller.submit()
    return SubmissionResponse(result=result, state=session.controller.snapshot())


@router.post("/api/sessions/{session_id}/reset")
async def reset_all(session_id: str, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.reset_all())


# --- Assistant context ---


@router.post("/api/sessions/{session_id}/focus")
async def focus_field(session_id: str, body: FocusRequest, request: Request) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.focus_field(body.field_key))


@router.get("/api/sessions/{session_id}/assistant")
async def assistant_context(session_id: str, request: Request) -> AssistantContext:
    return _get_session(request, session_id).controller.assistant_context()


@router.post("/api/sessions/{session_id}/assistant/suggestions/{field_key}")
async def apply_suggestion(
    session_id: str, field_key: str, body: FieldUpdateRequest, request: Request
) -> ActionResponse:
    session = _get_session(request, session_id)
    return _action(session, session.controller.apply_suggestion(field_key, body.value))
