"""Stepped-form wizard controller.

The controller owns one WizardState for the lifetime of a session and is
the only thing that mutates it. Every intent returns an explicit result
value; none of them raise for user or caller mistakes.

State machine: steps form a linear chain ``1 -> 2 -> ... -> N -> submitted``.
``go_next`` moves exactly +1 and only from a step that validates clean,
``go_back`` moves exactly -1, and ``jump_to_step`` is the only arbitrary
move, allowed from a clean review step. The terminal step is absorbing
until ``reset_all``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from typing import Any, Awaitable, Callable

from claimflow.core.config import WizardConfig
from claimflow.core.types import REDACTED_CLASSIFICATIONS
from claimflow.repositories import resolve
from claimflow.wizard import collections
from claimflow.wizard.drafts import DraftRepository, DraftStore
from claimflow.wizard.models import (
    ActionResult,
    ActionStatus,
    AssistantContext,
    CollectionDefinition,
    Draft,
    FieldDefinition,
    StepDefinition,
    SubmissionResult,
    SubmissionStatus,
    WizardDefinition,
    WizardState,
)
from claimflow.wizard.state import (
    base_key,
    build_initial_state,
    item_error_key,
    key_owners,
    merge_answers,
)
from claimflow.wizard.submission import SubmissionPipeline
from claimflow.wizard.validation import ValidationEngine
from claimflow.wizard.validators.common import is_blank

logger = logging.getLogger(__name__)


def _ok(message: str = "") -> ActionResult:
    return ActionResult(status=ActionStatus.OK, message=message)


def _refused(message: str) -> ActionResult:
    return ActionResult(status=ActionStatus.REFUSED, message=message)


def _not_found(message: str) -> ActionResult:
    return ActionResult(status=ActionStatus.NOT_FOUND, message=message)


def _invalid(errors: dict[str, str], message: str = "Please correct the highlighted fields") -> ActionResult:
    return ActionResult(
        status=ActionStatus.INVALID,
        message=message,
        errors=dict(errors),
        first_error_field=next(iter(errors), None),
    )


class WizardController:
    """Orchestrates one wizard session.

    Args:
        definition: The wizard being filled in.
        validation_engine: Validator registry; a default engine if omitted.
        pipeline: Submission pipeline; a mock-backed pipeline if omitted.
        draft_store: Save-for-later collaborator.
        session_id: Key used for drafts. Generated if omitted.
        config: Transition cue duration.
        sleep: Awaitable used for the transition cue.
    """

    def __init__(
        self,
        definition: WizardDefinition,
        validation_engine: ValidationEngine | None = None,
        pipeline: SubmissionPipeline | None = None,
        draft_store: DraftRepository | None = None,
        session_id: str | None = None,
        config: WizardConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        if not definition.steps:
            raise ValueError(f"Wizard {definition.id!r} has no steps")

        self._definition = definition
        self._validation = validation_engine or ValidationEngine()
        self._pipeline = pipeline or SubmissionPipeline()
        self._drafts = draft_store if draft_store is not None else DraftStore()
        self._config = config or WizardConfig()
        self._sleep = sleep or asyncio.sleep
        self.session_id = session_id or str(uuid.uuid4())

        self._owners = key_owners(definition)
        self._fields: dict[str, FieldDefinition] = {
            f.id: f for step in definition.steps for f in step.fields
        }
        self._collections: dict[str, CollectionDefinition] = {
            c.id: c for step in definition.steps for c in step.collections
        }
        # Keys that share a cross-field rule; an edit to one can settle the others.
        self._rule_partners: dict[str, set[str]] = {}
        for step in definition.steps:
            for rule in step.rules:
                refs = rule.references()
                for ref in refs:
                    self._rule_partners.setdefault(ref, set()).update(r for r in refs if r != ref)
        self._generation = 0
        self._state = build_initial_state(definition)

    # -- Render input --

    @property
    def definition(self) -> WizardDefinition:
        return self._definition

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_step(self) -> StepDefinition | None:
        """The step being shown, or None on the terminal step."""
        return self._definition.step_at(self._state.current_step_index)

    def snapshot(self) -> WizardState:
        """A deep copy of the state, safe to hand to the view layer."""
        return self._state.model_copy(deep=True)

    def validate_current_step(self) -> dict[str, str]:
        """Errors ``go_next`` would report, without touching the state."""
        step = self.current_step
        if step is None:
            return {}
        return self._validation.validate_step(step, self._state.answers)

    def owner_of(self, key: str) -> int | None:
        """1-based ordinal of the step owning an answer or error key."""
        return self._owners.get(base_key(key))

    # -- Field intents --

    def update_field(self, key: str, value: Any) -> ActionResult:
        """Write one answer; re-check that field and its rule partners if they showed errors."""
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        field = self._fields.get(key)
        if field is None:
            return _not_found(f"Unknown field {key!r}")

        state = self._state
        state.answers[key] = value
        state.touched[key] = not is_blank(value)
        logger.debug("Field %s updated to %r", key, self._loggable(field, value))

        if key in state.errors:
            self._recheck(key)
        for partner in sorted(self._rule_partners.get(key, ())):
            if partner in state.errors:
                self._recheck(partner)
        return _ok()

    def update_collection_item(
        self, collection_key: str, item_id: int, field_key: str, value: Any
    ) -> ActionResult:
        """Write one of a collection item's own fields."""
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        collection = self._collections.get(collection_key)
        if collection is None:
            return _not_found(f"Unknown collection {collection_key!r}")

        items = self._state.answers[collection_key]
        if not collections.update_item(collection, items, item_id, field_key, value):
            return _not_found(f"No field {field_key!r} on item {item_id} of {collection_key!r}")

        error_key = item_error_key(collection_key, item_id, field_key)
        if error_key in self._state.errors:
            self._recheck(error_key)
        if collection_key in self._state.errors:
            self._recheck(collection_key)
        return _ok()

    def add_collection_item(self, collection_key: str) -> ActionResult:
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        collection = self._collections.get(collection_key)
        if collection is None:
            return _not_found(f"Unknown collection {collection_key!r}")

        state = self._state
        item_id = state.next_item_ids.get(collection_key, 1)
        if not collections.add_item(collection, state.answers[collection_key], item_id):
            return _refused(f"{collection.label} is limited to {collection.max_items} items")

        state.next_item_ids[collection_key] = item_id + 1
        return _ok()

    def remove_collection_item(self, collection_key: str, item_id: int) -> ActionResult:
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        collection = self._collections.get(collection_key)
        if collection is None:
            return _not_found(f"Unknown collection {collection_key!r}")

        items = self._state.answers[collection_key]
        if collections.find_item(items, item_id) is None:
            return _not_found(f"No item {item_id} in {collection_key!r}")
        if not collections.remove_item(collection, items, item_id):
            return _refused(f"At least {collection.min_items} {collection.label.lower()} must remain")

        prefix = f"{collection_key}[{item_id}]."
        for key in [k for k in self._state.errors if k.startswith(prefix)]:
            del self._state.errors[key]
        return _ok()

    def set_primary(self, collection_key: str, item_id: int) -> ActionResult:
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        collection = self._collections.get(collection_key)
        if collection is None:
            return _not_found(f"Unknown collection {collection_key!r}")
        if not collection.primary_flag:
            return _refused(f"{collection.label} has no primary item")
        if not collections.set_primary(collection, self._state.answers[collection_key], item_id):
            return _not_found(f"No item {item_id} in {collection_key!r}")
        return _ok()

    # -- Navigation intents --

    async def go_next(self) -> ActionResult:
        """Advance exactly one step if the current step validates clean.

        On failure the error map is replaced wholesale with this step's
        errors and ``first_error_field`` names where to scroll.
        """
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        state = self._state
        step = self.current_step
        if state.current_step_index >= self._definition.step_count:
            return _refused("The last step is completed by submitting")

        errors = self._validation.validate_step(step, state.answers)
        if errors:
            state.errors = errors
            logger.info("Step %s of %s has %d errors", step.id, self._definition.id, len(errors))
            return _invalid(errors)

        entered = state.current_step_index + 1
        state.errors = {k: v for k, v in state.errors.items() if self.owner_of(k) == entered}
        state.is_transitioning = True
        state.current_step_index = entered
        logger.info("Step %s of %s completed", step.id, self._definition.id)
        try:
            await self._sleep(self._config.transition_delay_seconds)
        finally:
            state.is_transitioning = False
        return _ok()

    def go_back(self) -> ActionResult:
        """Move exactly one step back, regardless of the current step's validity."""
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        state = self._state
        if state.current_step_index <= 1:
            return _refused("Already at the first step")

        entered = state.current_step_index - 1
        # Errors of the step being left stay so they re-show on return.
        state.errors = {k: v for k, v in state.errors.items() if self.owner_of(k) != entered}
        state.current_step_index = entered
        state.is_transitioning = False
        return _ok()

    def jump_to_step(self, index: int) -> ActionResult:
        """Go to any step from a review step that validates clean.

        Intermediate steps are not re-validated; ``submit`` re-checks everything.
        """
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        state = self._state
        step = self.current_step
        if step is None or not step.review:
            return _refused("Steps can only be jumped to from the review step")
        if not 1 <= index <= self._definition.step_count:
            return _refused(f"No step {index}")

        errors = self._validation.validate_step(step, state.answers)
        if errors:
            state.errors = errors
            return _invalid(errors)

        state.errors = {k: v for k, v in state.errors.items() if self.owner_of(k) != index}
        state.current_step_index = index
        return _ok()

    # -- Drafts --

    async def save_draft(self) -> ActionResult:
        """Hand the full answer set to the draft store. Never touches step or errors."""
        state = self._state
        draft = Draft(
            session_id=self.session_id,
            wizard_id=self._definition.id,
            answers=copy.deepcopy(state.answers),
            current_step_index=min(state.current_step_index, self._definition.step_count),
        )
        try:
            saved = await resolve(self._drafts.save_draft(draft))
        except Exception:
            logger.exception("Saving draft for session %s failed", self.session_id)
            return ActionResult(status=ActionStatus.FAILED, message="Draft could not be saved")
        if saved is False:
            return ActionResult(status=ActionStatus.FAILED, message="Draft could not be saved")

        logger.info("Draft saved for %s session %s", self._definition.id, self.session_id)
        return _ok("Draft saved")

    async def restore_draft(self) -> ActionResult:
        """Replace the answer set with this session's saved draft."""
        blocked = self._interaction_blocked()
        if blocked:
            return blocked

        try:
            draft = await resolve(self._drafts.get_draft(self.session_id, self._definition.id))
        except Exception:
            logger.exception("Loading draft for session %s failed", self.session_id)
            return ActionResult(status=ActionStatus.FAILED, message="Draft could not be loaded")
        if draft is None:
            return _not_found("No saved draft")

        previous = self._state
        restored = merge_answers(self._definition, draft.answers)
        for key, next_id in previous.next_item_ids.items():
            restored.next_item_ids[key] = max(restored.next_item_ids.get(key, 1), next_id)
        restored.current_step_index = min(max(draft.current_step_index, 1), self._definition.step_count)
        self._state = restored
        return _ok("Draft restored")

    # -- Submission --

    async def submit(self) -> SubmissionResult:
        """Re-validate every step, then run the submission pipeline."""
        state = self._state
        if state.submitted:
            return SubmissionResult(
                status=SubmissionStatus.REFUSED, message="Wizard has already been submitted"
            )
        if state.is_submitting:
            return SubmissionResult(
                status=SubmissionStatus.IN_PROGRESS, message="Submission already in progress"
            )
        if state.current_step_index != self._definition.step_count:
            return SubmissionResult(
                status=SubmissionStatus.REFUSED, message="Submit is only available on the last step"
            )

        for ordinal, step in enumerate(self._definition.steps, start=1):
            errors = self._validation.validate_step(step, state.answers)
            if errors:
                state.errors = errors
                state.current_step_index = ordinal
                logger.warning(
                    "Submission of %s refused: step %s is invalid", self._definition.id, step.id
                )
                return SubmissionResult(
                    status=SubmissionStatus.INVALID,
                    message=f"Please correct the errors in {step.title}",
                    errors=dict(errors),
                    first_error_field=next(iter(errors)),
                )

        generation = self._generation
        state.errors = {}
        return await self._pipeline.submit(
            state,
            terminal_step_index=self._definition.terminal_step_index,
            phases=self._definition.submission_phases or None,
            is_current=lambda: self._generation == generation and self._state is state,
        )

    # -- Lifecycle --

    def reset_all(self) -> ActionResult:
        """Discard everything and start over from the initial default."""
        self._discard_state()
        logger.info("Wizard %s session %s reset", self._definition.id, self.session_id)
        return _ok()

    def close(self) -> None:
        """Hard abort: an in-flight submission will not apply its result."""
        self._discard_state()
        logger.info("Wizard %s session %s closed", self._definition.id, self.session_id)

    # -- Assistant context --

    def focus_field(self, key: str) -> ActionResult:
        if base_key(key) not in self._owners:
            return _not_found(f"Unknown field {key!r}")
        self._state.current_field = key
        return _ok()

    def assistant_context(self) -> AssistantContext:
        step = self.current_step
        return AssistantContext(
            wizard_id=self._definition.id,
            step_id=step.id if step else None,
            field_key=self._state.current_field,
        )

    def apply_suggestion(self, key: str, value: Any) -> ActionResult:
        """A suggestion is exactly a field update a human could have made."""
        return self.update_field(key, value)

    # -- Internals --

    def _interaction_blocked(self) -> ActionResult | None:
        if self._state.is_submitting:
            return ActionResult(status=ActionStatus.BUSY, message="Submission in progress")
        if self._state.submitted:
            return _refused("Wizard has already been submitted")
        return None

    def _recheck(self, error_key: str) -> None:
        ordinal = self.owner_of(error_key)
        step = self._definition.step_at(ordinal) if ordinal else None
        if step is None:
            return
        message = self._validation.validate_key(step, error_key, self._state.answers)
        if message is None:
            self._state.errors.pop(error_key, None)
        else:
            self._state.errors[error_key] = message

    def _discard_state(self) -> None:
        self._generation += 1
        self._state = build_initial_state(self._definition)

    @staticmethod
    def _loggable(field: FieldDefinition, value: Any) -> Any:
        if field.classification in REDACTED_CLASSIFICATIONS:
            return "***"
        return value
