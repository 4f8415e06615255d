"""Multi-phase asynchronous submission of a validated wizard.

Phases run strictly in order, each awaiting the previous one, and each
advances the state's progress indicator and status message. Delays go
through an injectable ``sleep`` coroutine so tests can fast-forward
logical time instead of waiting on a wall clock.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import random
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from claimflow.core.config import SubmissionConfig
from claimflow.wizard.models import (
    PhaseDefinition,
    SubmissionProgress,
    SubmissionResult,
    SubmissionStatus,
    WizardState,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_PHASES: list[PhaseDefinition] = [
    PhaseDefinition(id="validating", message="Validating form information..."),
    PhaseDefinition(id="verifying", message="Verifying member eligibility..."),
    PhaseDefinition(id="transmitting", message="Submitting to payer...", transmit=True),
    PhaseDefinition(id="confirming", message="Generating confirmation..."),
]


class SubmissionError(Exception):
    """Raised by a backend that rejects a submission."""


@runtime_checkable
class SubmissionBackend(Protocol):
    """Protocol for the collaborator that receives the final answer set."""

    async def submit(self, wizard_id: str, answers: dict[str, Any]) -> str:
        """Deliver the answers and return a confirmation number."""
        ...


class MockSubmissionBackend:
    """In-memory backend that accepts everything unless told to fail.

    Confirmation numbers follow the payer format ``NN-NNNNNNN``.
    """

    def __init__(self, fail_with: str | None = None, seed: int | None = None) -> None:
        self.fail_with = fail_with
        self.submissions: list[tuple[str, dict[str, Any]]] = []
        self._random = random.Random(seed)

    async def submit(self, wizard_id: str, answers: dict[str, Any]) -> str:
        if self.fail_with:
            raise SubmissionError(self.fail_with)
        self.submissions.append((wizard_id, answers))
        return f"{self._random.randint(10, 99)}-{self._random.randint(0, 9_999_999):07d}"


class SubmissionPipeline:
    """Runs the narrated submission phases for one WizardState at a time.

    Args:
        backend: Receives the answer set during the transmitting phase.
        config: Phase timeout and default phase duration.
        sleep: Awaitable used for phase delays (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        backend: SubmissionBackend | None = None,
        config: SubmissionConfig | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._backend = backend or MockSubmissionBackend()
        self._config = config or SubmissionConfig()
        self._sleep = sleep or asyncio.sleep

    @property
    def backend(self) -> SubmissionBackend:
        return self._backend

    async def submit(
        self,
        state: WizardState,
        terminal_step_index: int,
        phases: list[PhaseDefinition] | None = None,
        is_current: Callable[[], bool] = lambda: True,
    ) -> SubmissionResult:
        """Submit ``state.answers`` through every phase.

        ``is_current`` is checked at each phase boundary; once it returns
        False the owning state has been discarded and the pipeline stops
        without applying any further transition.
        """
        if state.is_submitting:
            return SubmissionResult(
                status=SubmissionStatus.IN_PROGRESS,
                message="Submission already in progress",
            )
        if state.submitted:
            return SubmissionResult(
                status=SubmissionStatus.REFUSED, message="Wizard has already been submitted"
            )

        phases = phases or DEFAULT_PHASES
        if not any(p.transmit for p in phases):
            phases = [*phases[:-1], phases[-1].model_copy(update={"transmit": True})]

        answers = copy.deepcopy(state.answers)
        state.is_submitting = True
        state.submission_error = None
        confirmation: str | None = None

        try:
            for index, phase in enumerate(phases):
                if not is_current():
                    logger.info(
                        "Submission for %s aborted before phase %s", state.wizard_id, phase.id
                    )
                    return SubmissionResult(
                        status=SubmissionStatus.ABORTED, message="Submission aborted"
                    )

                state.progress = SubmissionProgress(
                    phase_id=phase.id,
                    phase_index=index + 1,
                    phase_count=len(phases),
                    percent=index * 100 // len(phases),
                    message=phase.message,
                )
                try:
                    result = await asyncio.wait_for(
                        self._run_phase(phase, state.wizard_id, answers),
                        timeout=self._config.phase_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    message = f"Submission timed out while {phase.message.rstrip('.').lower()}"
                    return self._fail(state, phase, message, is_current)
                except SubmissionError as exc:
                    return self._fail(state, phase, str(exc) or "Submission was rejected", is_current)
                except Exception:
                    logger.exception("Unexpected error in submission phase %s", phase.id)
                    return self._fail(state, phase, "Submission failed unexpectedly", is_current)

                if result is not None:
                    confirmation = result

            if not is_current():
                logger.info("Submission for %s finished after its state was discarded", state.wizard_id)
                return SubmissionResult(status=SubmissionStatus.ABORTED, message="Submission aborted")

            state.is_submitting = False
            state.submitted = True
            state.confirmation_number = confirmation
            state.current_step_index = terminal_step_index
            state.errors = {}
            state.progress = SubmissionProgress(
                phase_id="accepted",
                phase_index=len(phases),
                phase_count=len(phases),
                percent=100,
                message="Submission accepted",
            )
            logger.info("Submission for %s accepted: %s", state.wizard_id, confirmation)
            return SubmissionResult(
                status=SubmissionStatus.ACCEPTED,
                message="Submission accepted",
                confirmation_number=confirmation,
            )
        finally:
            if state.is_submitting and is_current():
                # Cancelled mid-phase; answers and step stay so the user can retry.
                state.is_submitting = False
                state.submission_error = "Submission was interrupted"
                logger.warning("Submission for %s was cancelled", state.wizard_id)

    async def _run_phase(
        self, phase: PhaseDefinition, wizard_id: str, answers: dict[str, Any]
    ) -> str | None:
        duration = phase.duration_seconds
        if duration is None:
            duration = self._config.default_phase_seconds
        await self._sleep(duration)
        if phase.transmit:
            return await self._backend.submit(wizard_id, answers)
        return None

    def _fail(
        self,
        state: WizardState,
        phase: PhaseDefinition,
        message: str,
        is_current: Callable[[], bool],
    ) -> SubmissionResult:
        if not is_current():
            return SubmissionResult(status=SubmissionStatus.ABORTED, message="Submission aborted")

        # Answers and step stay as they were so the user can retry.
        state.is_submitting = False
        state.submission_error = message
        state.progress = SubmissionProgress(
            phase_id=phase.id,
            phase_index=state.progress.phase_index,
            phase_count=state.progress.phase_count,
            percent=state.progress.percent,
            message=message,
        )
        logger.warning("Submission for %s failed in phase %s: %s", state.wizard_id, phase.id, message)
        return SubmissionResult(
            status=SubmissionStatus.FAILED, message=message, failed_phase=phase.id
        )
