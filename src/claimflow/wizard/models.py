"""Shared models for the stepped-form wizard engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from claimflow.core.types import DataClassification


class FieldType(str, Enum):
    """Supported field types in wizard steps."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    NUMBER = "number"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    MULTISELECT = "multiselect"
    FILE_LIST = "file_list"


class Condition(BaseModel):
    """A predicate over one answer-set field.

    Exactly one of ``equals``, ``not_equals``, ``contains`` or ``present``
    must be given.
    """

    field: str
    equals: Any = None
    not_equals: Any = None
    contains: Any = None
    present: bool | None = None

    @model_validator(mode="after")
    def _one_operator(self) -> Condition:
        given = [
            name for name in ("equals", "not_equals", "contains", "present")
            if getattr(self, name) is not None
        ]
        if len(given) != 1:
            raise ValueError(
                f"Condition on {self.field!r} needs exactly one operator, got {given or 'none'}"
            )
        return self


class FieldDefinition(BaseModel):
    """Definition of a single form field within a wizard step."""

    id: str
    label: str
    field_type: FieldType = FieldType.TEXT
    required: bool = False
    required_if: Condition | None = None
    required_message: str | None = None
    validators: list[str] = Field(default_factory=list)
    messages: dict[str, str] = Field(default_factory=dict)
    options: list[str] = Field(default_factory=list)
    default: Any = None
    placeholder: str = ""
    help_text: str = ""
    classification: DataClassification = DataClassification.PUBLIC
    show_if: Condition | None = None


class CollectionDefinition(BaseModel):
    """An array-valued sub-entity field (diagnosis codes, procedure codes)."""

    id: str
    label: str
    item_fields: list[FieldDefinition] = Field(default_factory=list)
    min_items: int = 0
    max_items: int | None = None
    primary_flag: bool = False
    initial_items: int = 0
    non_empty_field: str | None = None
    min_message: str | None = None


class CrossFieldRule(BaseModel):
    """A rule spanning several fields of one step."""

    type: Literal["at_least_one", "mutual_exclusion", "date_order"]
    fields: list[str] = Field(default_factory=list)
    field_a: str = ""
    field_b: str = ""
    message: str | None = None

    def targets(self) -> list[str]:
        """Field keys that receive this rule's error message."""
        if self.type == "at_least_one":
            return list(self.fields)
        return [self.field_b]

    def references(self) -> list[str]:
        """Every field key the rule reads."""
        if self.type == "at_least_one":
            return list(self.fields)
        return [self.field_a, self.field_b]


class StepDefinition(BaseModel):
    """Definition of a single wizard step."""

    id: str
    title: str
    description: str = ""
    fields: list[FieldDefinition] = Field(default_factory=list)
    collections: list[CollectionDefinition] = Field(default_factory=list)
    rules: list[CrossFieldRule] = Field(default_factory=list)
    show_if: Condition | None = None
    review: bool = False

    def owned_keys(self) -> list[str]:
        """Answer-set keys owned by this step, in document order."""
        return [f.id for f in self.fields] + [c.id for c in self.collections]


class PhaseDefinition(BaseModel):
    """One narrated phase of the submission pipeline."""

    id: str
    message: str
    duration_seconds: float | None = None
    transmit: bool = False


class WizardDefinition(BaseModel):
    """Full definition of a wizard loaded from YAML."""

    id: str
    title: str
    description: str = ""
    steps: list[StepDefinition] = Field(default_factory=list)
    submission_phases: list[PhaseDefinition] = Field(default_factory=list)
    classification: DataClassification = DataClassification.PUBLIC

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def terminal_step_index(self) -> int:
        """1-based index of the absorbing "submitted" pseudo-step."""
        return len(self.steps) + 1

    def step_at(self, index: int) -> StepDefinition | None:
        """Return the step at a 1-based index, or None for the terminal step."""
        if 1 <= index <= len(self.steps):
            return self.steps[index - 1]
        return None


class SubmissionProgress(BaseModel):
    """User-visible progress of an in-flight submission."""

    phase_id: str = ""
    phase_index: int = 0
    phase_count: int = 0
    percent: int = 0
    message: str = ""


class WizardState(BaseModel):
    """Runtime state of a wizard instance.

    ``current_step_index`` is 1-based; ``step_count + 1`` is the terminal
    "submitted" pseudo-step.
    """

    wizard_id: str
    current_step_index: int = 1
    answers: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    touched: dict[str, bool] = Field(default_factory=dict)
    next_item_ids: dict[str, int] = Field(default_factory=dict)
    current_field: str | None = None
    is_submitting: bool = False
    is_transitioning: bool = False
    submitted: bool = False
    confirmation_number: str | None = None
    submission_error: str | None = None
    progress: SubmissionProgress = Field(default_factory=SubmissionProgress)


class ActionStatus(str, Enum):
    """Outcome of a controller intent."""

    OK = "ok"
    INVALID = "invalid"
    REFUSED = "refused"
    NOT_FOUND = "not_found"
    BUSY = "busy"
    FAILED = "failed"


class ActionResult(BaseModel):
    """Explicit success/failure value returned by every controller intent."""

    status: ActionStatus
    message: str = ""
    errors: dict[str, str] = Field(default_factory=dict)
    first_error_field: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.OK


class SubmissionStatus(str, Enum):
    """Terminal outcome of a submission attempt."""

    ACCEPTED = "accepted"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    INVALID = "invalid"
    REFUSED = "refused"
    ABORTED = "aborted"


class SubmissionResult(BaseModel):
    """Result of ``WizardController.submit``."""

    status: SubmissionStatus
    message: str = ""
    confirmation_number: str | None = None
    failed_phase: str | None = None
    errors: dict[str, str] = Field(default_factory=dict)
    first_error_field: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == SubmissionStatus.ACCEPTED


class Draft(BaseModel):
    """A saved-for-later snapshot of a wizard's answer set."""

    session_id: str
    wizard_id: str
    answers: dict[str, Any] = Field(default_factory=dict)
    current_step_index: int = 1
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AssistantContext(BaseModel):
    """Read-only context exposed to the help/suggestion surface."""

    wizard_id: str
    step_id: str | None
    field_key: str | None
