"""Stepped-form wizard engine for claimflow."""

from claimflow.wizard.controller import WizardController
from claimflow.wizard.definitions import WizardDefinitionError, WizardRegistry
from claimflow.wizard.sessions import WizardSessionManager
from claimflow.wizard.submission import SubmissionPipeline
from claimflow.wizard.validation import ValidationEngine

__all__ = [
    "SubmissionPipeline",
    "ValidationEngine",
    "WizardController",
    "WizardDefinitionError",
    "WizardRegistry",
    "WizardSessionManager",
]
