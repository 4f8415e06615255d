"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class WizardConfig(BaseSettings):
    """Stepped-form engine configuration."""

    model_config = {"env_prefix": "CLAIMFLOW_WIZARD_"}

    # Empty means the bundled config/wizards directory.
    wizards_dir: str = ""
    transition_delay_seconds: float = 0.0


class SubmissionConfig(BaseSettings):
    """Submission pipeline configuration."""

    model_config = {"env_prefix": "CLAIMFLOW_SUBMISSION_"}

    phase_timeout_seconds: float = 10.0
    default_phase_seconds: float = 0.5


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "CLAIMFLOW_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    wizard: WizardConfig = Field(default_factory=WizardConfig)
    submission: SubmissionConfig = Field(default_factory=SubmissionConfig)
