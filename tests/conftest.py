"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from claimflow.wizard.controller import WizardController
from claimflow.wizard.definitions import WizardRegistry
from claimflow.wizard.drafts import DraftStore
from claimflow.wizard.submission import MockSubmissionBackend, SubmissionPipeline


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(scope="session")
def registry():
    """Registry loaded from the real config/wizards directory."""
    return WizardRegistry()


@pytest.fixture
def claims_definition(registry):
    return registry.get("claims_submission")


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def backend():
    return MockSubmissionBackend(seed=7)


@pytest.fixture
def draft_store():
    return DraftStore()


@pytest.fixture
def controller(claims_definition, backend, draft_store, sleep):
    pipeline = SubmissionPipeline(backend=backend, sleep=sleep)
    return WizardController(
        claims_definition,
        pipeline=pipeline,
        draft_store=draft_store,
        session_id="session-1",
        sleep=sleep,
    )


def fill_patient_identification(controller: WizardController) -> None:
    controller.update_field("providerId", "1234567890")
    controller.update_field("subscriberId", "S123456789")
    controller.update_field("dependantSequence", "00")


def fill_exam_details(controller: WizardController) -> None:
    controller.update_field("serviceDateFrom", "2025-07-26")
    controller.update_field("submissionForm", "form1")
    controller.update_field("isDiabetic", "no")
    controller.update_field("wasDilated", "yes")
    controller.update_field("doctorSignatureAgreement", True)
    item_id = controller.state.answers["diagnosisCodes"][0]["id"]
    controller.update_collection_item("diagnosisCodes", item_id, "code", "E11.319")


def fill_procedures(controller: WizardController) -> None:
    item_id = controller.state.answers["procedureCodes"][0]["id"]
    controller.update_collection_item("procedureCodes", item_id, "code", "92004")
    controller.update_collection_item("procedureCodes", item_id, "placeOfService", "11")
    controller.update_collection_item("procedureCodes", item_id, "diagnosisPointer", "1")


def fill_prescription(controller: WizardController) -> None:
    controller.update_field("odSphere", "+4.25")
    controller.update_field("odCylinder", "-0.50")
    controller.update_field("odAxis", "2")


def fill_insurance(controller: WizardController) -> None:
    controller.update_field("primaryInsurance", "vsp")
    controller.update_field("memberId", "M0042")


CLAIMS_FILLERS = [
    fill_patient_identification,
    fill_exam_details,
    fill_procedures,
    fill_prescription,
    fill_insurance,
]


async def advance_to_review(controller: WizardController) -> None:
    """Fill and complete every claims step up to the review step."""
    for fill in CLAIMS_FILLERS:
        fill(controller)
        result = await controller.go_next()
        assert result.ok, result.errors
