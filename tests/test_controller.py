"""Tests for the wizard controller: gating, navigation, collections and lifecycle."""

from __future__ import annotations

import logging

import pytest

from claimflow.wizard.controller import WizardController
from claimflow.wizard.models import ActionStatus
from claimflow.wizard.state import build_initial_state
from tests.conftest import (
    advance_to_review,
    fill_exam_details,
    fill_patient_identification,
    fill_procedures,
)


class TestGoNext:
    async def test_blank_first_step_is_refused(self, controller):
        result = await controller.go_next()
        assert result.status == ActionStatus.INVALID
        assert controller.state.current_step_index == 1
        assert controller.state.errors["providerId"] == "Provider ID is required"
        assert result.first_error_field == "providerId"

    async def test_filled_first_step_advances(self, controller):
        await controller.go_next()
        controller.update_field("providerId", "1234567890")
        controller.update_field("subscriberId", "S123456789")
        controller.update_field("dependantSequence", "00")

        result = await controller.go_next()
        assert result.ok
        assert controller.state.current_step_index == 2
        assert controller.state.errors == {}

    async def test_errors_equal_step_validation_exactly(self, controller):
        controller.update_field("providerId", "12")
        expected = controller.validate_current_step()
        assert expected

        result = await controller.go_next()
        assert controller.state.errors == expected
        assert result.errors == expected
        assert list(controller.state.errors) == list(expected)

    async def test_failure_replaces_errors_from_other_steps(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        failed = await controller.go_next()
        assert failed.status == ActionStatus.INVALID
        step_two_errors = dict(controller.state.errors)

        controller.go_back()
        controller.update_field("providerId", "")
        await controller.go_next()
        assert set(controller.state.errors).isdisjoint(step_two_errors)
        assert "providerId" in controller.state.errors

    async def test_hidden_identification_fields_are_not_required(self, controller):
        controller.update_field("identificationMethod", "name")
        controller.update_field("providerId", "1234567890")
        errors = controller.validate_current_step()
        assert "subscriberId" not in errors
        assert errors["lastName"] == "Last name is required"
        assert errors["dateOfBirth"] == "Date of birth is required"

    async def test_transition_flag_is_set_only_during_cue(self, claims_definition):
        seen: list[bool] = []

        async def sleep(seconds: float) -> None:
            seen.append(controller.state.is_transitioning)

        controller = WizardController(claims_definition, sleep=sleep)
        fill_patient_identification(controller)
        await controller.go_next()
        assert seen == [True]
        assert controller.state.is_transitioning is False

    async def test_transition_uses_configured_delay(self, controller, sleep):
        fill_patient_identification(controller)
        await controller.go_next()
        assert sleep.calls == [0.0]

    async def test_last_step_only_submits(self, controller):
        await advance_to_review(controller)
        result = await controller.go_next()
        assert result.status == ActionStatus.REFUSED
        assert controller.state.current_step_index == 6

    async def test_never_skips_steps(self, controller):
        indexes = []
        for fill in (fill_patient_identification, fill_exam_details):
            fill(controller)
            await controller.go_next()
            indexes.append(controller.state.current_step_index)
        assert indexes == [2, 3]


class TestGoBack:
    def test_refused_on_first_step(self, controller):
        result = controller.go_back()
        assert result.status == ActionStatus.REFUSED
        assert controller.state.current_step_index == 1

    async def test_always_decrements_regardless_of_validity(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        await controller.go_next()
        assert controller.state.errors

        result = controller.go_back()
        assert result.ok
        assert controller.state.current_step_index == 1

    async def test_errors_of_left_step_reshow_on_return(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        await controller.go_next()
        step_two_errors = dict(controller.state.errors)

        controller.go_back()
        assert controller.state.errors == step_two_errors

        await controller.go_next()
        assert controller.state.current_step_index == 2
        assert controller.state.errors == step_two_errors

    async def test_clears_errors_of_entered_step(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        # A step-1 error left over from a failed submit.
        controller.state.errors["providerId"] = "Provider ID is required"
        controller.go_back()
        assert "providerId" not in controller.state.errors


class TestJumpToStep:
    async def test_refused_outside_review_step(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        result = controller.jump_to_step(1)
        assert result.status == ActionStatus.REFUSED
        assert controller.state.current_step_index == 2

    async def test_jump_from_review_skips_revalidation(self, controller):
        await advance_to_review(controller)
        controller.update_field("memberId", "")

        result = controller.jump_to_step(2)
        assert result.ok
        assert controller.state.current_step_index == 2
        assert "memberId" not in controller.state.errors

    async def test_jump_out_of_range(self, controller):
        await advance_to_review(controller)
        assert controller.jump_to_step(0).status == ActionStatus.REFUSED
        assert controller.jump_to_step(7).status == ActionStatus.REFUSED
        assert controller.state.current_step_index == 6


class TestUpdateField:
    def test_unknown_field(self, controller):
        result = controller.update_field("nope", "x")
        assert result.status == ActionStatus.NOT_FOUND
        assert "nope" not in controller.state.answers

    def test_does_not_validate_untouched_errors(self, controller):
        controller.update_field("providerId", "12")
        assert controller.state.errors == {}

    async def test_clears_error_only_for_that_field(self, controller):
        await controller.go_next()
        controller.update_field("providerId", "1234567890")
        assert "providerId" not in controller.state.errors
        assert controller.state.errors["subscriberId"] == "Subscriber ID is required"

    async def test_replaces_error_while_still_invalid(self, controller):
        await controller.go_next()
        controller.update_field("providerId", "12")
        assert controller.state.errors["providerId"] == "Provider ID must be a 10-digit NPI"

    async def test_number_answer_is_format_checked(self, controller):
        fill_patient_identification(controller)
        controller.update_field("providerId", 12345)
        result = await controller.go_next()
        assert result.status == ActionStatus.INVALID
        assert result.errors["providerId"] == "Provider ID must be a 10-digit NPI"
        assert controller.state.current_step_index == 1

    async def test_off_option_answer_blocks_step(self, controller):
        fill_patient_identification(controller)
        controller.update_field("identificationMethod", "other")
        result = await controller.go_next()
        assert result.status == ActionStatus.INVALID
        assert result.errors == {"identificationMethod": "Please select an identification method"}

    async def test_group_rule_error_clears_on_either_field(self, controller):
        for fill in (fill_patient_identification, fill_exam_details, fill_procedures):
            fill(controller)
            await controller.go_next()

        await controller.go_next()
        message = "Sphere is required for at least one eye"
        assert controller.state.errors["odSphere"] == message
        assert controller.state.errors["osSphere"] == message

        controller.update_field("osSphere", "-1.00")
        assert "osSphere" not in controller.state.errors
        assert "odSphere" not in controller.state.errors

    async def test_date_order_error_clears_when_start_date_moves(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        fill_exam_details(controller)
        controller.update_field("serviceDateTo", "2025-07-01")
        await controller.go_next()
        assert "serviceDateTo" in controller.state.errors

        controller.update_field("serviceDateFrom", "2025-06-30")
        assert "serviceDateTo" not in controller.state.errors

    def test_touched_flag_tracks_non_empty(self, controller):
        controller.update_field("providerId", "1234567890")
        assert controller.state.touched["providerId"] is True
        controller.update_field("providerId", "")
        assert controller.state.touched["providerId"] is False

    def test_sensitive_values_are_redacted_in_logs(self, controller, caplog):
        with caplog.at_level(logging.DEBUG, logger="claimflow.wizard.controller"):
            controller.update_field("subscriberId", "S123456789")
            controller.update_field("providerId", "1234567890")
        assert "S123456789" not in caplog.text
        assert "***" in caplog.text
        assert "1234567890" in caplog.text


class TestCollections:
    def test_diagnosis_codes_capped_at_six(self, controller):
        for _ in range(5):
            assert controller.add_collection_item("diagnosisCodes").ok
        result = controller.add_collection_item("diagnosisCodes")
        assert result.status == ActionStatus.REFUSED
        assert len(controller.state.answers["diagnosisCodes"]) == 6

    def test_cannot_remove_sole_item(self, controller):
        item_id = controller.state.answers["diagnosisCodes"][0]["id"]
        result = controller.remove_collection_item("diagnosisCodes", item_id)
        assert result.status == ActionStatus.REFUSED
        assert len(controller.state.answers["diagnosisCodes"]) == 1

    def test_item_ids_are_never_reused(self, controller):
        for _ in range(2):
            controller.add_collection_item("diagnosisCodes")
        controller.remove_collection_item("diagnosisCodes", 3)
        controller.add_collection_item("diagnosisCodes")
        ids = [item["id"] for item in controller.state.answers["diagnosisCodes"]]
        assert ids == [1, 2, 4]

    @pytest.mark.parametrize("sequence", [[1], [3, 1, 4, 2, 2], [4, 4, 3]])
    def test_set_primary_leaves_exactly_one(self, controller, sequence):
        for _ in range(3):
            controller.add_collection_item("diagnosisCodes")
        for item_id in sequence:
            assert controller.set_primary("diagnosisCodes", item_id).ok
            primaries = [
                item["id"] for item in controller.state.answers["diagnosisCodes"]
                if item["is_primary"]
            ]
            assert primaries == [item_id]

    def test_set_primary_unknown_item(self, controller):
        result = controller.set_primary("diagnosisCodes", 99)
        assert result.status == ActionStatus.NOT_FOUND

    def test_set_primary_without_primary_flag(self, controller):
        result = controller.set_primary("procedureCodes", 1)
        assert result.status == ActionStatus.REFUSED

    def test_removing_primary_promotes_first_remaining(self, controller):
        for _ in range(2):
            controller.add_collection_item("diagnosisCodes")
        controller.remove_collection_item("diagnosisCodes", 1)
        items = controller.state.answers["diagnosisCodes"]
        assert [item["is_primary"] for item in items] == [True, False]

    def test_remove_drops_item_errors(self, controller):
        controller.add_collection_item("diagnosisCodes")
        controller.state.errors["diagnosisCodes[2].code"] = "Please enter a valid ICD-10 code (e.g. E11.319)"
        controller.remove_collection_item("diagnosisCodes", 2)
        assert "diagnosisCodes[2].code" not in controller.state.errors

    def test_unknown_collection(self, controller):
        assert controller.add_collection_item("nope").status == ActionStatus.NOT_FOUND
        assert controller.remove_collection_item("nope", 1).status == ActionStatus.NOT_FOUND

    def test_update_item_unknown_field(self, controller):
        result = controller.update_collection_item("diagnosisCodes", 1, "bogus", "x")
        assert result.status == ActionStatus.NOT_FOUND

    async def test_item_error_clears_when_fixed(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        fill_exam_details(controller)
        controller.update_collection_item("diagnosisCodes", 1, "code", "123")
        result = await controller.go_next()
        assert result.first_error_field == "diagnosisCodes[1].code"

        controller.update_collection_item("diagnosisCodes", 1, "code", "E11.9")
        assert controller.state.errors == {}

    async def test_minimum_cardinality_counts_filled_items(self, controller):
        fill_patient_identification(controller)
        await controller.go_next()
        fill_exam_details(controller)
        controller.update_collection_item("diagnosisCodes", 1, "code", "")
        errors = controller.validate_current_step()
        assert errors["diagnosisCodes"] == "At least one diagnosis code is required"


class TestResetAndClose:
    async def test_reset_restores_initial_default(self, controller, claims_definition):
        fill_patient_identification(controller)
        await controller.go_next()
        controller.add_collection_item("diagnosisCodes")
        controller.focus_field("diagnosisCodes")

        assert controller.reset_all().ok
        assert controller.state == build_initial_state(claims_definition)

    async def test_reset_leaves_submitted_state(self, controller, claims_definition):
        await advance_to_review(controller)
        await controller.submit()
        assert controller.state.submitted

        controller.reset_all()
        assert controller.state == build_initial_state(claims_definition)

    def test_reset_and_close_bump_generation(self, controller):
        start = controller.generation
        controller.reset_all()
        controller.close()
        assert controller.generation == start + 2

    def test_snapshot_is_detached(self, controller):
        snapshot = controller.snapshot()
        snapshot.answers["providerId"] = "9999999999"
        assert controller.state.answers["providerId"] == ""


class TestAssistantContext:
    def test_focus_and_context(self, controller):
        assert controller.focus_field("providerId").ok
        context = controller.assistant_context()
        assert context.wizard_id == "claims_submission"
        assert context.step_id == "patient_identification"
        assert context.field_key == "providerId"

    def test_focus_item_field(self, controller):
        assert controller.focus_field("diagnosisCodes[1].code").ok

    def test_focus_unknown_field(self, controller):
        assert controller.focus_field("nope").status == ActionStatus.NOT_FOUND

    async def test_suggestion_is_a_field_update(self, controller):
        await controller.go_next()
        result = controller.apply_suggestion("providerId", "1234567890")
        assert result.ok
        assert controller.state.answers["providerId"] == "1234567890"
        assert "providerId" not in controller.state.errors


class TestConstruction:
    def test_initial_shape_covers_every_key(self, controller, claims_definition):
        for step in claims_definition.steps:
            for key in step.owned_keys():
                assert key in controller.state.answers
        assert controller.state.answers["identificationMethod"] == "subscriber"
        assert controller.state.answers["doctorSignatureAgreement"] is False
        assert controller.state.answers["diagnosisCodes"] == [
            {"id": 1, "code": "", "description": "", "is_primary": True}
        ]
        assert len(controller.state.answers["procedureCodes"]) == 1
        assert controller.state.next_item_ids == {"diagnosisCodes": 2, "procedureCodes": 2}

    def test_owner_of_item_error_key(self, controller):
        assert controller.owner_of("diagnosisCodes[3].code") == 2
        assert controller.owner_of("memberId") == 5
