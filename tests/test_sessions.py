"""Tests for the wizard session manager."""

from __future__ import annotations

import pytest

from claimflow.wizard.sessions import WizardSessionManager


@pytest.fixture
def manager(registry, sleep):
    return WizardSessionManager(registry, sleep=sleep)


class TestWizardSessionManager:
    def test_create_session(self, manager):
        session = manager.create_session("claims_submission")
        assert session.wizard_id == "claims_submission"
        assert session.controller.session_id == session.session_id
        assert manager.get_session(session.session_id) is session

    def test_unknown_wizard(self, manager):
        with pytest.raises(ValueError, match="Unknown wizard"):
            manager.create_session("nonexistent")

    def test_sessions_are_independent(self, manager):
        a = manager.create_session("claims_submission")
        b = manager.create_session("claims_submission")
        a.controller.update_field("providerId", "1234567890")
        assert b.controller.state.answers["providerId"] == ""

    def test_recreate_closes_previous(self, manager):
        first = manager.create_session("claims_submission", session_id="s1")
        generation = first.controller.generation
        second = manager.create_session("manual_eligibility_request", session_id="s1")
        assert first.controller.generation == generation + 1
        assert manager.get_session("s1") is second

    def test_close_session(self, manager):
        session = manager.create_session("claims_submission")
        assert manager.close_session(session.session_id) is True
        assert manager.get_session(session.session_id) is None
        assert manager.close_session(session.session_id) is False

    def test_list_sessions(self, manager):
        manager.create_session("claims_submission", session_id="s1")
        manager.create_session("diabetic_retinal_screening", session_id="s2")
        assert {s.session_id for s in manager.list_sessions()} == {"s1", "s2"}

    async def test_shared_draft_store(self, manager):
        first = manager.create_session("claims_submission", session_id="s1")
        first.controller.update_field("memberId", "M0042")
        await first.controller.save_draft()

        resumed = manager.create_session("claims_submission", session_id="s1")
        assert (await resumed.controller.restore_draft()).ok
        assert resumed.controller.state.answers["memberId"] == "M0042"
