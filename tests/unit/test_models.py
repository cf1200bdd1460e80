"""
Unit tests for domain records.

Tests verify:
- OnboardingProgress cursor invariant and monotonic completion
- Query-string parsing of invitation parameters
- InvitationContext consistency and organization precedence
- Constructor validation of store rows
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.domain.models import (
    Asset,
    Identity,
    Invitation,
    InvitationContext,
    InvitationParams,
    InvitationSource,
    InviteResult,
    OnboardingProgress,
    OnboardingStep,
    Organization,
    next_pending_step,
)

ORG = OnboardingStep.ORGANIZATION
PROFILE = OnboardingStep.PROFILE
INVITE = OnboardingStep.INVITE
COMPLETED = OnboardingStep.COMPLETED


class TestNextPendingStep:
    def test_nothing_completed_starts_at_organization(self) -> None:
        assert next_pending_step([]) is ORG

    def test_skips_completed_steps(self) -> None:
        assert next_pending_step([ORG]) is PROFILE
        assert next_pending_step([ORG, PROFILE]) is INVITE

    def test_all_done_is_completed(self) -> None:
        assert next_pending_step([ORG, PROFILE, INVITE]) is COMPLETED


class TestOnboardingProgress:
    """Tests for the progress record invariant."""

    def test_initial_progress(self) -> None:
        progress = OnboardingProgress.initial("user_1")
        assert progress.current_step is ORG
        assert progress.completed_steps == ()
        assert not progress.is_completed

    def test_complete_advances_cursor(self) -> None:
        progress = OnboardingProgress.initial("user_1").complete(ORG)
        assert progress.current_step is PROFILE
        assert progress.completed_steps == (ORG,)

    def test_full_sequence_reaches_completed(self) -> None:
        progress = OnboardingProgress.initial("user_1")
        for step in (ORG, PROFILE, INVITE):
            progress = progress.complete(step)
        assert progress.is_completed
        assert progress.completed_steps == (ORG, PROFILE, INVITE)

    def test_resubmitting_earlier_step_does_not_regress(self) -> None:
        progress = OnboardingProgress.initial("user_1").complete(ORG).complete(PROFILE)
        again = progress.complete(ORG)
        assert again.current_step is INVITE
        assert again.completed_steps == (ORG, PROFILE)

    def test_completed_set_only_grows(self) -> None:
        progress = OnboardingProgress.initial("user_1")
        seen: set[OnboardingStep] = set()
        for step in (ORG, ORG, PROFILE, ORG, INVITE):
            progress = progress.complete(step)
            assert seen <= set(progress.completed_steps)
            seen = set(progress.completed_steps)

    def test_finish_jumps_to_terminal_keeping_completed(self) -> None:
        progress = OnboardingProgress.initial("user_1").complete(ORG).complete(PROFILE).finish()
        assert progress.is_completed
        assert progress.completed_steps == (ORG, PROFILE)

    def test_completed_stays_completed(self) -> None:
        progress = OnboardingProgress.initial("user_1").finish().complete(ORG)
        assert progress.is_completed

    def test_completed_steps_kept_in_sequence_order(self) -> None:
        progress = OnboardingProgress("user_1", INVITE, (PROFILE, ORG))
        assert progress.completed_steps == (ORG, PROFILE)

    def test_accepts_string_values(self) -> None:
        progress = OnboardingProgress("user_1", "profile", ("organization",))
        assert progress.current_step is PROFILE
        assert progress.completed_steps == (ORG,)

    def test_rejects_cursor_behind_completed_steps(self) -> None:
        with pytest.raises(ValueError):
            OnboardingProgress("user_1", ORG, (ORG,))

    def test_rejects_cursor_ahead_of_completed_steps(self) -> None:
        with pytest.raises(ValueError):
            OnboardingProgress("user_1", INVITE, (ORG,))

    def test_rejects_duplicate_completed_steps(self) -> None:
        with pytest.raises(ValueError):
            OnboardingProgress("user_1", PROFILE, (ORG, ORG))

    def test_rejects_completed_marker_in_completed_steps(self) -> None:
        with pytest.raises(ValueError):
            OnboardingProgress("user_1", COMPLETED, (COMPLETED,))

    def test_rejects_unknown_step(self) -> None:
        with pytest.raises(ValueError):
            OnboardingProgress("user_1", "welcome", ())

    def test_terminal_marker_allows_gaps(self) -> None:
        progress = OnboardingProgress("user_1", COMPLETED, (ORG, PROFILE))
        assert progress.is_completed


class TestInvitationParams:
    """Tests for the query-string contract."""

    def test_invitation_parameters(self) -> None:
        params = InvitationParams.from_query({"invitation": "true", "organization": "org_42"})
        assert params.is_invitation
        assert params.organization_id == "org_42"
        assert params.direct_org_id is None

    def test_invitation_flag_is_case_insensitive(self) -> None:
        params = InvitationParams.from_query({"invitation": "TRUE", "organization": "org_42"})
        assert params.is_invitation

    def test_flag_without_organization_is_not_an_invitation(self) -> None:
        params = InvitationParams.from_query({"invitation": "true"})
        assert not params.is_invitation

    def test_organization_without_flag_is_not_an_invitation(self) -> None:
        params = InvitationParams.from_query({"invitation": "false", "organization": "org_42"})
        assert not params.is_invitation

    def test_direct_organization_link(self) -> None:
        params = InvitationParams.from_query({"org": "org_7"})
        assert params.direct_org_id == "org_7"
        assert not params.is_invitation

    def test_missing_values(self) -> None:
        params = InvitationParams.from_query({"invitation": None, "organization": "", "org": None})
        assert params == InvitationParams()


class TestInvitationContext:
    """Tests for context consistency and organization precedence."""

    def test_invitation_beats_url_org_and_session(self) -> None:
        context = InvitationContext(
            is_invitation=True,
            invitation_org_id="org_inv",
            already_member=False,
            direct_org_id="org_link",
            source=InvitationSource.URL,
        )
        assert context.target_organization_id("org_session") == "org_inv"

    def test_membership_beats_invitation_and_url_org(self) -> None:
        context = InvitationContext(
            is_invitation=True,
            invitation_org_id="org_inv",
            already_member=True,
            member_org_id="org_member",
            direct_org_id="org_link",
            source=InvitationSource.PENDING,
        )
        assert context.target_organization_id("org_session") == "org_member"

    def test_url_org_beats_session(self) -> None:
        context = InvitationContext(False, None, False, direct_org_id="org_link")
        assert context.target_organization_id("org_session") == "org_link"

    def test_session_org_is_last_resort(self) -> None:
        context = InvitationContext(False, None, False)
        assert context.target_organization_id("org_session") == "org_session"

    def test_member_org_without_session(self) -> None:
        context = InvitationContext(False, None, True, member_org_id="org_member")
        assert context.target_organization_id() == "org_member"

    def test_nothing_resolves(self) -> None:
        assert InvitationContext(False, None, False).target_organization_id() is None

    def test_rejects_invitation_without_organization(self) -> None:
        with pytest.raises(ValueError):
            InvitationContext(True, None, False, source=InvitationSource.URL)

    def test_rejects_member_without_organization(self) -> None:
        with pytest.raises(ValueError):
            InvitationContext(False, None, True)

    def test_rejects_invitation_without_source(self) -> None:
        with pytest.raises(ValueError):
            InvitationContext(True, "org_1", False)


class TestRecordValidation:
    """Constructor validation at the adapter boundary."""

    def test_identity_requires_email(self) -> None:
        with pytest.raises(ValueError):
            Identity(id="user_1", email="")

    def test_organization_requires_domain(self) -> None:
        with pytest.raises(ValueError):
            Organization(id="org_1", name="Acme", domain="")

    def test_invitation_rejects_malformed_email(self) -> None:
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError):
            Invitation("inv_1", "org_1", "nobody", "user_1", now, now + timedelta(days=1))

    def test_invitation_rejects_expiry_before_creation(self) -> None:
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError):
            Invitation("inv_1", "org_1", "a@x.com", "user_1", now, now - timedelta(seconds=1))

    def test_invitation_pending_window(self) -> None:
        now = datetime.now(timezone.utc)
        invitation = Invitation("inv_1", "org_1", "a@x.com", "user_1", now, now + timedelta(days=1))
        assert invitation.is_pending(now)
        assert not invitation.is_pending(now + timedelta(days=2))


class TestAsset:
    def test_extension_from_filename(self) -> None:
        assert Asset(b"x", "Logo.PNG", "image/png").extension == "png"

    def test_extension_fallback(self) -> None:
        assert Asset(b"x", "logo", "image/png").extension == "bin"

    def test_size(self) -> None:
        assert Asset(b"abcd", "a.png", "image/png").size == 4


class TestInviteResult:
    def test_defaults_are_empty_tuples(self) -> None:
        result = InviteResult()
        assert result.invited == ()
        assert result.failed == ()
        assert result.links == ()
