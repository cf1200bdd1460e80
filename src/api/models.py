"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.models import Invitation, OnboardingStep
from src.domain.onboarding import OnboardingSession


class OnboardingStateResponse(BaseModel):
    """What the presentation layer renders: current step, completed steps, routing."""

    current_step: OnboardingStep
    completed_steps: list[OnboardingStep]
    is_invitation: bool
    invitation_organization_id: str | None = None
    already_member: bool
    organization_id: str | None = None
    membership_confirmed: bool = False
    redirect_to: str | None = None
    suggested_organization: str | None = None

    @classmethod
    def from_session(cls, session: OnboardingSession) -> "OnboardingStateResponse":
        return cls(**_session_fields(session))


class InviteRequest(BaseModel):
    """Request model for the invite-teammates step."""

    emails: list[str] = Field(default_factory=list, max_length=50)
    auto_join: bool = Field(False, description="Join the organization without approval on signup")


class InviteResponse(OnboardingStateResponse):
    """Onboarding state plus the per-address outcome of the invite step."""

    invited: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    links: dict[str, str] = Field(default_factory=dict, description="Signup link per invited email")

    @classmethod
    def from_session(cls, session: OnboardingSession) -> "InviteResponse":
        result = session.invite_result
        return cls(
            **_session_fields(session),
            invited=[invitation.email for invitation in result.invited] if result else [],
            failed=list(result.failed) if result else [],
            links={link.email: link.url for link in result.links} if result else {},
        )


class MembershipCheckResponse(BaseModel):
    organization_id: str
    is_member: bool


class InvitationResponse(BaseModel):
    """Public view of an invitation row."""

    id: str
    organization_id: str
    email: str
    inviter_id: str
    auto_join: bool
    accepted: bool
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_invitation(cls, invitation: Invitation) -> "InvitationResponse":
        return cls(
            id=invitation.id,
            organization_id=invitation.organization_id,
            email=invitation.email,
            inviter_id=invitation.inviter_id,
            auto_join=invitation.auto_join,
            accepted=invitation.accepted,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
        )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error: str


def _session_fields(session: OnboardingSession) -> dict:
    context = session.context
    return {
        "current_step": session.current_step,
        "completed_steps": list(session.completed_steps),
        "is_invitation": context.is_invitation,
        "invitation_organization_id": context.invitation_org_id,
        "already_member": context.already_member,
        "organization_id": session.organization_id,
        "membership_confirmed": session.membership_confirmed,
        "redirect_to": session.redirect_to,
        "suggested_organization": session.suggested_organization,
    }
