"""
Domain records - explicit typed shapes for every onboarding entity.

Adapters build these records from store rows; constructors validate
their invariants so malformed rows are rejected at the boundary instead
of travelling through the orchestrator.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class OnboardingStep(str, Enum):
    """
    Onboarding state machine states.

    State Transitions (forward-only):
    - ORGANIZATION -> PROFILE
    - PROFILE -> INVITE
    - PROFILE -> COMPLETED (invitation-driven sessions skip INVITE)
    - INVITE -> COMPLETED

    Terminal State:
    - COMPLETED: identity is routed to the product home
    """

    ORGANIZATION = "organization"
    PROFILE = "profile"
    INVITE = "invite"
    COMPLETED = "completed"


STEP_SEQUENCE: tuple[OnboardingStep, ...] = (
    OnboardingStep.ORGANIZATION,
    OnboardingStep.PROFILE,
    OnboardingStep.INVITE,
)


def next_pending_step(completed: Iterable[OnboardingStep]) -> OnboardingStep:
    """First step of the sequence not yet completed, or COMPLETED."""
    done = set(completed)
    for step in STEP_SEQUENCE:
        if step not in done:
            return step
    return OnboardingStep.COMPLETED


def _require(value: str | None, name: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


@dataclass(frozen=True)
class Identity:
    """Authenticated user as handed over by the auth collaborator."""

    id: str
    email: str

    def __post_init__(self) -> None:
        _require(self.id, "identity id")
        _require(self.email, "identity email")


@dataclass(frozen=True)
class Organization:
    """Workspace owned by the identity that created it, keyed by email domain."""

    id: str
    name: str
    domain: str
    logo_url: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        _require(self.id, "organization id")
        _require(self.name, "organization name")
        _require(self.domain, "organization domain")


@dataclass(frozen=True)
class Membership:
    """Join row granting an identity access to an organization."""

    identity_id: str
    organization_id: str
    is_owner: bool = False
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        _require(self.identity_id, "membership identity id")
        _require(self.organization_id, "membership organization id")


@dataclass(frozen=True)
class Profile:
    """Member profile, unique per (identity, organization)."""

    identity_id: str
    organization_id: str
    first_name: str
    last_name: str
    email: str
    job_title: str
    role: str
    avatar_url: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        _require(self.identity_id, "profile identity id")
        _require(self.organization_id, "profile organization id")
        _require(self.first_name, "profile first name")
        _require(self.role, "profile role")


@dataclass(frozen=True)
class Invitation:
    """
    Pending or consumed invitation to join an organization.

    Keyed by email rather than identity because the invitation predates
    signup. ``accepted`` flips to True at most once.
    """

    id: str
    organization_id: str
    email: str
    inviter_id: str
    created_at: datetime
    expires_at: datetime
    auto_join: bool = False
    accepted: bool = False

    def __post_init__(self) -> None:
        _require(self.id, "invitation id")
        _require(self.organization_id, "invitation organization id")
        _require(self.inviter_id, "invitation inviter id")
        if self.email.count("@") != 1:
            raise ValueError(f"invitation email is malformed: {self.email!r}")
        if self.expires_at < self.created_at:
            raise ValueError("invitation expires before it was created")

    def is_pending(self, now: datetime) -> bool:
        return not self.accepted and self.expires_at > now


@dataclass(frozen=True)
class OnboardingProgress:
    """
    Persisted cursor for resuming onboarding.

    Invariant: ``current_step`` is the first step of STEP_SEQUENCE missing
    from ``completed_steps``, or COMPLETED. ``completed_steps`` is kept in
    sequence order and only ever grows.
    """

    identity_id: str
    current_step: OnboardingStep = OnboardingStep.ORGANIZATION
    completed_steps: tuple[OnboardingStep, ...] = ()

    def __post_init__(self) -> None:
        _require(self.identity_id, "progress identity id")
        steps = tuple(OnboardingStep(step) for step in self.completed_steps)
        if OnboardingStep.COMPLETED in steps:
            raise ValueError("completed marker cannot be a completed step")
        if len(set(steps)) != len(steps):
            raise ValueError(f"duplicate completed steps: {steps}")
        ordered = tuple(step for step in STEP_SEQUENCE if step in steps)
        object.__setattr__(self, "completed_steps", ordered)

        current = OnboardingStep(self.current_step)
        object.__setattr__(self, "current_step", current)
        if current is not OnboardingStep.COMPLETED and current != next_pending_step(ordered):
            raise ValueError(
                f"current step {current.value!r} is not the first pending step "
                f"after {[step.value for step in ordered]}"
            )

    @classmethod
    def initial(cls, identity_id: str) -> "OnboardingProgress":
        return cls(identity_id=identity_id)

    @property
    def is_completed(self) -> bool:
        return self.current_step is OnboardingStep.COMPLETED

    def complete(self, step: OnboardingStep) -> "OnboardingProgress":
        """Mark ``step`` done; the cursor moves to the next pending step."""
        if step is OnboardingStep.COMPLETED:
            return self.finish()
        completed = set(self.completed_steps) | {step}
        current = (
            OnboardingStep.COMPLETED if self.is_completed else next_pending_step(completed)
        )
        return replace(self, current_step=current, completed_steps=tuple(completed))

    def finish(self) -> "OnboardingProgress":
        """Jump to the terminal state, keeping the completed set."""
        return replace(self, current_step=OnboardingStep.COMPLETED)


class InvitationSource(str, Enum):
    """Where the invitation facts of a session came from."""

    URL = "url"
    PENDING = "pending"
    NONE = "none"


@dataclass(frozen=True)
class InvitationParams:
    """
    Query-string contract of an onboarding request.

    ``invitation=true&organization=<id>`` marks an invitation-originated
    session; ``org=<id>`` marks a direct organization link.
    """

    invitation: bool = False
    organization_id: str | None = None
    direct_org_id: str | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str | None]) -> "InvitationParams":
        flag = (query.get("invitation") or "").strip().lower() == "true"
        return cls(
            invitation=flag,
            organization_id=(query.get("organization") or "").strip() or None,
            direct_org_id=(query.get("org") or "").strip() or None,
        )

    @property
    def is_invitation(self) -> bool:
        return self.invitation and self.organization_id is not None


@dataclass(frozen=True)
class InvitationContext:
    """
    Invitation and membership facts, computed once per orchestrator entry.

    Passed explicitly to every step and never recomputed mid-flow.
    """

    is_invitation: bool
    invitation_org_id: str | None
    already_member: bool
    member_org_id: str | None = None
    direct_org_id: str | None = None
    source: InvitationSource = InvitationSource.NONE

    def __post_init__(self) -> None:
        if self.is_invitation != (self.invitation_org_id is not None):
            raise ValueError("invitation flag and invitation organization disagree")
        if self.already_member != (self.member_org_id is not None):
            raise ValueError("membership flag and member organization disagree")
        if self.is_invitation == (self.source is InvitationSource.NONE):
            raise ValueError(f"invitation source {self.source.value!r} is inconsistent")

    def target_organization_id(self, session_org_id: str | None = None) -> str | None:
        """
        Organization the profile and invite steps write to.

        An existing membership fixes the organization. Otherwise:
        invitation org > URL org > org created or loaded in this session.
        """
        if self.already_member:
            return self.member_org_id
        return (
            self.invitation_org_id
            or self.direct_org_id
            or session_org_id
            )


@dataclass(frozen=True)
class Asset:
    """Uploaded file, held in memory until the step writes it."""

    content: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return "bin"
        return self.filename.rsplit(".", 1)[1].lower() or "bin"


@dataclass(frozen=True)
class InvitationLink:
    """Signup link carrying the invitation query-string contract."""

    email: str
    url: str


@dataclass(frozen=True)
class InviteResult:
    """Outcome of the invite step; failures never block completion."""

    invited: tuple[Invitation, ...] = ()
    failed: tuple[str, ...] = ()
    links: tuple[InvitationLink, ...] = ()
