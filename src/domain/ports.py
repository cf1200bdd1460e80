"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.

Every method is a coroutine: each call is a suspend point awaiting the
external store. Implementations translate their own failures into the
domain taxonomy:
- uniqueness violations raise ConflictError
- any other store/storage failure raises DependencyError
"""

from datetime import datetime
from typing import Protocol

from .models import Invitation, Membership, OnboardingProgress, OnboardingStep, Organization, Profile


class OrganizationRepository(Protocol):
    """Port interface for organization persistence."""

    async def get(self, organization_id: str) -> Organization | None: ...

    async def find_by_domain(self, domain: str) -> Organization | None:
        """Return the oldest organization registered for ``domain``, if any."""
        ...

    async def create(self, name: str, domain: str, logo_url: str | None) -> Organization: ...

    async def update(
        self, organization_id: str, name: str, logo_url: str | None
    ) -> Organization: ...


class MembershipRepository(Protocol):
    """Port interface for organization membership."""

    async def find_for_identity(self, identity_id: str) -> Membership | None:
        """Return the most recent membership of the identity, if any."""
        ...

    async def exists(self, identity_id: str, organization_id: str) -> bool: ...

    async def add(self, identity_id: str, organization_id: str, is_owner: bool) -> Membership:
        """
        Insert a membership row.

        Raises:
            ConflictError: (identity, organization) already has a membership,
                or an owner membership is added for an identity that owns one
        """
        ...


class ProfileRepository(Protocol):
    """Port interface for member profiles."""

    async def get(self, identity_id: str, organization_id: str) -> Profile | None: ...

    async def insert(self, profile: Profile) -> Profile:
        """
        Insert a new profile.

        Raises:
            ConflictError: a profile already exists for (identity, organization)
        """
        ...

    async def update(self, profile: Profile) -> Profile: ...


class InvitationRepository(Protocol):
    """Port interface for invitations. Emails are passed normalized."""

    async def find_pending(self, email: str) -> Invitation | None:
        """
        Return the most recently created unaccepted, unexpired invitation.

        Older pending invitations for the same email are left untouched.
        """
        ...

    async def create(
        self,
        organization_id: str,
        email: str,
        inviter_id: str,
        auto_join: bool,
        expires_at: datetime,
    ) -> Invitation: ...

    async def mark_accepted(self, email: str, organization_id: str) -> int:
        """Flip unaccepted invitations to accepted; returns rows changed."""
        ...

    async def list_for_organization(self, organization_id: str) -> list[Invitation]: ...


class ProgressRepository(Protocol):
    """Port interface for onboarding progress (one record per identity)."""

    async def load(self, identity_id: str) -> OnboardingProgress | None: ...

    async def save(
        self,
        identity_id: str,
        step: OnboardingStep,
        completed_steps: tuple[OnboardingStep, ...],
    ) -> None:
        """
        Upsert the whole record keyed by identity.

        Concurrent saves resolve last-write-wins at record granularity;
        a save never patches individual fields.
        """
        ...


class ObjectStorage(Protocol):
    """Port interface for asset storage."""

    async def upload(self, content: bytes, destination: str, content_type: str) -> str:
        """Store ``content`` under ``destination`` and return its public reference."""
        ...
