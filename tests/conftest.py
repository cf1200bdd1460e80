"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory fakes of every domain port (no database needed)
- Resolver, step executor and orchestrator wired to those fakes
- Identities used across scenarios

Each fake can be told to fail so error paths can be exercised.
"""

import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.exceptions import ConflictError, DependencyError
from src.domain.membership import MembershipResolver
from src.domain.models import (
    Identity,
    Invitation,
    Membership,
    OnboardingProgress,
    OnboardingStep,
    Organization,
    Profile,
)
from src.domain.onboarding import OnboardingService
from src.domain.steps import StepExecutor


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrganizations:
    """In-memory organization repository for testing."""

    def __init__(self) -> None:
        self.rows: dict[str, Organization] = {}
        self._ids = itertools.count(1)
        self.fail = False
        self.create_calls = 0

    def seed(self, organization_id: str, name: str, domain: str) -> Organization:
        organization = Organization(
            id=organization_id, name=name, domain=domain, created_at=_now()
        )
        self.rows[organization_id] = organization
        return organization

    async def get(self, organization_id: str) -> Organization | None:
        return self.rows.get(organization_id)

    async def find_by_domain(self, domain: str) -> Organization | None:
        for organization in self.rows.values():
            if organization.domain == domain:
                return organization
        return None

    async def create(self, name: str, domain: str, logo_url: str | None) -> Organization:
        self.create_calls += 1
        if self.fail:
            raise DependencyError("organizations unavailable")
        organization = Organization(
            id=f"org_{next(self._ids)}",
            name=name,
            domain=domain,
            logo_url=logo_url,
            created_at=_now(),
        )
        self.rows[organization.id] = organization
        return organization

    async def update(self, organization_id: str, name: str, logo_url: str | None) -> Organization:
        if self.fail:
            raise DependencyError("organizations unavailable")
        organization = replace(self.rows[organization_id], name=name, logo_url=logo_url)
        self.rows[organization_id] = organization
        return organization


class InMemoryMemberships:
    """In-memory membership repository with the store's uniqueness rules."""

    def __init__(self) -> None:
        self.rows: list[Membership] = []
        self.fail_add = False

    def seed(self, identity_id: str, organization_id: str, is_owner: bool = False) -> Membership:
        membership = Membership(identity_id, organization_id, is_owner, created_at=_now())
        self.rows.append(membership)
        return membership

    async def find_for_identity(self, identity_id: str) -> Membership | None:
        mine = [row for row in self.rows if row.identity_id == identity_id]
        return mine[-1] if mine else None

    async def exists(self, identity_id: str, organization_id: str) -> bool:
        return any(
            row.identity_id == identity_id and row.organization_id == organization_id
            for row in self.rows
        )

    async def add(self, identity_id: str, organization_id: str, is_owner: bool) -> Membership:
        if self.fail_add:
            raise DependencyError("memberships unavailable")
        if await self.exists(identity_id, organization_id):
            raise ConflictError("membership already exists")
        if is_owner and any(row.identity_id == identity_id and row.is_owner for row in self.rows):
            raise ConflictError("identity already owns an organization")
        return self.seed(identity_id, organization_id, is_owner)


class InMemoryProfiles:
    """In-memory profile repository keyed by (identity, organization)."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], Profile] = {}
        self.insert_calls = 0
        self.update_calls = 0

    def seed(self, identity_id: str, organization_id: str, first_name: str = "Existing") -> Profile:
        profile = Profile(
            identity_id=identity_id,
            organization_id=organization_id,
            first_name=first_name,
            last_name="Member",
            email=f"{identity_id}@example.com",
            job_title="Engineer",
            role="member",
        )
        self.rows[(identity_id, organization_id)] = profile
        return profile

    async def get(self, identity_id: str, organization_id: str) -> Profile | None:
        return self.rows.get((identity_id, organization_id))

    async def insert(self, profile: Profile) -> Profile:
        self.insert_calls += 1
        key = (profile.identity_id, profile.organization_id)
        if key in self.rows:
            raise ConflictError("profile already exists")
        self.rows[key] = profile
        return profile

    async def update(self, profile: Profile) -> Profile:
        self.update_calls += 1
        self.rows[(profile.identity_id, profile.organization_id)] = profile
        return profile


class InMemoryInvitations:
    """In-memory invitation repository for testing."""

    def __init__(self) -> None:
        self.rows: list[Invitation] = []
        self._ids = itertools.count(1)
        self.fail_for: set[str] = set()
        self.fail_lookup = False
        self.fail_mark = False

    def seed(
        self,
        organization_id: str,
        email: str,
        created_at: datetime | None = None,
        accepted: bool = False,
        expires_in: timedelta = timedelta(days=7),
    ) -> Invitation:
        created_at = created_at or _now()
        invitation = Invitation(
            id=f"inv_{next(self._ids)}",
            organization_id=organization_id,
            email=email,
            inviter_id="inviter",
            created_at=created_at,
            expires_at=created_at + expires_in,
            accepted=accepted,
        )
        self.rows.append(invitation)
        return invitation

    async def find_pending(self, email: str) -> Invitation | None:
        if self.fail_lookup:
            raise DependencyError("invitations unavailable")
        now = _now()
        pending = [row for row in self.rows if row.email == email and row.is_pending(now)]
        return max(pending, key=lambda row: row.created_at) if pending else None

    async def create(
        self,
        organization_id: str,
        email: str,
        inviter_id: str,
        auto_join: bool,
        expires_at: datetime,
    ) -> Invitation:
        if email in self.fail_for:
            raise DependencyError(f"could not invite {email}")
        invitation = Invitation(
            id=f"inv_{next(self._ids)}",
            organization_id=organization_id,
            email=email,
            inviter_id=inviter_id,
            auto_join=auto_join,
            created_at=_now(),
            expires_at=expires_at,
        )
        self.rows.append(invitation)
        return invitation

    async def mark_accepted(self, email: str, organization_id: str) -> int:
        if self.fail_mark:
            raise DependencyError("invitations unavailable")
        changed = 0
        for index, row in enumerate(self.rows):
            if row.email == email and row.organization_id == organization_id and not row.accepted:
                self.rows[index] = replace(row, accepted=True)
                changed += 1
        return changed

    async def list_for_organization(self, organization_id: str) -> list[Invitation]:
        rows = [row for row in self.rows if row.organization_id == organization_id]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)


class InMemoryProgress:
    """In-memory progress store; every save replaces the whole record."""

    def __init__(self) -> None:
        self.records: dict[str, OnboardingProgress] = {}
        self.saves: list[OnboardingProgress] = []
        self.fail_save = False

    async def load(self, identity_id: str) -> OnboardingProgress | None:
        return self.records.get(identity_id)

    async def save(
        self,
        identity_id: str,
        step: OnboardingStep,
        completed_steps: tuple[OnboardingStep, ...],
    ) -> None:
        if self.fail_save:
            raise DependencyError("progress store unavailable")
        progress = OnboardingProgress(identity_id, step, tuple(completed_steps))
        self.records[identity_id] = progress
        self.saves.append(progress)


class InMemoryStorage:
    """In-memory object storage for testing."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail = False

    async def upload(self, content: bytes, destination: str, content_type: str) -> str:
        if self.fail:
            raise DependencyError("storage unavailable")
        self.objects[destination] = content
        return f"https://assets.test/{destination}"


@pytest.fixture
def organizations() -> InMemoryOrganizations:
    return InMemoryOrganizations()


@pytest.fixture
def memberships() -> InMemoryMemberships:
    return InMemoryMemberships()


@pytest.fixture
def profiles() -> InMemoryProfiles:
    return InMemoryProfiles()


@pytest.fixture
def invitations() -> InMemoryInvitations:
    return InMemoryInvitations()


@pytest.fixture
def progress_store() -> InMemoryProgress:
    return InMemoryProgress()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def resolver(invitations: InMemoryInvitations, memberships: InMemoryMemberships) -> MembershipResolver:
    return MembershipResolver(invitations=invitations, memberships=memberships)


@pytest.fixture
def steps(
    organizations: InMemoryOrganizations,
    memberships: InMemoryMemberships,
    profiles: InMemoryProfiles,
    invitations: InMemoryInvitations,
    storage: InMemoryStorage,
) -> StepExecutor:
    return StepExecutor(
        organizations=organizations,
        memberships=memberships,
        profiles=profiles,
        invitations=invitations,
        storage=storage,
    )


@pytest.fixture
def service(
    resolver: MembershipResolver,
    progress_store: InMemoryProgress,
    steps: StepExecutor,
    organizations: InMemoryOrganizations,
    profiles: InMemoryProfiles,
) -> OnboardingService:
    return OnboardingService(
        resolver=resolver,
        progress_store=progress_store,
        steps=steps,
        organizations=organizations,
        profiles=profiles,
        home_path="/home",
    )


@pytest.fixture
def alice() -> Identity:
    return Identity(id="user_alice", email="alice@acme.com")


@pytest.fixture
def jane() -> Identity:
    return Identity(id="user_jane", email="jane@example.com")
