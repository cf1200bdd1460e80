"""
Step executor - side effects of each onboarding step.

Each operation validates its input before any write, then performs its
writes strictly in sequence because later writes need identifiers
produced by earlier ones:

    organization: upload logo -> create/update organization -> owner membership
    profile:      upload avatar -> (invited) member membership -> upsert profile
    invite:       one invitation row and signup link per address, failures collected

The executor knows nothing about progress; the orchestrator decides what
a successful step means for the state machine.
"""

import logging
import uuid
from urllib.parse import urlencode
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from .email import extract_domain, normalize_email
from .exceptions import (
    ConflictError,
    DependencyError,
    DomainExtractionError,
    IntegrityError,
    InvalidAssetError,
    OnboardingError,
    ValidationError,
)
from .models import (
    Asset,
    Identity,
    Invitation,
    InvitationContext,
    InvitationLink,
    InviteResult,
    Organization,
    Profile,
)
from .ports import (
    InvitationRepository,
    MembershipRepository,
    ObjectStorage,
    OrganizationRepository,
    ProfileRepository,
)

logger = logging.getLogger(__name__)

LOGO_PREFIX = "organizations"
AVATAR_PREFIX = "avatars"
SIGNUP_PATH = "/register"

DEFAULT_MAX_ASSET_BYTES = 800 * 1024
DEFAULT_ALLOWED_ASSET_TYPES = frozenset({"image/jpeg", "image/png", "image/gif"})


def split_full_name(full_name: str) -> tuple[str, str]:
    """
    Split a full name at its first whitespace boundary.

    The remainder is kept verbatim as the last name, embedded spaces
    included: "Mary Ann Smith" -> ("Mary", "Ann Smith").

    Raises:
        ValidationError: name is blank
    """
    parts = full_name.strip().split(maxsplit=1)
    if not parts:
        raise ValidationError("Full name is required")
    first_name = parts[0]
    last_name = parts[1] if len(parts) > 1 else ""
    return first_name, last_name


@dataclass
class StepExecutor:
    """Performs the writes of the organization, profile and invite steps."""

    organizations: OrganizationRepository
    memberships: MembershipRepository
    profiles: ProfileRepository
    invitations: InvitationRepository
    storage: ObjectStorage
    default_job_title: str = "Team Member"
    default_role: str = "member"
    invitation_ttl: timedelta = timedelta(days=7)
    max_asset_bytes: int = DEFAULT_MAX_ASSET_BYTES
    allowed_asset_types: frozenset[str] = DEFAULT_ALLOWED_ASSET_TYPES
    app_base_url: str = "http://localhost:8000"

    async def execute_organization(
        self,
        identity: Identity,
        context: InvitationContext,
        name: str,
        logo: Asset | None = None,
    ) -> Organization:
        """
        Create the identity's organization, or update it when one exists.

        Args:
            identity: Current identity (its email provides the domain)
            context: Invitation facts of this entry
            name: Organization display name
            logo: Optional logo asset

        Returns:
            The created or updated Organization

        Raises:
            ValidationError: blank name
            DomainExtractionError: no domain derivable from the identity's email
            InvalidAssetError: logo too large or unsupported type
            DependencyError: a store or storage call failed
            IntegrityError: organization created but owner membership failed
        """
        name = name.strip()
        if not name:
            raise ValidationError("Organization name is required")
        domain = extract_domain(normalize_email(identity.email))
        if not domain:
            raise DomainExtractionError(f"Cannot derive an organization domain from {identity.email!r}")
        if logo is not None:
            self._check_asset(logo)

        existing_org_id = context.member_org_id
        if existing_org_id is None:
            # Another tab may have created the organization since entry.
            membership = await self.memberships.find_for_identity(identity.id)
            if membership is not None:
                existing_org_id = membership.organization_id

        logo_url = await self._upload(identity, logo, LOGO_PREFIX) if logo is not None else None

        if existing_org_id is not None:
            current = await self.organizations.get(existing_org_id)
            if current is None:
                raise DependencyError(f"Organization {existing_org_id} not found for member")
            organization = await self.organizations.update(
                existing_org_id, name, logo_url or current.logo_url
            )
            logger.info("Updated organization %s for %s", organization.id, identity.id)
            return organization

        organization = await self.organizations.create(name, domain, logo_url)
        logger.info("Created organization %s (%s) for %s", organization.id, domain, identity.id)

        try:
            await self.memberships.add(identity.id, organization.id, is_owner=True)
        except ConflictError:
            return await self._owned_organization(identity, organization)
        except DependencyError as exc:
            logger.error(
                "Organization %s left without owner membership for %s; needs reconciliation",
                organization.id,
                identity.id,
            )
            raise IntegrityError(
                f"Organization {organization.id} was created but the membership could not be recorded"
            ) from exc
        return organization

    async def execute_profile(
        self,
        identity: Identity,
        organization_id: str,
        full_name: str,
        job_title: str | None = None,
        avatar: Asset | None = None,
        join_as_member: bool = False,
    ) -> Profile:
        """
        Upsert the identity's profile in ``organization_id``.

        Args:
            identity: Current identity
            organization_id: Target organization, already resolved by precedence
            full_name: Split into first/last at the first whitespace
            job_title: Optional; defaults on insert, kept on update
            avatar: Optional avatar asset
            join_as_member: Create a non-owner membership first (invited sessions)

        Returns:
            The inserted or updated Profile

        Raises:
            ValidationError: blank name
            InvalidAssetError: avatar too large or unsupported type
            DependencyError: a store or storage call failed
        """
        first_name, last_name = split_full_name(full_name)
        job_title = (job_title or "").strip() or None
        if avatar is not None:
            self._check_asset(avatar)

        avatar_url = await self._upload(identity, avatar, AVATAR_PREFIX) if avatar is not None else None

        if join_as_member:
            await self._join(identity, organization_id)

        existing = await self.profiles.get(identity.id, organization_id)
        if existing is None:
            profile = Profile(
                identity_id=identity.id,
                organization_id=organization_id,
                first_name=first_name,
                last_name=last_name,
                email=normalize_email(identity.email),
                job_title=job_title or self.default_job_title,
                role=self.default_role,
                avatar_url=avatar_url,
            )
            try:
                return await self.profiles.insert(profile)
            except ConflictError:
                logger.info("Profile for %s in %s inserted concurrently", identity.id, organization_id)
            existing = await self.profiles.get(identity.id, organization_id)
            if existing is None:
                raise DependencyError(f"Profile for {identity.id} vanished after a conflict")

        updated = replace(
            existing,
            first_name=first_name,
            last_name=last_name,
            job_title=job_title or existing.job_title,
            avatar_url=avatar_url or existing.avatar_url,
        )
        return await self.profiles.update(updated)

    async def execute_invites(
        self,
        identity: Identity,
        organization_id: str | None,
        emails: list[str],
        auto_join: bool = False,
    ) -> InviteResult:
        """
        Create one invitation per distinct address.

        Never raises for a single address: malformed addresses and failed
        inserts are collected in ``InviteResult.failed``.
        """
        expires_at = datetime.now(timezone.utc) + self.invitation_ttl
        invited = []
        failed = []
        links = []
        seen: set[str] = set()

        for raw in emails:
            email = normalize_email(raw)
            if not email or email in seen:
                continue
            seen.add(email)
            if not extract_domain(email) or organization_id is None:
                failed.append(email)
                continue
            try:
                invitation = await self.invitations.create(
                    organization_id=organization_id,
                    email=email,
                    inviter_id=identity.id,
                    auto_join=auto_join,
                    expires_at=expires_at,
                )
            except OnboardingError:
                logger.warning("Invitation to %s for %s failed", email, organization_id, exc_info=True)
                failed.append(email)
                continue
            invited.append(invitation)
            links.append(InvitationLink(email=email, url=self.invitation_link(invitation)))

        logger.info(
            "Invited %d of %d address(es) to %s", len(invited), len(invited) + len(failed), organization_id
        )
        return InviteResult(invited=tuple(invited), failed=tuple(failed), links=tuple(links))

    def invitation_link(self, invitation: Invitation) -> str:
        """
        Signup link for ``invitation``.

        Opening it starts an invitation-driven session through the
        ``invitation=true&organization=<id>`` query parameters; the inviter
        and the invited email ride along for the signup form.
        """
        query = urlencode(
            {
                "invitation": "true",
                "organization": invitation.organization_id,
                "inviter": invitation.inviter_id,
                "email": invitation.email,
            }
        )
        base_url = self.app_base_url.rstrip("/")
        return f"{base_url}{SIGNUP_PATH}?{query}"

    async def _owned_organization(self, identity: Identity, created: Organization) -> Organization:
        """
        Resolve an owner-membership conflict after ``created`` was inserted.

        The store allows one owned organization per identity, so a conflict
        means a concurrent submission won. Its organization is returned and
        ``created`` is left for reconciliation.
        """
        membership = await self.memberships.find_for_identity(identity.id)
        if membership is None:
            raise IntegrityError(
                f"Organization {created.id} was created but no membership exists for {identity.id}"
            )
        if membership.organization_id == created.id:
            logger.info("Owner membership already present for %s in %s", identity.id, created.id)
            return created

        logger.error(
            "Organization %s orphaned: %s already owns %s; needs reconciliation",
            created.id,
            identity.id,
            membership.organization_id,
        )
        winner = await self.organizations.get(membership.organization_id)
        if winner is None:
            raise DependencyError(f"Organization {membership.organization_id} not found for member")
        return winner

    async def _join(self, identity: Identity, organization_id: str) -> None:
        """Membership for an invited identity, then close the invitation."""
        try:
            await self.memberships.add(identity.id, organization_id, is_owner=False)
            logger.info("Added %s to %s via invitation", identity.id, organization_id)
        except ConflictError:
            logger.info("%s already a member of %s", identity.id, organization_id)

        email = normalize_email(identity.email)
        try:
            await self.invitations.mark_accepted(email, organization_id)
        except DependencyError:
            logger.warning(
                "Could not mark invitation accepted for %s in %s", email, organization_id, exc_info=True
            )

    def _check_asset(self, asset: Asset) -> None:
        if asset.size == 0:
            raise InvalidAssetError(f"{asset.filename} is empty")
        if asset.size > self.max_asset_bytes:
            raise InvalidAssetError(
                f"{asset.filename} is {asset.size} bytes; the limit is {self.max_asset_bytes}"
            )
        if asset.content_type not in self.allowed_asset_types:
            allowed = ", ".join(sorted(self.allowed_asset_types))
            raise InvalidAssetError(f"{asset.content_type} is not supported; use one of {allowed}")

    async def _upload(self, identity: Identity, asset: Asset, prefix: str) -> str:
        destination = f"{prefix}/{identity.id}/{uuid.uuid4().hex}.{asset.extension}"
        reference = await self.storage.upload(asset.content, destination, asset.content_type)
        logger.info("Uploaded %s (%d bytes) to %s", asset.filename, asset.size, destination)
        return reference
