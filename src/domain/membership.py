"""
Membership resolver - reconciles invitation and membership signals.

Resolution order (first match wins for the invitation facts):
1. URL parameters ``invitation=true&organization=<id>``, used as-is
2. The most recent pending invitation row for the identity's email

Existing membership is checked independently because a returning user
may already belong to an organization regardless of any invitation.
When both are present, membership drives step routing and the
invitation is marked accepted to close the loop.
"""

import logging
from dataclasses import dataclass

from .email import normalize_email
from .exceptions import DependencyError
from .models import Identity, InvitationContext, InvitationParams, InvitationSource
from .ports import InvitationRepository, MembershipRepository

logger = logging.getLogger(__name__)


@dataclass
class MembershipResolver:
    """Produces the InvitationContext of one orchestrator entry."""

    invitations: InvitationRepository
    memberships: MembershipRepository

    async def resolve(self, identity: Identity, params: InvitationParams) -> InvitationContext:
        """
        Build the invitation fact sheet for ``identity``.

        Args:
            identity: Current authenticated identity
            params: Parsed query-string parameters of the request

        Returns:
            InvitationContext for the whole entry

        Raises:
            DependencyError: invitation or membership lookup failed
        """
        email = normalize_email(identity.email)
        invitation_org_id: str | None = None
        source = InvitationSource.NONE

        if params.is_invitation:
            invitation_org_id = params.organization_id
            source = InvitationSource.URL
        else:
            pending = await self.invitations.find_pending(email)
            if pending is not None:
                invitation_org_id = pending.organization_id
                source = InvitationSource.PENDING

        membership = await self.memberships.find_for_identity(identity.id)

        if membership is not None and invitation_org_id is not None:
            await self._close_invitation(email, invitation_org_id)

        return InvitationContext(
            is_invitation=invitation_org_id is not None,
            invitation_org_id=invitation_org_id,
            already_member=membership is not None,
            member_org_id=membership.organization_id if membership is not None else None,
            direct_org_id=params.direct_org_id,
            source=source,
        )

    async def _close_invitation(self, email: str, organization_id: str) -> None:
        """Mark the invitation accepted; routing does not depend on it."""
        try:
            changed = await self.invitations.mark_accepted(email, organization_id)
        except DependencyError:
            logger.warning(
                "Could not mark invitation accepted for %s in %s",
                email,
                organization_id,
                exc_info=True,
            )
            return
        if changed:
            logger.info("Closed invitation for existing member %s in %s", email, organization_id)
