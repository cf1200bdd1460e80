"""
Onboarding orchestrator - the onboarding state machine.

Onboarding State Machine (Forward-Only Transitions)
===================================================

States:
- ORGANIZATION: create (or join) the organization
- PROFILE: create the member profile
- INVITE: invite teammates
- COMPLETED: terminal, the identity is routed to the product home

Valid Transitions:
    ORGANIZATION -> PROFILE    (organization step succeeded, or skip rule)
    PROFILE -> INVITE          (profile step succeeded)
    PROFILE -> COMPLETED       (profile step succeeded in an invitation-driven session)
    INVITE -> COMPLETED        (always, even if every invitation failed)

Skip rules, applied on entry when the stored step is ORGANIZATION:
- already a member: ORGANIZATION is done; COMPLETED if a profile also exists
  in the member organization. Membership outranks any invitation or org link.
- invitation-driven: ORGANIZATION is done, the invitation fixes the organization

A state advances only when its step succeeds; on failure the progress
record is left untouched and the error propagates to the caller. A step
that is already completed may be submitted again to edit its data; the
cursor does not move back.
"""

import logging
from dataclasses import dataclass, replace

from .email import extract_domain, normalize_email
from .exceptions import MissingOrganizationError, OnboardingAlreadyCompleted, StepNotAvailableError
from .membership import MembershipResolver
from .models import (
    Asset,
    Identity,
    InvitationContext,
    InvitationParams,
    InviteResult,
    OnboardingProgress,
    OnboardingStep,
)
from .ports import OrganizationRepository, ProfileRepository, ProgressRepository
from .steps import StepExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnboardingSession:
    """State handed to the presentation layer after every operation."""

    identity: Identity
    context: InvitationContext
    progress: OnboardingProgress
    organization_id: str | None = None
    membership_confirmed: bool = False
    redirect_to: str | None = None
    suggested_organization: str | None = None
    invite_result: InviteResult | None = None

    @property
    def current_step(self) -> OnboardingStep:
        return self.progress.current_step

    @property
    def completed_steps(self) -> tuple[OnboardingStep, ...]:
        return self.progress.completed_steps

    @property
    def is_completed(self) -> bool:
        return self.progress.is_completed


@dataclass
class OnboardingService:
    """
    Composes resolver, progress store and step executor.

    The only component with cross-step knowledge. Each public operation
    takes the session returned by ``enter`` so the InvitationContext
    computed there is reused, never recomputed mid-flow.
    """

    resolver: MembershipResolver
    progress_store: ProgressRepository
    steps: StepExecutor
    organizations: OrganizationRepository
    profiles: ProfileRepository
    home_path: str = "/"

    async def enter(self, identity: Identity, params: InvitationParams) -> OnboardingSession:
        """
        Resolve invitation facts and the effective current step.

        Args:
            identity: Current identity
            params: Query-string parameters of the request

        Returns:
            OnboardingSession positioned at the step to render. Completed
            identities get ``redirect_to`` set to the product home.
        """
        context = await self.resolver.resolve(identity, params)
        progress = await self.progress_store.load(identity.id)
        if progress is None:
            progress = OnboardingProgress.initial(identity.id)

        session = OnboardingSession(
            identity=identity,
            context=context,
            progress=progress,
            organization_id=context.member_org_id,
        )

        if progress.is_completed:
            return replace(
                session,
                redirect_to=self.home_path,
                membership_confirmed=context.already_member,
            )

        if progress.current_step is OnboardingStep.ORGANIZATION:
            session = await self._apply_skip_rules(session)

        if session.current_step is OnboardingStep.ORGANIZATION:
            session = await self._suggest_organization(session)
        return session

    async def submit_organization(
        self, session: OnboardingSession, name: str, logo: Asset | None = None
    ) -> OnboardingSession:
        """
        Run the organization step and advance to PROFILE.

        Raises:
            OnboardingAlreadyCompleted: onboarding is finished
            StepNotAvailableError: invited non-member, or step not reachable
            ValidationError: see StepExecutor.execute_organization
            DependencyError: a store or storage call failed
            IntegrityError: organization created but membership missing
        """
        self._ensure_reachable(session, OnboardingStep.ORGANIZATION)
        if session.context.is_invitation and not session.context.already_member:
            raise StepNotAvailableError("The organization is set by your invitation")

        organization = await self.steps.execute_organization(
            session.identity, session.context, name, logo
        )

        progress = session.progress.complete(OnboardingStep.ORGANIZATION)
        await self._save(progress)
        return replace(session, progress=progress, organization_id=organization.id)

    async def submit_profile(
        self,
        session: OnboardingSession,
        full_name: str,
        job_title: str | None = None,
        avatar: Asset | None = None,
    ) -> OnboardingSession:
        """
        Run the profile step.

        Invitation-driven sessions finish here: the invite step is skipped,
        membership is confirmed and the session is routed home. Other
        sessions advance to INVITE.

        Raises:
            OnboardingAlreadyCompleted: onboarding is finished
            StepNotAvailableError: organization step not done yet
            MissingOrganizationError: no organization resolves
            ValidationError: see StepExecutor.execute_profile
            DependencyError: a store or storage call failed
        """
        self._ensure_reachable(session, OnboardingStep.PROFILE)
        organization_id = session.context.target_organization_id(session.organization_id)
        if organization_id is None:
            raise MissingOrganizationError("No organization found for your profile")

        invited = session.context.is_invitation
        await self.steps.execute_profile(
            session.identity,
            organization_id,
            full_name,
            job_title=job_title,
            avatar=avatar,
            join_as_member=invited and not session.context.already_member,
        )

        progress = session.progress.complete(OnboardingStep.PROFILE)
        if invited:
            progress = progress.finish()
        await self._save(progress)

        if invited:
            logger.info("Invited identity %s finished onboarding in %s", session.identity.id, organization_id)
            return replace(
                session,
                progress=progress,
                organization_id=organization_id,
                membership_confirmed=True,
                redirect_to=self.home_path,
            )
        return replace(session, progress=progress, organization_id=organization_id)

    async def submit_invites(
        self, session: OnboardingSession, emails: list[str], auto_join: bool = False
    ) -> OnboardingSession:
        """
        Run the invite step and finish onboarding.

        Always terminal: individual invitation failures are reported in
        ``invite_result.failed`` and never block completion.
        """
        self._ensure_reachable(session, OnboardingStep.INVITE)
        organization_id = session.context.target_organization_id(session.organization_id)
        if organization_id is None:
            logger.warning("No organization to invite into for %s", session.identity.id)

        result = await self.steps.execute_invites(
            session.identity, organization_id, emails, auto_join=auto_join
        )

        progress = session.progress.complete(OnboardingStep.INVITE).finish()
        await self._save(progress)
        return replace(
            session,
            progress=progress,
            organization_id=organization_id,
            invite_result=result,
            redirect_to=self.home_path,
        )

    async def _apply_skip_rules(self, session: OnboardingSession) -> OnboardingSession:
        context = session.context
        if not (context.already_member or context.is_invitation):
            return session

        progress = session.progress.complete(OnboardingStep.ORGANIZATION)

        if context.already_member:
            profile = await self.profiles.get(session.identity.id, context.member_org_id)
            if profile is not None:
                progress = progress.complete(OnboardingStep.PROFILE).finish()

        logger.info(
            "Skipped organization step for %s (member=%s, invitation=%s) -> %s",
            session.identity.id,
            context.already_member,
            context.is_invitation,
            progress.current_step.value,
        )
        await self._save(progress)

        if progress.is_completed:
            return replace(
                session, progress=progress, membership_confirmed=True, redirect_to=self.home_path
            )
        return replace(session, progress=progress)

    async def _suggest_organization(self, session: OnboardingSession) -> OnboardingSession:
        domain = extract_domain(normalize_email(session.identity.email))
        if not domain:
            return session
        organization = await self.organizations.find_by_domain(domain)
        if organization is None:
            return session
        return replace(session, suggested_organization=organization.name)

    def _ensure_reachable(self, session: OnboardingSession, step: OnboardingStep) -> None:
        progress = session.progress
        if progress.is_completed:
            raise OnboardingAlreadyCompleted("Onboarding is already completed")
        if step is not progress.current_step and step not in progress.completed_steps:
            raise StepNotAvailableError(
                f"Complete the {progress.current_step.value} step before {step.value}"
            )

    async def _save(self, progress: OnboardingProgress) -> None:
        await self.progress_store.save(
            progress.identity_id, progress.current_step, progress.completed_steps
        )
