"""
API v1 routes.

Defines REST endpoints for the onboarding API. Every onboarding endpoint
enters the orchestrator first, so invitation facts are resolved once per
request and handed to the step that runs.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from src.api.dependencies import (
    get_current_identity,
    get_invitation_params,
    get_invitation_repository,
    get_membership_repository,
    get_onboarding_service,
    read_asset,
)
from src.api.models import (
    ErrorResponse,
    InvitationResponse,
    InviteRequest,
    InviteResponse,
    MembershipCheckResponse,
    OnboardingStateResponse,
)
from src.domain.email import normalize_email
from src.domain.models import Identity, InvitationParams
from src.domain.onboarding import OnboardingService
from src.domain.ports import InvitationRepository, MembershipRepository

router = APIRouter(tags=["v1"])

_step_errors = {
    401: {"description": "Not authenticated"},
    409: {"model": ErrorResponse, "description": "Onboarding already completed"},
    422: {"model": ErrorResponse, "description": "Validation error"},
    500: {"model": ErrorResponse, "description": "Step partially applied"},
    503: {"model": ErrorResponse, "description": "Store or storage unavailable"},
}


@router.get(
    "/onboarding",
    response_model=OnboardingStateResponse,
    responses={401: {"description": "Not authenticated"}},
    summary="Enter onboarding",
    description="Resolve invitation and membership facts and return the step to render. "
    "Accepts invitation=true&organization=<id> and org=<id> query parameters.",
)
async def get_onboarding_state(
    identity: Identity = Depends(get_current_identity),
    params: InvitationParams = Depends(get_invitation_params),
    service: OnboardingService = Depends(get_onboarding_service),
) -> OnboardingStateResponse:
    session = await service.enter(identity, params)
    return OnboardingStateResponse.from_session(session)


@router.post(
    "/onboarding/organization",
    response_model=OnboardingStateResponse,
    responses=_step_errors,
    summary="Submit the organization step",
    description="Create (or update) the organization derived from your email domain, "
    "with an optional logo. Advances to the profile step.",
)
async def submit_organization(
    name: str = Form(..., min_length=2, max_length=120),
    logo: UploadFile | None = File(None),
    identity: Identity = Depends(get_current_identity),
    params: InvitationParams = Depends(get_invitation_params),
    service: OnboardingService = Depends(get_onboarding_service),
) -> OnboardingStateResponse:
    asset = await read_asset(logo)
    session = await service.enter(identity, params)
    session = await service.submit_organization(session, name, asset)
    return OnboardingStateResponse.from_session(session)


@router.post(
    "/onboarding/profile",
    response_model=OnboardingStateResponse,
    responses=_step_errors,
    summary="Submit the profile step",
    description="Create or update your profile. Invited users finish onboarding here; "
    "everyone else advances to the invite step.",
)
async def submit_profile(
    full_name: str = Form(..., min_length=1, max_length=200),
    job_title: str | None = Form(None, max_length=120),
    avatar: UploadFile | None = File(None),
    identity: Identity = Depends(get_current_identity),
    params: InvitationParams = Depends(get_invitation_params),
    service: OnboardingService = Depends(get_onboarding_service),
) -> OnboardingStateResponse:
    asset = await read_asset(avatar)
    session = await service.enter(identity, params)
    session = await service.submit_profile(session, full_name, job_title=job_title, avatar=asset)
    return OnboardingStateResponse.from_session(session)


@router.post(
    "/onboarding/invite",
    response_model=InviteResponse,
    responses=_step_errors,
    summary="Submit the invite step",
    description="Invite teammates by email. Always completes onboarding; "
    "addresses that could not be invited are listed in 'failed'.",
)
async def submit_invites(
    request_data: InviteRequest,
    identity: Identity = Depends(get_current_identity),
    params: InvitationParams = Depends(get_invitation_params),
    service: OnboardingService = Depends(get_onboarding_service),
) -> InviteResponse:
    session = await service.enter(identity, params)
    session = await service.submit_invites(
        session, request_data.emails, auto_join=request_data.auto_join
    )
    return InviteResponse.from_session(session)


@router.get(
    "/organizations/{organization_id}/membership",
    response_model=MembershipCheckResponse,
    summary="Check organization membership",
)
async def check_membership(
    organization_id: str,
    identity: Identity = Depends(get_current_identity),
    memberships: MembershipRepository = Depends(get_membership_repository),
) -> MembershipCheckResponse:
    is_member = await memberships.exists(identity.id, organization_id)
    return MembershipCheckResponse(organization_id=organization_id, is_member=is_member)


@router.get(
    "/organizations/{organization_id}/invitations",
    response_model=list[InvitationResponse],
    responses={403: {"model": ErrorResponse, "description": "Not a member"}},
    summary="List organization invitations",
    description="Invitations of an organization, newest first. Members only.",
)
async def list_invitations(
    organization_id: str,
    identity: Identity = Depends(get_current_identity),
    memberships: MembershipRepository = Depends(get_membership_repository),
    invitations: InvitationRepository = Depends(get_invitation_repository),
) -> list[InvitationResponse]:
    if not await memberships.exists(identity.id, organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this organization",
        )
    rows = await invitations.list_for_organization(organization_id)
    return [InvitationResponse.from_invitation(invitation) for invitation in rows]


@router.get(
    "/invitations/pending",
    response_model=InvitationResponse | None,
    summary="Get your pending invitation",
    description="Most recent unaccepted, unexpired invitation for your email, or null.",
)
async def get_pending_invitation(
    identity: Identity = Depends(get_current_identity),
    invitations: InvitationRepository = Depends(get_invitation_repository),
) -> InvitationResponse | None:
    invitation = await invitations.find_pending(normalize_email(identity.email))
    if invitation is None:
        return None
    return InvitationResponse.from_invitation(invitation)
