"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Header, HTTPException, Query, Request, UploadFile, status
from psycopg_pool import AsyncConnectionPool

from src.adapters.repository.postgres import (
    PostgresInvitationRepository,
    PostgresMembershipRepository,
    PostgresOrganizationRepository,
    PostgresProfileRepository,
    PostgresProgressRepository,
)
from src.adapters.storage.local import LocalObjectStorage
from src.config.settings import get_settings
from src.domain.membership import MembershipResolver
from src.domain.models import Asset, Identity, InvitationParams
from src.domain.onboarding import OnboardingService
from src.domain.steps import StepExecutor


def get_pool(request: Request) -> AsyncConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_storage(request: Request) -> LocalObjectStorage:
    """Get object storage created during app lifespan startup."""
    return request.app.state.storage


def get_membership_repository(request: Request) -> PostgresMembershipRepository:
    return PostgresMembershipRepository(get_pool(request))


def get_invitation_repository(request: Request) -> PostgresInvitationRepository:
    return PostgresInvitationRepository(get_pool(request))


def get_onboarding_service(request: Request) -> OnboardingService:
    """
    Create the onboarding orchestrator with injected dependencies.

    Wires the repositories, object storage and settings-driven defaults
    into resolver, step executor and orchestrator.
    """
    settings = get_settings()
    pool = get_pool(request)
    organizations = PostgresOrganizationRepository(pool)
    memberships = PostgresMembershipRepository(pool)
    profiles = PostgresProfileRepository(pool)
    invitations = PostgresInvitationRepository(pool)

    steps = StepExecutor(
        organizations=organizations,
        memberships=memberships,
        profiles=profiles,
        invitations=invitations,
        storage=get_storage(request),
        default_job_title=settings.default_job_title,
        default_role=settings.default_profile_role,
        invitation_ttl=timedelta(days=settings.invitation_ttl_days),
        max_asset_bytes=settings.max_asset_bytes,
        allowed_asset_types=frozenset(settings.allowed_asset_types),
        app_base_url=settings.app_base_url,
    )
    return OnboardingService(
        resolver=MembershipResolver(invitations=invitations, memberships=memberships),
        progress_store=PostgresProgressRepository(pool),
        steps=steps,
        organizations=organizations,
        profiles=profiles,
        home_path=settings.home_path,
    )


def get_current_identity(
    x_identity_id: str | None = Header(None, description="Identity id set by the authenticator"),
    x_identity_email: str | None = Header(None, description="Identity email set by the authenticator"),
) -> Identity:
    """
    Build the current identity from the authenticator's trusted headers.

    Authentication itself happens upstream; a request without both
    headers is unauthenticated.
    """
    if not x_identity_id or not x_identity_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return Identity(id=x_identity_id.strip(), email=x_identity_email.strip().lower())


def get_invitation_params(
    invitation: str | None = Query(None, description="'true' for an invitation-originated session"),
    organization: str | None = Query(None, description="Organization id of the invitation"),
    org: str | None = Query(None, description="Organization id of a direct organization link"),
) -> InvitationParams:
    """Parse the onboarding query-string contract."""
    return InvitationParams.from_query(
        {"invitation": invitation, "organization": organization, "org": org}
    )


async def read_asset(upload: UploadFile | None) -> Asset | None:
    """
    Read an uploaded file into an Asset.

    Reads at most one byte past the configured limit so oversized files
    are rejected by the step without buffering them whole.
    """
    if upload is None or not upload.filename:
        return None
    limit = get_settings().max_asset_bytes
    content = await upload.read(limit + 1)
    return Asset(
        content=content,
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )
