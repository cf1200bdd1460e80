"""
Domain layer - Pure business logic with zero framework imports.

This package contains the onboarding orchestrator: the state machine that
takes a newly authenticated identity through organization, profile and
invite steps. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .email import extract_domain, normalize_email
from .exceptions import (
    ConflictError,
    DependencyError,
    DomainExtractionError,
    IntegrityError,
    InvalidAssetError,
    MissingOrganizationError,
    OnboardingAlreadyCompleted,
    OnboardingError,
    StepNotAvailableError,
    ValidationError,
)
from .membership import MembershipResolver
from .models import (
    Asset,
    Identity,
    Invitation,
    InvitationContext,
    InvitationLink,
    InvitationParams,
    InvitationSource,
    InviteResult,
    Membership,
    OnboardingProgress,
    OnboardingStep,
    Organization,
    Profile,
)
from .onboarding import OnboardingService, OnboardingSession
from .ports import (
    InvitationRepository,
    MembershipRepository,
    ObjectStorage,
    OrganizationRepository,
    ProfileRepository,
    ProgressRepository,
)
from .steps import StepExecutor, split_full_name

__all__ = [
    "Asset",
    "ConflictError",
    "DependencyError",
    "DomainExtractionError",
    "Identity",
    "IntegrityError",
    "InvalidAssetError",
    "Invitation",
    "InvitationContext",
    "InvitationLink",
    "InvitationParams",
    "InvitationRepository",
    "InvitationSource",
    "InviteResult",
    "Membership",
    "MembershipRepository",
    "MembershipResolver",
    "MissingOrganizationError",
    "ObjectStorage",
    "OnboardingAlreadyCompleted",
    "OnboardingError",
    "OnboardingProgress",
    "OnboardingService",
    "OnboardingSession",
    "OnboardingStep",
    "Organization",
    "OrganizationRepository",
    "Profile",
    "ProfileRepository",
    "ProgressRepository",
    "StepExecutor",
    "StepNotAvailableError",
    "ValidationError",
    "extract_domain",
    "normalize_email",
    "split_full_name",
]
