"""
Domain exceptions - Semantic error types for onboarding.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Taxonomy:
- ValidationError: malformed input, re-shown on the current step
- ConflictError: duplicate row from a race, treated as already-exists
- DependencyError: store/storage/network failure, user retries
- IntegrityError: a later write in a step failed after an earlier one succeeded
"""


class OnboardingError(Exception):
    """Base class for onboarding domain errors."""

    code = "onboarding_error"


class ValidationError(OnboardingError):
    """Submitted input cannot be processed; state does not advance."""

    code = "validation_error"


class DomainExtractionError(ValidationError):
    """No organization domain can be derived from the identity's email."""

    code = "domain_extraction_error"


class MissingOrganizationError(ValidationError):
    """No organization resolves for the profile or invite step."""

    code = "missing_organization"


class InvalidAssetError(ValidationError):
    """Uploaded asset is too large or of an unsupported type."""

    code = "invalid_asset"


class StepNotAvailableError(ValidationError):
    """Submitted step is not reachable from the current progress."""

    code = "step_not_available"


class OnboardingAlreadyCompleted(OnboardingError):
    """Identity has finished onboarding and should go straight home."""

    code = "onboarding_completed"


class ConflictError(OnboardingError):
    """Row already exists (uniqueness violation in the store)."""

    code = "conflict"


class DependencyError(OnboardingError):
    """Backing store, object storage or network failure."""

    code = "dependency_error"


class IntegrityError(OnboardingError):
    """A step left an earlier write in place after a later write failed."""

    code = "integrity_error"
