"""Repository adapters - Database implementations."""

from .postgres import (
    PostgresInvitationRepository,
    PostgresMembershipRepository,
    PostgresOrganizationRepository,
    PostgresProfileRepository,
    PostgresProgressRepository,
    run_migrations,
)

__all__ = [
    "PostgresInvitationRepository",
    "PostgresMembershipRepository",
    "PostgresOrganizationRepository",
    "PostgresProfileRepository",
    "PostgresProgressRepository",
    "run_migrations",
]
