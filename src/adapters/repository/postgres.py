"""
PostgreSQL repository adapters - Implement the onboarding repository protocols.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 (async) with raw SQL.

Error translation happens here, at the boundary:
- UniqueViolation -> ConflictError (duplicate membership/profile from a race)
- ForeignKeyViolation -> MissingOrganizationError (unknown organization id)
- any other psycopg.Error -> DependencyError
- a row the domain records reject -> DependencyError

Progress writes are a single INSERT ... ON CONFLICT DO UPDATE statement
replacing the whole record, so concurrent saves for one identity resolve
last-write-wins and never leave a mixed record behind.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from src.domain.exceptions import ConflictError, DependencyError, MissingOrganizationError
from src.domain.models import (
    Invitation,
    Membership,
    OnboardingProgress,
    OnboardingStep,
    Organization,
    Profile,
)

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate psycopg failures into the domain error taxonomy."""
    try:
        yield
    except psycopg.errors.UniqueViolation as exc:
        raise ConflictError(f"{operation}: row already exists") from exc
    except psycopg.errors.ForeignKeyViolation as exc:
        raise MissingOrganizationError(f"{operation}: organization does not exist") from exc
    except psycopg.Error as exc:
        logger.error("%s failed: %s", operation, exc)
        raise DependencyError(f"{operation} failed") from exc
    except ValueError as exc:
        logger.error("%s returned a malformed row: %s", operation, exc)
        raise DependencyError(f"{operation} returned a malformed row") from exc


def _organization(row: dict[str, Any]) -> Organization:
    return Organization(
        id=row["id"],
        name=row["name"],
        domain=row["domain"],
        logo_url=row["logo_url"],
        created_at=row["created_at"],
    )


def _membership(row: dict[str, Any]) -> Membership:
    return Membership(
        identity_id=row["identity_id"],
        organization_id=row["organization_id"],
        is_owner=row["is_owner"],
        created_at=row["created_at"],
    )


def _profile(row: dict[str, Any]) -> Profile:
    return Profile(
        identity_id=row["identity_id"],
        organization_id=row["organization_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        job_title=row["job_title"],
        role=row["role"],
        avatar_url=row["avatar_url"],
        updated_at=row["updated_at"],
    )


def _invitation(row: dict[str, Any]) -> Invitation:
    return Invitation(
        id=row["id"],
        organization_id=row["organization_id"],
        email=row["email"],
        inviter_id=row["inviter_id"],
        auto_join=row["auto_join"],
        accepted=row["accepted"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class _PostgresRepository:
    """Shared pool plumbing for the repositories below."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 AsyncConnectionPool for database connections
        """
        self._pool = pool

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        async with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            await cursor.execute(sql, params)
            row = await cursor.fetchone()
            await conn.commit()
            return row

    async def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        async with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            await cursor.execute(sql, params)
            return await cursor.fetchall()

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        async with self._pool.connection() as conn, conn.cursor() as cursor:
            await cursor.execute(sql, params)
            await conn.commit()
            return cursor.rowcount


class PostgresOrganizationRepository(_PostgresRepository):
    """Implements OrganizationRepository protocol via psycopg3."""

    async def get(self, organization_id: str) -> Organization | None:
        sql = "SELECT id, name, domain, logo_url, created_at FROM organizations WHERE id = %s"
        with _store_errors("get organization"):
            row = await self._fetch_one(sql, (organization_id,))
            return _organization(row) if row is not None else None

    async def find_by_domain(self, domain: str) -> Organization | None:
        sql = """
            SELECT id, name, domain, logo_url, created_at
            FROM organizations
            WHERE domain = %s
            ORDER BY created_at ASC
            LIMIT 1
        """
        with _store_errors("find organization by domain"):
            row = await self._fetch_one(sql, (domain,))
            return _organization(row) if row is not None else None

    async def create(self, name: str, domain: str, logo_url: str | None) -> Organization:
        sql = """
            INSERT INTO organizations (name, domain, logo_url, created_at)
            VALUES (%s, %s, %s, NOW())
            RETURNING id, name, domain, logo_url, created_at
        """
        with _store_errors("create organization"):
            row = await self._fetch_one(sql, (name, domain, logo_url))
            return _organization(row)

    async def update(self, organization_id: str, name: str, logo_url: str | None) -> Organization:
        sql = """
            UPDATE organizations
            SET name = %s, logo_url = %s
            WHERE id = %s
            RETURNING id, name, domain, logo_url, created_at
        """
        with _store_errors("update organization"):
            row = await self._fetch_one(sql, (name, logo_url, organization_id))
        if row is None:
            raise MissingOrganizationError(f"Organization {organization_id} does not exist")
        return _organization(row)


class PostgresMembershipRepository(_PostgresRepository):
    """
    Implements MembershipRepository protocol via psycopg3.

    The UNIQUE (identity_id, organization_id) constraint rejects the
    duplicate insert of two racing tabs; the loser sees ConflictError.
    """

    async def find_for_identity(self, identity_id: str) -> Membership | None:
        sql = """
            SELECT identity_id, organization_id, is_owner, created_at
            FROM memberships
            WHERE identity_id = %s
            ORDER BY created_at DESC
            LIMIT 1
        """
        with _store_errors("find membership"):
            row = await self._fetch_one(sql, (identity_id,))
            return _membership(row) if row is not None else None

    async def exists(self, identity_id: str, organization_id: str) -> bool:
        sql = "SELECT 1 FROM memberships WHERE identity_id = %s AND organization_id = %s"
        with _store_errors("check membership"):
            row = await self._fetch_one(sql, (identity_id, organization_id))
            return row is not None

    async def add(self, identity_id: str, organization_id: str, is_owner: bool) -> Membership:
        sql = """
            INSERT INTO memberships (identity_id, organization_id, is_owner, created_at)
            VALUES (%s, %s, %s, NOW())
            RETURNING identity_id, organization_id, is_owner, created_at
        """
        with _store_errors("add membership"):
            row = await self._fetch_one(sql, (identity_id, organization_id, is_owner))
            return _membership(row)


class PostgresProfileRepository(_PostgresRepository):
    """Implements ProfileRepository protocol via psycopg3."""

    _columns = (
        "identity_id, organization_id, first_name, last_name, email, "
        "job_title, role, avatar_url, updated_at"
    )

    async def get(self, identity_id: str, organization_id: str) -> Profile | None:
        sql = f"""
            SELECT {self._columns}
            FROM profiles
            WHERE identity_id = %s AND organization_id = %s
        """
        with _store_errors("get profile"):
            row = await self._fetch_one(sql, (identity_id, organization_id))
            return _profile(row) if row is not None else None

    async def insert(self, profile: Profile) -> Profile:
        sql = f"""
            INSERT INTO profiles (
                identity_id, organization_id, first_name, last_name, email,
                job_title, role, avatar_url, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING {self._columns}
        """
        params = (
            profile.identity_id,
            profile.organization_id,
            profile.first_name,
            profile.last_name,
            profile.email,
            profile.job_title,
            profile.role,
            profile.avatar_url,
        )
        with _store_errors("insert profile"):
            row = await self._fetch_one(sql, params)
            return _profile(row)

    async def update(self, profile: Profile) -> Profile:
        sql = f"""
            UPDATE profiles
            SET first_name = %s, last_name = %s, job_title = %s,
                avatar_url = %s, updated_at = NOW()
            WHERE identity_id = %s AND organization_id = %s
            RETURNING {self._columns}
        """
        params = (
            profile.first_name,
            profile.last_name,
            profile.job_title,
            profile.avatar_url,
            profile.identity_id,
            profile.organization_id,
        )
        with _store_errors("update profile"):
            row = await self._fetch_one(sql, params)
        if row is None:
            raise DependencyError(
                f"Profile for {profile.identity_id} in {profile.organization_id} does not exist"
            )
        return _profile(row)


class PostgresInvitationRepository(_PostgresRepository):
    """Implements InvitationRepository protocol via psycopg3."""

    _columns = "id, organization_id, email, inviter_id, auto_join, accepted, created_at, expires_at"

    async def find_pending(self, email: str) -> Invitation | None:
        sql = f"""
            SELECT {self._columns}
            FROM invitations
            WHERE email = %s AND accepted = FALSE AND expires_at > NOW()
            ORDER BY created_at DESC
            LIMIT 1
        """
        with _store_errors("find pending invitation"):
            row = await self._fetch_one(sql, (email,))
            return _invitation(row) if row is not None else None

    async def create(
        self,
        organization_id: str,
        email: str,
        inviter_id: str,
        auto_join: bool,
        expires_at: datetime,
    ) -> Invitation:
        sql = f"""
            INSERT INTO invitations (
                organization_id, email, inviter_id, auto_join, accepted, created_at, expires_at
            )
            VALUES (%s, %s, %s, %s, FALSE, NOW(), %s)
            RETURNING {self._columns}
        """
        with _store_errors("create invitation"):
            row = await self._fetch_one(sql, (organization_id, email, inviter_id, auto_join, expires_at))
            return _invitation(row)

    async def mark_accepted(self, email: str, organization_id: str) -> int:
        sql = """
            UPDATE invitations
            SET accepted = TRUE
            WHERE email = %s AND organization_id = %s AND accepted = FALSE
        """
        with _store_errors("accept invitation"):
            return await self._execute(sql, (email, organization_id))

    async def list_for_organization(self, organization_id: str) -> list[Invitation]:
        sql = f"""
            SELECT {self._columns}
            FROM invitations
            WHERE organization_id = %s
            ORDER BY created_at DESC
        """
        with _store_errors("list invitations"):
            rows = await self._fetch_all(sql, (organization_id,))
            return [_invitation(row) for row in rows]


class PostgresProgressRepository(_PostgresRepository):
    """Implements ProgressRepository protocol via psycopg3."""

    async def load(self, identity_id: str) -> OnboardingProgress | None:
        sql = """
            SELECT identity_id, current_step, completed_steps
            FROM onboarding_progress
            WHERE identity_id = %s
        """
        with _store_errors("load progress"):
            row = await self._fetch_one(sql, (identity_id,))
            if row is None:
                return None
            return OnboardingProgress(
                identity_id=row["identity_id"],
                current_step=OnboardingStep(row["current_step"]),
                completed_steps=tuple(OnboardingStep(step) for step in row["completed_steps"]),
            )

    async def save(
        self,
        identity_id: str,
        step: OnboardingStep,
        completed_steps: tuple[OnboardingStep, ...],
    ) -> None:
        sql = """
            INSERT INTO onboarding_progress (identity_id, current_step, completed_steps, updated_at)
            VALUES (%s, %s, %s, NOW())
            ON CONFLICT (identity_id) DO UPDATE
            SET current_step = EXCLUDED.current_step,
                completed_steps = EXCLUDED.completed_steps,
                updated_at = NOW()
        """
        completed = [OnboardingStep(s).value for s in completed_steps]
        with _store_errors("save progress"):
            await self._execute(sql, (identity_id, OnboardingStep(step).value, completed))


async def run_migrations(pool: AsyncConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 AsyncConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            async with pool.connection() as conn:
                await conn.execute(sql_content)
                await conn.commit()

            logger.info("Migration complete: %s", sql_file.name)
        except (OSError, psycopg.Error) as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
