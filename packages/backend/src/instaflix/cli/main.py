"""Instaflix operator CLI — schema setup, legacy user migration, admin chores.

Usage:
    instaflix init-db                          # Create tables (dev / SQLite)
    instaflix migrate-users                    # Absorb Supabase users, rewrite links
    instaflix migrate-users --dry-run          # Same, but roll every record back
    instaflix set-role alice@example.com admin # Roles are never user-settable
    instaflix issue-token alice@example.com    # Print a session token (debugging)

Every command opens its own engine from INSTAFLIX_DATABASE_URL and
disposes it before exiting.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from contextlib import asynccontextmanager
from typing import Optional

import click
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from instaflix import __version__
from instaflix.auth.jwt import SessionTokenService
from instaflix.config import settings
from instaflix.db.engine import build_engine
from instaflix.db.models import Base, PrincipalRole
from instaflix.legacy.supabase import SupabaseAdminSource
from instaflix.logging_config import configure_logging
from instaflix.services.migration_service import IdentityMigrator
from instaflix.store.credentials import CredentialStore

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles an already-running event loop (e.g. CliRunner inside async
    tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


@asynccontextmanager
async def _sessions():
    """Yield a session factory bound to a throwaway engine."""
    engine = build_engine(settings.database_url)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="instaflix")
def main():
    """Instaflix identity administration."""
    configure_logging()


# ---------------------------------------------------------------------------
# instaflix init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create all tables that don't exist yet.

    Production databases are managed with Alembic instead.
    """
    _run(_init_db_impl())
    click.secho("Tables created.", fg="green")


async def _init_db_impl():
    engine = build_engine(settings.database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# instaflix migrate-users
# ---------------------------------------------------------------------------


@main.command("migrate-users")
@click.option("--per-page", type=int, default=None, help="Legacy users per page")
@click.option("--dry-run", is_flag=True, help="Resolve everything, commit nothing")
def migrate_users(per_page: Optional[int], dry_run: bool):
    """Move Supabase auth users into our users table and rewrite link owners."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        _fail("INSTAFLIX_SUPABASE_URL and INSTAFLIX_SUPABASE_SERVICE_ROLE_KEY are required")

    source = SupabaseAdminSource(
        settings.supabase_url,
        settings.supabase_service_role_key,
        per_page=per_page or settings.migration_page_size,
    )
    summary = _run(_migrate_impl(source, dry_run))

    click.echo(f"Migrated:        {summary.migrated}")
    click.echo(f"Failed:          {summary.failed}")
    click.echo(f"Links rewritten: {summary.links_rewritten}")
    if dry_run:
        click.secho("Dry run: nothing was committed.", fg="yellow")
    if not summary.ok:
        click.secho("Failed legacy ids: " + ", ".join(summary.failed_ids), fg="red", err=True)
        sys.exit(1)


async def _migrate_impl(source, dry_run: bool):
    async with _sessions() as session_factory:
        return await IdentityMigrator(session_factory, source, dry_run=dry_run).run()


# ---------------------------------------------------------------------------
# instaflix set-role
# ---------------------------------------------------------------------------


@main.command("set-role")
@click.argument("email")
@click.argument("role", type=click.Choice(PrincipalRole.ALL))
def set_role(email: str, role: str):
    """Change a user's role."""
    found = _run(_set_role_impl(email, role))
    if not found:
        _fail(f"No user with email {email}")
    click.secho(f"{email} is now {role}.", fg="green")


async def _set_role_impl(email: str, role: str) -> bool:
    async with _sessions() as session_factory:
        async with session_factory() as db:
            store = CredentialStore(db)
            principal = await store.find_by_email(email)
            if principal is None:
                return False
            principal.role = role
            await store.save(principal)
            await db.commit()
            logger.info("cli.role_changed", principal_id=str(principal.id), role=role)
            return True


# ---------------------------------------------------------------------------
# instaflix issue-token
# ---------------------------------------------------------------------------


@main.command("issue-token")
@click.argument("email")
def issue_token(email: str):
    """Print a session token for a user."""
    principal_id = _run(_lookup_id(email))
    if principal_id is None:
        _fail(f"No user with email {email}")
    click.echo(SessionTokenService.from_settings(settings).issue(principal_id))


async def _lookup_id(email: str) -> Optional[str]:
    async with _sessions() as session_factory:
        async with session_factory() as db:
            principal = await CredentialStore(db).find_by_email(email)
            return str(principal.id) if principal else None


if __name__ == "__main__":
    main()
