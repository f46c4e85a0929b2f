"""Identity migration — absorb legacy Supabase users into the users table.

Runs out-of-band from the CLI (instaflix migrate-users), never while
serving requests. For every legacy user:

1. find our user by legacy id, else by email;
2. create one if missing (unusable placeholder password, Google id carried
   over), or fill in legacy id / Google id / avatar without overwriting;
3. point every saved link still holding the legacy id at our user id;
4. record a legacy_migrations marker.

Steps 1-4 share one transaction per legacy user, so an interrupted run
leaves each record either fully migrated or untouched, and re-running
converges: users are found again by legacy id, already rewritten links no
longer match. A failing record is rolled back, logged, counted, and the
batch moves on.
"""

import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from instaflix.auth.errors import ConflictError
from instaflix.auth.password import make_unusable_password
from instaflix.db.models import LegacyMigration, Principal, SavedLink, utcnow
from instaflix.legacy.supabase import LegacyIdentitySource, LegacyUser
from instaflix.store.credentials import CredentialStore

logger = structlog.get_logger()


@dataclass
class MigrationSummary:
    """Outcome of one migration run."""

    migrated: int = 0
    failed: int = 0
    links_rewritten: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class IdentityMigrator:
    """Sequential, page-by-page reconciliation of legacy users.

    Usage:
        migrator = IdentityMigrator(async_session_factory, SupabaseAdminSource(...))
        summary = await migrator.run()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        source: LegacyIdentitySource,
        dry_run: bool = False,
    ):
        self.session_factory = session_factory
        self.source = source
        self.dry_run = dry_run

    async def run(self) -> MigrationSummary:
        summary = MigrationSummary()
        logger.info("migration.started", dry_run=self.dry_run)

        async for page in self.source.pages():
            for legacy in page:
                try:
                    rewritten = await self._migrate_one(legacy)
                except Exception as e:
                    summary.failed += 1
                    summary.failed_ids.append(legacy.legacy_id)
                    logger.error(
                        "migration.record_failed",
                        legacy_id=legacy.legacy_id,
                        error=str(e),
                    )
                    continue
                summary.migrated += 1
                summary.links_rewritten += rewritten

        logger.info(
            "migration.complete",
            migrated=summary.migrated,
            failed=summary.failed,
            links_rewritten=summary.links_rewritten,
            dry_run=self.dry_run,
        )
        return summary

    async def _migrate_one(self, legacy: LegacyUser) -> int:
        """Migrate one legacy user in its own transaction. Returns links rewritten."""
        if legacy.error:
            raise ValueError(legacy.error)
        if not legacy.email:
            raise ValueError("Legacy user has no email")

        log = logger.bind(legacy_id=legacy.legacy_id)
        async with self.session_factory() as db:
            try:
                principal = await self._upsert_principal(db, legacy)
                principal_id = principal.id
                rewritten = await self._rewrite_links(db, legacy.legacy_id, principal_id)
                await self._mark_migrated(db, legacy.legacy_id, principal_id, rewritten)
                if self.dry_run:
                    await db.rollback()
                else:
                    await db.commit()
            except Exception:
                await db.rollback()
                raise

        log.info("migration.record_done", principal_id=str(principal_id), links=rewritten)
        return rewritten

    async def _upsert_principal(
        self, db: AsyncSession, legacy: LegacyUser
    ) -> Principal:
        store = CredentialStore(db)
        principal = await store.find_by_legacy_id_or_email(legacy.legacy_id, legacy.email)

        subject = legacy.provider_subject
        if subject:
            owner = await store.find_by_external_id(subject)
            if owner is not None and (principal is None or owner.id != principal.id):
                # Google id already belongs to someone else; don't steal it.
                logger.warning("migration.provider_id_taken", legacy_id=legacy.legacy_id)
                subject = None

        if principal is None:
            base = legacy.username or legacy.email.split("@")[0]
            return await store.create(
                email=legacy.email,
                username=await store.derive_username(base, separator="_"),
                legacy_store_id=legacy.legacy_id,
                password_hash=make_unusable_password(),
                external_provider_id=subject,
                avatar_url=legacy.avatar_url,
            )

        if principal.legacy_store_id and principal.legacy_store_id != legacy.legacy_id:
            raise ConflictError(
                "User is already bound to a different legacy id",
                field="legacy_store_id",
            )

        changed = False
        if principal.legacy_store_id is None:
            principal.legacy_store_id = legacy.legacy_id
            changed = True
        if principal.external_provider_id is None and subject:
            principal.external_provider_id = subject
            changed = True
        if not principal.avatar_url and legacy.avatar_url:
            principal.avatar_url = legacy.avatar_url
            changed = True
        if changed:
            await store.save(principal)
        return principal

    async def _rewrite_links(
        self, db: AsyncSession, legacy_id: str, principal_id: uuid.UUID
    ) -> int:
        result = await db.execute(
            update(SavedLink)
            .where(SavedLink.user_id == legacy_id)
            .values(user_id=str(principal_id))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def _mark_migrated(
        self,
        db: AsyncSession,
        legacy_id: str,
        principal_id: uuid.UUID,
        rewritten: int,
    ) -> None:
        marker = await db.get(LegacyMigration, legacy_id)
        if marker is None:
            db.add(
                LegacyMigration(
                    legacy_id=legacy_id,
                    principal_id=principal_id,
                    links_rewritten=rewritten,
                )
            )
        else:
            marker.principal_id = principal_id
            marker.links_rewritten += rewritten
            marker.migrated_at = utcnow()
        await db.flush()
