"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative mapping, SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations are generated by comparing these models to the database.

Key points:
- The users table is the credential store: the only place identity lives.
- Uniqueness of email / username / provider id / legacy id is enforced by
  the database, so concurrent creates cannot both succeed.
- Links reference users by id only, stored as a string because rows written
  before the migration still hold legacy (Supabase) user ids.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class PrincipalRole:
    USER = "user"
    ADMIN = "admin"

    ALL = (USER, ADMIN)


class Principal(Base):
    """A registered user.

    Password users carry a bcrypt hash, Google users carry the provider
    subject id, linked users carry both. Never neither.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR external_provider_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, nullable=True
    )
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # null for Google-only users
    external_provider_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    legacy_store_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )  # migration back-reference only
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PrincipalRole.USER
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Principal {self.id} {self.email}>"


class SavedLink(Base):
    """A saved Instagram post. Only user_id matters to the identity layer."""

    __tablename__ = "links"
    __table_args__ = (
        Index("ix_links_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    tag: Mapped[str] = mapped_column(String(50), nullable=False)
    caption: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class LegacyMigration(Base):
    """One row per legacy user absorbed by the migration tool.

    Written in the same transaction as the user upsert and link rewrite,
    so its presence means that legacy record was fully migrated.
    """

    __tablename__ = "legacy_migrations"

    legacy_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    principal_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    links_rewritten: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    migrated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
