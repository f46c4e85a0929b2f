"""Credential store tests — lookups, uniqueness, username derivation."""

import uuid

import pytest

from instaflix.auth.errors import ConflictError
from instaflix.auth.password import hash_password
from instaflix.store.credentials import (
    CredentialStore,
    normalize_email,
    slugify_username,
)


def test_normalize_email():
    assert normalize_email("  Mixed.Case@Example.COM ") == "mixed.case@example.com"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Grace Hopper", "gracehopper"),
        ("jane.doe", "janedoe"),
        ("snake_case_99", "snake_case_99"),
        ("Ünïcödé", "ncd"),
        ("!!!", ""),
    ],
)
def test_slugify_username(raw, expected):
    assert slugify_username(raw) == expected


@pytest.mark.asyncio
async def test_create_and_find(db_session):
    store = CredentialStore(db_session)
    principal = await store.create(
        email=" Alice@Example.com",
        username="alice",
        password_hash=hash_password("password_123"),
        legacy_store_id="L9",
    )
    await db_session.commit()

    assert principal.email == "alice@example.com"
    assert principal.role == "user"
    assert principal.created_at is not None
    assert (await store.find_by_email("ALICE@example.com")).id == principal.id
    assert (await store.find_by_id(principal.id)).id == principal.id
    assert (await store.find_by_id(str(principal.id))).id == principal.id
    assert (await store.find_by_legacy_id("L9")).id == principal.id
    assert await store.find_by_id("not-a-uuid") is None
    assert await store.find_by_id(uuid.uuid4()) is None
    assert await store.find_by_external_id("missing") is None


@pytest.mark.asyncio
async def test_create_requires_a_credential(db_session):
    with pytest.raises(ValueError):
        await CredentialStore(db_session).create(email="nocred@example.com", username="nocred")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field, value",
    [
        ("email", "ALICE@example.com"),
        ("username", "alice"),
        ("external_provider_id", "google-1"),
        ("legacy_store_id", "L1"),
    ],
)
async def test_unique_fields(db_session, field, value):
    store = CredentialStore(db_session)
    await store.create(
        email="alice@example.com",
        username="alice",
        password_hash=hash_password("password_123"),
        external_provider_id="google-1",
        legacy_store_id="L1",
    )
    await db_session.commit()

    fields = {
        "email": "bob@example.com",
        "username": "bob",
        "password_hash": hash_password("password_123"),
    }
    fields[field] = value
    with pytest.raises(ConflictError) as exc_info:
        await store.create(**fields)
    assert exc_info.value.field == field


@pytest.mark.asyncio
async def test_database_constraint_is_last_line(db_session, session_factory, monkeypatch):
    """A duplicate slipping past the pre-check still fails, and is rolled back."""
    store = CredentialStore(db_session)
    await store.create(email="dup@example.com", username="first", password_hash="x")
    await db_session.commit()

    async def no_precheck(self, fields):
        return None

    monkeypatch.setattr(CredentialStore, "_ensure_unique", no_precheck)
    async with session_factory() as db:
        with pytest.raises(ConflictError) as exc_info:
            await CredentialStore(db).create(
                email="dup@example.com", username="second", password_hash="x"
            )
        assert exc_info.value.field == "email"
        assert await CredentialStore(db).find_by_email("dup@example.com") is not None
        assert not await CredentialStore(db).username_taken("second")


@pytest.mark.asyncio
async def test_legacy_id_wins_over_email(db_session):
    store = CredentialStore(db_session)
    by_legacy = await store.create(
        email="one@example.com", username="one", password_hash="x", legacy_store_id="L1"
    )
    await store.create(email="two@example.com", username="two", password_hash="x")
    await db_session.commit()

    found = await store.find_by_legacy_id_or_email("L1", "two@example.com")
    assert found.id == by_legacy.id
    found = await store.find_by_legacy_id_or_email("L2", "TWO@example.com")
    assert found.username == "two"
    assert await store.find_by_legacy_id_or_email("L3", "three@example.com") is None


@pytest.mark.asyncio
async def test_derive_username(db_session):
    store = CredentialStore(db_session)
    assert await store.derive_username("Sam", bare_first=True) == "sam"

    await store.create(email="sam@example.com", username="sam", password_hash="x")
    suffixed = await store.derive_username("Sam", bare_first=True)
    assert suffixed.startswith("sam") and len(suffixed) == 7

    separated = await store.derive_username("Sam", separator="_")
    assert separated.startswith("sam_") and len(separated) == 8

    assert (await store.derive_username("!!!")).startswith("user")


@pytest.mark.asyncio
async def test_derive_username_gives_up(db_session, monkeypatch):
    store = CredentialStore(db_session)

    async def always_taken(self, username):
        return True

    monkeypatch.setattr(CredentialStore, "username_taken", always_taken)
    with pytest.raises(ConflictError):
        await store.derive_username("sam")
