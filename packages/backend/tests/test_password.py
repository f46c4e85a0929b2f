"""Password hashing tests."""

import bcrypt

from instaflix.auth.password import (
    dummy_verify,
    hash_password,
    make_unusable_password,
    needs_rehash,
    verify_password,
)
from instaflix.config import settings


def test_hash_and_verify():
    password_hash = hash_password("correct horse battery")
    assert password_hash.startswith("$2b$")
    assert verify_password("correct horse battery", password_hash)
    assert not verify_password("wrong horse battery", password_hash)


def test_hashes_are_salted():
    assert hash_password("same-password") != hash_password("same-password")


def test_bcryptjs_hashes_verify():
    """Hashes written by the old Node service ($2a$, cost 10) still verify."""
    legacy = bcrypt.hashpw(b"old-password", bcrypt.gensalt(rounds=4, prefix=b"2a")).decode()
    assert legacy.startswith("$2a$")
    assert verify_password("old-password", legacy)


def test_missing_or_malformed_hash_never_verifies():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_unusable_password_never_verifies():
    placeholder = make_unusable_password()
    assert placeholder.startswith("!")
    assert not verify_password(placeholder, placeholder)
    assert not verify_password("", placeholder)
    assert make_unusable_password() != placeholder


def test_long_passwords_truncated_at_72_bytes():
    base = "x" * 72
    password_hash = hash_password(base + "tail-one")
    assert verify_password(base + "tail-two", password_hash)


def test_needs_rehash(monkeypatch):
    current = hash_password("pw")
    assert not needs_rehash(current)

    monkeypatch.setattr(settings, "bcrypt_rounds", settings.bcrypt_rounds + 1)
    assert needs_rehash(current)


def test_needs_rehash_ignores_non_bcrypt():
    assert not needs_rehash(make_unusable_password())


def test_dummy_verify_runs():
    dummy_verify("whatever")


def test_hashless_verify_still_runs_bcrypt(monkeypatch):
    """Missing or unusable hashes cost a bcrypt comparison like a real one."""
    real_checkpw = bcrypt.checkpw
    comparisons = []

    def counting_checkpw(password, hashed):
        comparisons.append(hashed)
        return real_checkpw(password, hashed)

    monkeypatch.setattr(bcrypt, "checkpw", counting_checkpw)

    for stored in (None, "", make_unusable_password()):
        comparisons.clear()
        assert not verify_password("anything", stored)
        assert len(comparisons) == 1
