"""Unit tests for auth/passwords.py -- bcrypt hashing and reset fingerprints."""

import pytest

from auth.errors import ValidationError
from auth.passwords import PasswordHasher, fingerprint


def test_hash_is_salted_bcrypt(hasher: PasswordHasher) -> None:
    first = hasher.hash("secret1")
    second = hasher.hash("secret1")
    assert first != "secret1"
    assert first.startswith("$2b$04$")
    assert first != second


def test_verify_matches_only_the_right_password(hasher: PasswordHasher) -> None:
    hashed = hasher.hash("secret1")
    assert hasher.verify("secret1", hashed)
    assert not hasher.verify("secret2", hashed)


def test_verify_malformed_hash_is_false(hasher: PasswordHasher) -> None:
    assert not hasher.verify("secret1", "not-a-bcrypt-hash")


def test_over_long_password_rejected(hasher: PasswordHasher) -> None:
    """bcrypt reads at most 72 bytes; longer input must not be silently truncated."""
    with pytest.raises(ValidationError):
        hasher.hash("x" * 73)
    # 72 bytes of multi-byte characters is the boundary, not 72 characters.
    with pytest.raises(ValidationError):
        hasher.hash("é" * 37)


def test_verify_dummy_returns_nothing(hasher: PasswordHasher) -> None:
    assert hasher.verify_dummy("whatever") is None


def test_fingerprint_changes_with_the_hash(hasher: PasswordHasher) -> None:
    first = hasher.hash("secret1")
    assert fingerprint(first) == fingerprint(first)
    assert fingerprint(first) != fingerprint(hasher.hash("secret1"))
    assert len(fingerprint(first)) == 16
