"""
auth/passwords.py -- bcrypt password hashing and verification.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
trips over bcrypt 4.x, and direct usage has no compatibility shim.

bcrypt only reads the first 72 bytes of its input and current releases reject
anything longer, so hash() refuses such passwords with a ValidationError
instead of silently truncating them.

Timing equalization: the hasher computes a dummy hash once at construction.
verify_dummy() runs bcrypt against it so a login for an unknown email costs
the same as a login with a wrong password.
"""

from __future__ import annotations

import hashlib

import bcrypt

from auth.errors import InternalError, ValidationError

MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted adaptive hashing with a configurable bcrypt cost factor."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("tokengate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        try:
            return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except ValueError as exc:
            raise InternalError() from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Over-long input or a malformed stored hash: neither can match.
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt verification. Always call this on the unknown-user path."""
        self.verify(plain, self._dummy_hash)


def fingerprint(password_hash: str) -> str:
    """Short digest of a password hash, embedded in reset tokens.

    Changes whenever the password does (bcrypt salts every hash), so a reset
    token stops verifying once it has been used.
    """
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]
