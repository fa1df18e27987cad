"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store, token service and session controller do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from auth.errors import ValidationError


class Role(str, Enum):
    """Closed set of roles. Stored and transmitted as the lowercase value."""

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | Role | None) -> Role:
        """Normalize a role from request input, a token claim or a DB row.

        Matching is case-insensitive ("USER", "User" and "user" are the same
        role). None means "not given" and yields the default USER role.
        """
        if value is None:
            return cls.USER
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown role {value!r}.") from None


@dataclass
class User:
    """An identity record.

    password_hash is the bcrypt digest and never leaves the server.
    The refresh token is not a field here: it lives in the user's Session.
    """

    email: str
    password_hash: str
    role: Role = Role.USER
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """The session slot owned 1:1 by a User.

    refresh_token is None when the user has no live session. At most one
    refresh token is ever stored per user.
    """

    user_id: int
    refresh_token: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class AccessTokenPayload:
    user_id: int
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenPayload:
    user_id: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ResetTokenPayload:
    """Decoded reset token.

    fingerprint is a digest of the password hash current at issue time. A
    token whose fingerprint no longer matches the stored hash has already
    been used (or the password changed by other means).
    """

    user_id: int
    expires_at: datetime
    fingerprint: str
    purpose: str = "reset"


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated caller attached to a request by the access guard."""

    user_id: int
    role: Role


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: User
