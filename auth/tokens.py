"""
auth/tokens.py -- JWT issuing/verification and the refresh-token cookie.

Security design decisions:
  JWT: python-jose with HS256. Three token kinds, each signed with its own
       secret (reset falls back to the access secret when no dedicated one is
       configured) and tagged with a "type" claim. A token is only accepted by
       the verifier for its own kind, so a reset token cannot be replayed as an
       access token even when both share a key.

  Every token carries a random jti. Two refresh tokens issued for the same
       user within the same second would otherwise be byte-identical, and
       rotation relies on the new token differing from the old one.

  Failures: expiry raises ExpiredToken, everything else (bad signature, wrong
       secret, malformed token, wrong type, missing claims) raises InvalidToken.
       The route layer renders both with the same code.

  Expiry is checked against the service's own clock rather than jose's, so
       tests can move time without sleeping.

Layer rule: no imports from api/. Token verification is pure CPU work; nothing
in this module touches the store.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken, ValidationError
from auth.models import AccessTokenPayload, RefreshTokenPayload, ResetTokenPayload, Role

if TYPE_CHECKING:
    from core.config import Settings


_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"

REFRESH_COOKIE = "refreshToken"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Creates and verifies access, refresh and reset tokens.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        token = tokens.issue_access(user.id, user.role)
        payload = tokens.verify_access(token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        reset_secret: str | None = None,
        access_ttl: int = 900,
        refresh_ttl: int = 7 * 24 * 3600,
        reset_ttl: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secrets = {
            ACCESS: access_secret,
            REFRESH: refresh_secret,
            RESET: reset_secret or access_secret,
        }
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl, RESET: reset_ttl}
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            access_secret=settings.access_secret_key,
            refresh_secret=settings.refresh_secret_key,
            reset_secret=settings.reset_secret_key,
            access_ttl=settings.access_token_expire_seconds,
            refresh_ttl=settings.refresh_token_expire_seconds,
            reset_ttl=settings.reset_token_expire_seconds,
        )

    @property
    def refresh_ttl(self) -> int:
        return self._ttls[REFRESH]

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access(self, user_id: int, role: Role | str) -> str:
        return self._encode(ACCESS, user_id, {"role": Role.parse(role).value})

    def issue_refresh(self, user_id: int) -> str:
        return self._encode(REFRESH, user_id, {})

    def issue_reset(self, user_id: int, fingerprint: str) -> str:
        return self._encode(RESET, user_id, {"purpose": RESET, "fgp": fingerprint})

    def _encode(self, kind: str, user_id: int, extra: dict) -> str:
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "type": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._ttls[kind])).timestamp()),
            "jti": secrets.token_hex(8),
            **extra,
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> AccessTokenPayload:
        claims = self._decode(ACCESS, token)
        if "role" not in claims:
            raise InvalidToken()
        try:
            role = Role.parse(claims["role"])
        except ValidationError:
            raise InvalidToken() from None
        return AccessTokenPayload(
            user_id=claims["user_id"],
            role=role,
            issued_at=_from_timestamp(claims["iat"]),
            expires_at=_from_timestamp(claims["exp"]),
        )

    def verify_refresh(self, token: str) -> RefreshTokenPayload:
        claims = self._decode(REFRESH, token)
        return RefreshTokenPayload(
            user_id=claims["user_id"],
            issued_at=_from_timestamp(claims["iat"]),
            expires_at=_from_timestamp(claims["exp"]),
        )

    def verify_reset(self, token: str) -> ResetTokenPayload:
        claims = self._decode(RESET, token)
        if claims.get("purpose") != RESET or not isinstance(claims.get("fgp"), str):
            raise InvalidToken()
        return ResetTokenPayload(
            user_id=claims["user_id"],
            expires_at=_from_timestamp(claims["exp"]),
            fingerprint=claims["fgp"],
        )

    def _decode(self, kind: str, token: str) -> dict:
        """Check signature, type claim, required claims and expiry."""
        if not token or not isinstance(token, str):
            raise InvalidToken()
        try:
            claims = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            raise InvalidToken() from None
        if claims.get("type") != kind:
            raise InvalidToken()
        for claim in ("user_id", "iat", "exp"):
            value = claims.get(claim)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidToken()
        if claims["exp"] <= int(self._clock().timestamp()):
            raise ExpiredToken()
        return claims


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the refresh token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the refresh token expiry so both expire together.
    """
    response.set_cookie(
        REFRESH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_refresh_cookie(response, secure: bool = False) -> None:
    response.delete_cookie(REFRESH_COOKIE, httponly=True, samesite="lax", secure=secure)
