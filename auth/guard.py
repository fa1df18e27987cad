"""
auth/guard.py -- Request-time access checks.

authenticate() turns an access token into a UserIdentity. It re-reads the
user on every call, so deleting a user revokes access immediately even while
their signed token is still within its expiry window. The identity's role is
taken from the user record, not the token, so a role change applies at once.

authorize() is a pure predicate over an identity and a set of roles.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import Forbidden, InternalError, InvalidToken, Unauthenticated
from auth.models import Role, UserIdentity
from auth.store import UserStore
from auth.tokens import TokenService


class AccessGuard:
    def __init__(self, store: UserStore, tokens: TokenService) -> None:
        self.store = store
        self.tokens = tokens

    def authenticate(self, access_token: str | None) -> UserIdentity:
        """Verify an access token and confirm its user still exists.

        Raises Unauthenticated for a missing, invalid or expired token and for
        a user that no longer exists.
        """
        if not access_token:
            raise Unauthenticated("Authorization token missing or malformed")
        try:
            payload = self.tokens.verify_access(access_token)
        except InvalidToken:
            raise Unauthenticated("Invalid or expired token") from None

        try:
            user = self.store.get_by_id(payload.user_id)
        except SQLAlchemyError as exc:
            raise InternalError() from exc
        if user is None:
            raise Unauthenticated("User not found")
        return UserIdentity(user_id=user.id, role=user.role)

    @staticmethod
    def authorize(identity: UserIdentity, allowed_roles: Iterable[Role | str]) -> None:
        """Raise Forbidden unless identity.role is one of allowed_roles."""
        allowed = {Role.parse(r) for r in allowed_roles}
        if identity.role not in allowed:
            raise Forbidden()
