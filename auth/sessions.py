"""
auth/sessions.py -- The session controller: signup, login, refresh, logout and
password reset.

Every transition reads or writes the user's session slot through UserStore;
see auth/store.py for the slot rules. The controller is framework-free: it
takes plain strings, returns dataclasses and raises auth.errors types. The
route layer maps those to HTTP.

Security:
  Login always runs bcrypt, against a dummy hash when the email is unknown,
  and returns the same InvalidCredentials either way. The caller cannot tell
  a missing account from a wrong password, by error or by timing.

  Login overwrites the slot (single-session policy). Refresh swaps it with a
  compare-and-swap, so a stale or concurrently-used token loses.

  Reset tokens carry a fingerprint of the password hash they were issued
  against. Once the password changes the fingerprint stops matching, so a
  reset token works at most once without a server-side ledger. The password
  write is itself a compare-and-swap on the old hash, so two confirmations
  racing with the same token cannot both land.
"""

from __future__ import annotations

import functools
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import (
    ConflictError,
    InternalError,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from auth.models import LoginResult, Role, TokenPair, User
from auth.notify import LogResetNotifier, ResetNotifier
from auth.passwords import PasswordHasher, fingerprint
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("tokengate.auth")

_MAX_EMAIL_LENGTH = 255


def _store_errors(method):
    """Re-raise repository failures as InternalError (cause chained)."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise InternalError() from exc

    return wrapper


def _require(value: str | None, message: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value


def _check_email(email: str) -> None:
    if "@" not in email or len(email) > _MAX_EMAIL_LENGTH or email != email.strip():
        raise ValidationError("Email address is malformed.")


class SessionController:
    """Orchestrates credential checks, token issuance and the session slot.

    Usage:
        controller = SessionController(store, tokens, hasher)
        controller.signup("a@x.com", "secret1")
        result = controller.login("a@x.com", "secret1")
        pair = controller.refresh(result.tokens.refresh_token)
    """

    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        hasher: PasswordHasher,
        notifier: ResetNotifier | None = None,
        reset_revokes_sessions: bool = True,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.hasher = hasher
        self.notifier = notifier or LogResetNotifier()
        self.reset_revokes_sessions = reset_revokes_sessions

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    @_store_errors
    def signup(self, email: str | None, password: str | None, role: str | Role | None = None) -> User:
        """Create a user with an empty session slot. Role defaults to user."""
        _require(email, "Email and password are required")
        _require(password, "Email and password are required")
        _check_email(email)
        parsed_role = Role.parse(role)

        if self.store.get_by_email(email) is not None:
            raise ConflictError("Email already exists")

        user = User(email=email, password_hash=self.hasher.hash(password), role=parsed_role)
        try:
            user.id = self.store.create_user(user)
        except IntegrityError as exc:
            # A concurrent signup won the unique index.
            raise ConflictError("Email already exists") from exc
        logger.info("Signup user_id=%s role=%s", user.id, user.role.value)
        return user

    @_store_errors
    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Check credentials, issue a token pair and overwrite the session slot.

        Any refresh token from an earlier login stops working immediately.
        """
        _require(email, "Email and password are required")
        _require(password, "Email and password are required")

        user = self.store.get_by_email(email)
        if user is None:
            self.hasher.verify_dummy(password)
            logger.info("Login failed: bad credentials")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: bad credentials")
            raise InvalidCredentials()

        pair = self._issue_pair(user)
        if not self.store.open_session(user.id, pair.refresh_token):
            # User row exists but its session row does not.
            raise InternalError()
        logger.info("Login user_id=%s", user.id)
        return LoginResult(tokens=pair, user=user)

    # ------------------------------------------------------------------
    # Refresh / logout
    # ------------------------------------------------------------------

    @_store_errors
    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Exchange a live refresh token for a new pair, rotating the slot.

        The presented token must verify AND be the one currently in the slot.
        Rotation is a compare-and-swap: of two concurrent calls with the same
        token, the second finds the slot already moved and gets InvalidToken.
        """
        _require(refresh_token, "Refresh token is required")
        payload = self.tokens.verify_refresh(refresh_token)

        user = self.store.get_by_id(payload.user_id)
        if user is None:
            raise InvalidToken()

        pair = self._issue_pair(user)
        if not self.store.rotate_session(user.id, refresh_token, pair.refresh_token):
            logger.warning("Refresh rejected: stale refresh token for user_id=%s", user.id)
            raise InvalidToken()
        logger.info("Refresh user_id=%s", user.id)
        return pair

    @_store_errors
    def logout(self, refresh_token: str | None, user_id: int | None = None) -> None:
        """End the session the refresh token belongs to.

        A token that verifies but is no longer in the slot (already rotated
        or logged out) is accepted without touching the newer session.
        user_id, when given, is the authenticated caller; a refresh token for
        a different user is rejected.
        """
        _require(refresh_token, "Refresh token is required")
        payload = self.tokens.verify_refresh(refresh_token)
        if user_id is not None and payload.user_id != user_id:
            raise InvalidToken()

        if self.store.close_session(payload.user_id, refresh_token):
            logger.info("Logout user_id=%s", payload.user_id)
        else:
            logger.info("Logout user_id=%s: session already closed", payload.user_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    @_store_errors
    def request_password_reset(self, email: str | None) -> str:
        """Issue a reset token and hand it to the notifier. Returns the token."""
        _require(email, "Email is required")
        user = self.store.get_by_email(email)
        if user is None:
            raise NotFound("User not found")

        token = self.tokens.issue_reset(user.id, fingerprint(user.password_hash))
        self.notifier.send_reset(user, token)
        return token

    @_store_errors
    def confirm_password_reset(self, token: str | None, password: str | None) -> None:
        """Set a new password using a reset token.

        With reset_revokes_sessions (the default) the session slot is also
        cleared, so any refresh token issued before the reset stops working.
        """
        _require(token, "Token and new password are required")
        _require(password, "Token and new password are required")
        payload = self.tokens.verify_reset(token)

        user = self.store.get_by_id(payload.user_id)
        if user is None or fingerprint(user.password_hash) != payload.fingerprint:
            raise InvalidToken()

        new_hash = self.hasher.hash(password)
        if not self.store.replace_password_hash(user.id, user.password_hash, new_hash):
            logger.warning("Password reset rejected: password already changed for user_id=%s", user.id)
            raise InvalidToken()
        if self.reset_revokes_sessions:
            self.store.clear_session(user.id)
        logger.info("Password reset user_id=%s", user.id)

    @_store_errors
    def current_user(self, user_id: int) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise Unauthenticated("User not found")
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.tokens.issue_access(user.id, user.role),
            refresh_token=self.tokens.issue_refresh(user.id),
        )
