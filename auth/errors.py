"""
auth/errors.py -- Typed failures raised by the auth core.

Every core operation either returns its result or raises one of these. Each
class carries the HTTP status and the stable error code the API layer renders,
so routes never have to map exceptions by hand.

InvalidCredentials deliberately covers both "no such user" and "wrong
password". ExpiredToken shares InvalidToken's code so a client cannot tell
an expired token from a forged one.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth-core failures mapped to HTTP responses."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class ConflictError(AuthError):
    status_code = 400
    code = "conflict"
    default_message = "Email already exists."


class InvalidCredentials(AuthError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials."


class InvalidToken(AuthError):
    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token."


class ExpiredToken(InvalidToken):
    """Token signature is valid but its exp claim is in the past."""


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied: insufficient permissions."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "User not found."


class InternalError(AuthError):
    """A repository or hashing failure. The message is safe to show clients;
    the underlying cause is chained as __cause__ and logged at the boundary."""

    status_code = 500
    code = "internal_error"
    default_message = "An unexpected error occurred."
