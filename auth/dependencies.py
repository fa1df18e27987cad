"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens travel only in the Authorization: Bearer <token> header. The
refresh token cookie is never accepted here.

get_current_identity() raises Unauthenticated (401) for an absent or
malformed header and for any token the guard rejects. require_roles(...)
builds a dependency that additionally raises Forbidden (403).

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. Nothing else in auth/ does.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import Unauthenticated
from auth.guard import AccessGuard
from auth.models import Role, UserIdentity


def bearer_token(request: Request) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip() or " " in token.strip():
        raise Unauthenticated("Authorization token missing or malformed")
    return token.strip()


def get_current_identity(request: Request) -> UserIdentity:
    """Require a valid access token; attach the identity to request.state.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: UserIdentity = Depends(get_current_identity)): ...
    """
    guard: AccessGuard = request.app.state.guard
    identity = guard.authenticate(bearer_token(request))
    request.state.identity = identity
    return identity


def require_roles(*roles: Role | str):
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/admin")
        def route(identity: UserIdentity = Depends(require_roles(Role.ADMIN))): ...
    """
    allowed = tuple(Role.parse(r) for r in roles)

    def dependency(identity: UserIdentity = Depends(get_current_identity)) -> UserIdentity:
        AccessGuard.authorize(identity, allowed)
        return identity

    return dependency
