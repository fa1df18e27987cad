"""
api/routes/auth.py -- Session lifecycle REST endpoints.

Routes:
  POST /auth/signup                  -- create account; 201
  POST /auth/login                   -- password login; returns token pair, sets refresh cookie
  POST /auth/logout                  -- bearer required; closes the session in the refresh cookie
  POST /auth/refresh                 -- rotate the refresh token; returns a new pair
  POST /auth/reset-password          -- issue a reset token to the notifier
  POST /auth/reset-password/{token}  -- set a new password with a reset token
  GET  /auth/me                      -- current identity (bearer required)
  GET  /auth/admin                   -- example admin-only route

Handlers are plain `def`: bcrypt and the store block, so FastAPI runs them in
its worker thread pool. Core failures are auth.errors types; the AuthError
handler in api/main.py renders them. InvalidToken is a 400 on logout and
reset-confirm, where the token is request input rather than a credential.

Security:
  Cache-Control: no-store on every response that carries tokens.
  Login failures never distinguish unknown email from wrong password.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    ResetConfirmRequest,
    ResetRequest,
    SignupRequest,
    SignupResponse,
    UserSummary,
)
from auth.dependencies import get_current_identity, require_roles
from auth.errors import AuthError, InvalidToken
from auth.models import Role, UserIdentity
from auth.sessions import SessionController
from auth.tokens import REFRESH_COOKIE, clear_refresh_cookie, set_refresh_cookie

# Auth policy:
# - POST /auth/signup, /auth/login, /auth/refresh:   public
# - POST /auth/reset-password, /reset-password/{t}:  public
# - POST /auth/logout:                               bearer (get_current_identity)
# - GET  /auth/me:                                   bearer (get_current_identity)
# - GET  /auth/admin:                                bearer + admin (require_roles)
router = APIRouter()


def _controller(request: Request) -> SessionController:
    return request.app.state.controller


def _bad_request(exc: AuthError) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": exc.code, "message": exc.message})


def _token_response(model, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=model.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account. Role defaults to user; input is case-insensitive."""
    user = _controller(request).signup(body.email, body.password, body.role)
    content = SignupResponse(message="Signup successful", user=UserSummary.from_user(user))
    return JSONResponse(status_code=201, content=content.model_dump(by_alias=True))


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return tokens and set the refresh cookie.

    A new login replaces any existing session for the user.
    """
    result = _controller(request).login(body.email, body.password)
    resp = _token_response(
        LoginResponse(
            message="Login successful",
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            user=UserSummary.from_user(result.user),
        )
    )
    _set_cookie(request, resp, result.tokens.refresh_token)
    return resp


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange the current refresh token for a new pair. The old token dies."""
    pair = _controller(request).refresh(body.refresh_token)
    resp = _token_response(
        RefreshResponse(
            message="Token refreshed",
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )
    )
    _set_cookie(request, resp, pair.refresh_token)
    return resp


@router.post("/auth/reset-password", response_model=MessageResponse)
def request_password_reset(request: Request, body: ResetRequest) -> MessageResponse:
    """Issue a reset token for the account. Delivery is the notifier's job."""
    _controller(request).request_password_reset(body.email)
    return MessageResponse(message="Password reset requested")


@router.post("/auth/reset-password/{token}", response_model=MessageResponse)
def confirm_password_reset(request: Request, token: str, body: ResetConfirmRequest) -> MessageResponse:
    try:
        _controller(request).confirm_password_reset(token, body.password)
    except InvalidToken as exc:
        raise _bad_request(exc) from exc
    return MessageResponse(message="Password reset successful")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, identity: UserIdentity = Depends(get_current_identity)) -> JSONResponse:
    """Close the session named by the refresh cookie and clear the cookie."""
    try:
        _controller(request).logout(request.cookies.get(REFRESH_COOKIE), user_id=identity.user_id)
    except InvalidToken as exc:
        raise _bad_request(exc) from exc
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    clear_refresh_cookie(resp, secure=request.app.state.settings.secure_cookies)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, identity: UserIdentity = Depends(get_current_identity)) -> JSONResponse:
    """Return identity information for the current caller."""
    user = _controller(request).current_user(identity.user_id)
    content = MeResponse(user_id=user.id, email=user.email, role=user.role.value)
    return JSONResponse(content=content.model_dump(by_alias=True))


@router.get("/auth/admin", response_model=MessageResponse)
def admin(identity: UserIdentity = Depends(require_roles(Role.ADMIN))) -> MessageResponse:
    return MessageResponse(message="Welcome, Admin!")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_cookie(request: Request, resp: JSONResponse, token: str) -> None:
    controller = _controller(request)
    set_refresh_cookie(
        resp,
        token,
        max_age=controller.tokens.refresh_ttl,
        secure=request.app.state.settings.secure_cookies,
    )
