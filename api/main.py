"""
api/main.py -- FastAPI application entry point for tokengate.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- browser origins from CORS_ORIGINS, credentials allowed
                       so the refresh cookie reaches /auth/logout
  2. log_requests   -- one log line per request with status and latency

Lifespan builds the service graph (store -> token service, hasher ->
controller, guard) on startup and disposes the DB engine on shutdown.
Everything hangs off app.state; route handlers and dependencies read it from
request.app.state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError, InternalError
from auth.guard import AccessGuard
from auth.notify import ResetNotifier
from auth.passwords import PasswordHasher
from auth.sessions import SessionController
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def wire_state(app: FastAPI, settings: Settings, store: UserStore, notifier: ResetNotifier | None = None) -> None:
    """Attach the service graph to app.state.

    Shared by the real lifespan and the test lifespan so both run the same
    controller/guard construction against different stores.
    """
    tokens = TokenService.from_settings(settings)
    app.state.settings = settings
    app.state.user_store = store
    app.state.tokens = tokens
    app.state.controller = SessionController(
        store,
        tokens,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        notifier=notifier,
        reset_revokes_sessions=settings.reset_revokes_sessions,
    )
    app.state.guard = AccessGuard(store, tokens)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service graph on startup; dispose the DB engine on shutdown."""
    logger.info("tokengate API starting up")
    settings = get_settings()
    wire_state(app, settings, UserStore(settings.database_url))
    logger.info("Auth initialized (debug=%s)", settings.debug)

    yield

    app.state.user_store.close()
    logger.info("tokengate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="tokengate",
    description="Credential and session lifecycle: signup, login, token refresh, logout and password reset.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


def _route_path(request: Request) -> str:
    """Matched route template, so path parameters (reset tokens) never reach the log."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        _route_path(request),
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )
    if status_code == 401:
        resp.headers["WWW-Authenticate"] = "Bearer"
    return resp


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render a core failure with its own status and code.

    InternalError is the one failure logged here: its cause (a repository or
    hashing error) is chained on the exception and never sent to the client.
    """
    if isinstance(exc, InternalError):
        logger.error(
            "Internal error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc.__cause__ or exc,
        )
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body is missing, malformed or the wrong shape."""
    return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for HTTPException.

    Route handlers raise HTTPException with a dict detail; use it directly as
    the error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        resp = JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        if exc.status_code == 401:
            resp.headers["WWW-Authenticate"] = "Bearer"
        return resp
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, InternalError.code, InternalError.default_message)


# ---------------------------------------------------------------------------
# Liveness
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"])
async def root() -> dict:
    return {"message": "Auth API is running"}


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database probe. No auth required."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except Exception:
        logger.exception("Health check: database probe failed")
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
