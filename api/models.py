"""
API request and response models for tokengate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal domain
representation. Route handlers map between the two.

Wire names are camelCase (accessToken, refreshToken, userId); Python
attributes are snake_case. Responses must be dumped with by_alias=True.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User

# ---------------------------------------------------------------------------
# Base configs
# ---------------------------------------------------------------------------

_REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_RESPONSE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup. Role is normalized by the controller."""

    model_config = _REQUEST_CONFIG

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)
    role: Optional[str] = Field(default=None, max_length=16)


class LoginRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class RefreshRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    refresh_token: str


class ResetRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = _REQUEST_CONFIG

    email: str = Field(max_length=255)


class ResetConfirmRequest(BaseModel):
    """Request body for POST /auth/reset-password/{token}."""

    model_config = _REQUEST_CONFIG

    password: str = Field(max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    model_config = _RESPONSE_CONFIG

    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(email=user.email, role=user.role.value)


class MessageResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: str


class SignupResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: str
    user: UserSummary


class LoginResponse(BaseModel):
    """Response body for POST /auth/login. The refresh token is also set as a cookie."""

    model_config = _RESPONSE_CONFIG

    message: str
    access_token: str
    refresh_token: str
    user: UserSummary


class RefreshResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: str
    access_token: str
    refresh_token: str


class MeResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    user_id: int
    email: str
    role: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
