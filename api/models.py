"""
API request and response models for the HomeTracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format: JSON keys are camelCase (lastName, roleId, ...) because that is
what the SPA sends and expects. Python attributes stay snake_case; the alias
generator bridges them and populate_by_name lets tests use either.

Input sanitization:
  Every string field on a request model except passwords is stripped of
  surrounding whitespace, cleaned of HTML tags and truncated to
  Settings.max_string_length. Passwords are never altered -- the codec must
  see exactly what the user typed.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from core.config import get_settings

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_HTML_TAG_RE = re.compile(r"</?[^>]+(>|$)")

# Request fields passed through untouched by the sanitizer.
_RAW_FIELDS = frozenset({"password", "current_password", "new_password"})


def sanitize_text(value: str, max_length: int) -> str:
    """Strip HTML tags and surrounding whitespace, then cap the length."""
    return _HTML_TAG_RE.sub("", value).strip()[:max_length]


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _SanitizedRequest(_CamelModel):
    """Base for request bodies: sanitizes every non-password string field."""

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, value, info: ValidationInfo):
        if not isinstance(value, str):
            return value
        if info.field_name in _RAW_FIELDS:
            # Lone surrogates survive JSON decoding but cannot be UTF-8 encoded for hashing.
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise ValueError("must be valid Unicode text") from None
            return value
        return sanitize_text(value, get_settings().max_string_length)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_SanitizedRequest):
    """Request body for POST /api/v1/users/login."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RegisterRequest(_SanitizedRequest):
    """Request body for POST /api/v1/users/register.

    role_id is optional; the service applies Settings.default_role_id.
    """

    last_name: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=255)
    role_id: Optional[int] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[datetime] = None
    description: Optional[str] = None

    def account_fields(self) -> dict:
        """Keyword arguments for AuthService.register / create_account."""
        fields = self.model_dump(exclude={"birth_date"}, exclude_none=True)
        if self.birth_date is not None:
            fields["birth_date"] = self.birth_date.isoformat()
        return fields


class UserCreate(RegisterRequest):
    """Request body for POST /api/v1/users (admin only). Any existing role may be assigned."""

    house_id: Optional[int] = None


class UserUpdate(_SanitizedRequest):
    """Request body for PUT /api/v1/users/{id}. Only sent fields are applied."""

    last_name: Optional[str] = Field(default=None, min_length=1)
    first_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    username: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[datetime] = None
    description: Optional[str] = None
    house_id: Optional[int] = None


class PasswordChange(_SanitizedRequest):
    """Request body for PUT /api/v1/users/me/password."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserProfile(_CamelModel):
    """An account as clients see it. Never carries the credential."""

    id: int
    last_name: str
    first_name: str
    email: str
    role_id: int
    username: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    description: Optional[str] = None
    inscription_date: Optional[str] = None
    house_id: Optional[int] = None


class AuthResponse(UserProfile):
    """Profile plus a bearer token, returned by login and register."""

    token: str
    token_type: str = "bearer"
    expires_in: int


class TokenResponse(_CamelModel):
    token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(_CamelModel):
    """Identity attached to the request, plus the current profile."""

    user_id: int
    role_id: int
    email: str
    profile: UserProfile


class RoleResponse(_CamelModel):
    id: int
    name: str


class CsrfTokenResponse(_CamelModel):
    """Body of GET /api/v1/csrf-token. The SPA reads the "token" key."""

    token: str


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
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = {}
