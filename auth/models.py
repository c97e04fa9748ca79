"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
service layer do the work; these types only own the domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields


@dataclass
class User:
    """A HomeTracker account.

    password holds the Credential Record exactly as stored: either a bare
    64-hex legacy SHA-256 digest or "iterations:salt:hash". It is never
    returned to clients -- use to_profile() for anything leaving the server.

    birth_date and inscription_date are ISO 8601 strings, matching how the
    store persists them.
    """

    email: str
    last_name: str
    first_name: str
    password: str = field(default="", repr=False)
    role_id: int = 1
    id: int | None = None
    username: str | None = None
    phone: str | None = None
    birth_date: str | None = None
    description: str | None = None
    inscription_date: str | None = None
    house_id: int | None = None

    def to_profile(self) -> dict:
        """Return the account without its credential, string fields trimmed.

        Legacy rows were written with padded CHAR-style values, so every
        string is stripped on the way out.
        """
        profile = asdict(self)
        profile.pop("password", None)
        return {k: v.strip() if isinstance(v, str) else v for k, v in profile.items()}


# Columns a caller may change through update_user(). The credential has its
# own path (update_password) and role changes are not exposed.
USER_MUTABLE_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(User) if f.name not in {"id", "password", "inscription_date", "role_id"}
)


@dataclass
class Role:
    name: str
    id: int | None = None


@dataclass(frozen=True)
class IdentityContext:
    """Request-scoped projection of a verified token.

    Attached to request.state.identity by auth.dependencies and discarded
    with the request. Never persisted.
    """

    user_id: int
    role_id: int
    email: str


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried inside a signed token (timing fields excluded)."""

    user_id: int
    role_id: int
    email: str

    def to_identity(self) -> IdentityContext:
        return IdentityContext(user_id=self.user_id, role_id=self.role_id, email=self.email)


@dataclass
class AuthResult:
    """Outcome of a successful login or registration."""

    profile: dict
    token: str
