"""
auth/tokens.py -- Signed identity tokens (issue, verify, refresh).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId, roleId, email plus the
       fixed iss/aud pair and a 24h exp. Nothing is stored server-side; a
       token is valid exactly when its signature and claims check out.

  Injection: TokenService receives a TokenConfig at construction. It never
       reads settings or environment itself, so two services with different
       secrets can coexist (tests rely on this to prove foreign-key tokens
       are rejected).

  One failure mode: verify() raises InvalidOrExpiredToken for every problem
       -- forged signature, wrong issuer/audience, lapsed expiry, missing
       claims, garbage input. The message is fixed. A caller probing tokens
       learns nothing about which check tripped.

Layer rule: may import from core/ (config) but not from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import InvalidOrExpiredToken
from auth.models import TokenClaims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("hometracker.auth")

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    issuer: str = "api.hometracker"
    audience: str = "hometracker.app"
    expire_seconds: int = 24 * 3600
    algorithm: str = _ALGORITHM

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            expire_seconds=settings.token_expire_seconds,
        )


class TokenService:
    """Issues and verifies identity tokens for one signing configuration.

    Usage:
        tokens = TokenService(TokenConfig.from_settings(get_settings()))
        token = tokens.issue(TokenClaims(user_id=1, role_id=4, email="a@b.test"))
        claims = tokens.verify(token)
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def expire_seconds(self) -> int:
        return self._config.expire_seconds

    def issue(self, claims: TokenClaims, expires_in: int | None = None) -> str:
        """Sign the identity claims with a fresh expiry window.

        Args:
            claims:     Identity to embed.
            expires_in: Lifetime in seconds. None uses the configured default.
        """
        now = datetime.now(timezone.utc)
        duration = self._config.expire_seconds if expires_in is None else expires_in
        payload = {
            "userId": claims.user_id,
            "roleId": claims.role_id,
            "email": claims.email,
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "iat": now,
            "exp": now + timedelta(seconds=duration),
        }
        return jwt.encode(payload, self._config.secret, algorithm=self._config.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Validate signature, issuer, audience, expiry; return identity claims."""
        try:
            payload = jwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={"require_exp": True, "require_iat": True, "require_aud": True, "require_iss": True},
            )
        except (JWTError, AttributeError, TypeError, ValueError) as exc:
            logger.info("Token rejected (%s)", type(exc).__name__)
            raise InvalidOrExpiredToken() from None

        user_id = payload.get("userId")
        role_id = payload.get("roleId")
        email = payload.get("email")
        if not isinstance(user_id, int) or not isinstance(role_id, int) or not isinstance(email, str):
            logger.info("Token rejected (missing identity claims)")
            raise InvalidOrExpiredToken()
        return TokenClaims(user_id=user_id, role_id=role_id, email=email)

    def refresh(self, token: str) -> str:
        """Re-issue a still-valid token with a fresh expiry and the same identity.

        The old iat/exp are discarded; only identity claims carry over.
        """
        return self.issue(self.verify(token))
