"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for HomeTracker happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  Explicit injection: the token signer never reads Settings itself. Callers
      build a TokenConfig with TokenConfig.from_settings() and hand it to
      TokenService at construction, so tests can sign with any key they like.

Security notes:
  [S1] JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every issued token.

  [S2] A missing JWT_SECRET is NOT fatal. A random 64-byte key is generated
       for the lifetime of the process and a WARNING is logged. Every token
       issued by a previous process becomes unverifiable after a restart.
       This is a known limitation, not a fallback to hide.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("hometracker.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = "sqlite:///hometracker.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured" [S2].
    jwt_secret: str = ""
    token_issuer: str = "api.hometracker"
    token_audience: str = "hometracker.app"
    token_expire_seconds: int = 24 * 3600

    # ------------------------------------------------------------------
    # Passwords and accounts
    # ------------------------------------------------------------------

    password_iterations: int = 10000
    default_role_id: int = 1  # "No roles"
    admin_role_ids: list[int] = [2, 3]  # SuperAdmin, Admin

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    csrf_enabled: bool = True
    secure_cookies: bool = False
    max_string_length: int = 500

    # ------------------------------------------------------------------
    # Rate limiting (slowapi / limits syntax)
    # ------------------------------------------------------------------

    rate_limit_default: str = "100/15 minutes"
    auth_rate_limit: str = "5/15 minutes"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Apply the JWT_SECRET policy [S1][S2]."""
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_hex(64)
            logger.warning(
                "WARNING: JWT_SECRET is not set; using a random per-process key. "
                "Issued tokens will not verify after a restart."
            )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        if self.password_iterations < 1:
            raise ValueError("PASSWORD_ITERATIONS must be a positive integer.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
