"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Cinebase auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or better, take the values you need as constructor arguments and let the
composition root (api/main.py lifespan) pass them in.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      refresh-session TTL in particular is read once here, never per request.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. refresh_secret_key -> REFRESH_SECRET_KEY).

  @model_validator(mode="after"): Cross-field validation once all fields are
      resolved. Dev mode (DEBUG=true) generates missing signing keys with a
      warning; production mode refuses to start without them.

Security notes:
  Signing keys shorter than 32 chars are rejected outright.
  Missing signing keys in production are a hard startup failure.
  Access and refresh tokens must be signed with different keys, otherwise
  a refresh token would pass access-token signature checks.
  Production needs REDIS_URL: the in-memory refresh-session store is private
  to one process, so a second worker or a restart would reject valid refresh
  tokens.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("cinebase.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'cinebase_auth.db'}"

_SEVEN_DAYS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file.
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
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # JWT signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    refresh_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = _SEVEN_DAYS

    # ------------------------------------------------------------------
    # Refresh-session store
    # ------------------------------------------------------------------

    # Empty means "no Redis": the process-local memory store is used instead.
    # Only allowed with DEBUG=true; see validate_refresh_store below.
    redis_url: str = ""
    redis_refresh_expire_seconds: int = _SEVEN_DAYS

    # ------------------------------------------------------------------
    # Hashing cost
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536  # KiB
    argon2_parallelism: int = 4

    # ------------------------------------------------------------------
    # OAuth providers (optional -- empty string means provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    github_client_id: str = ""
    github_client_secret: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): auto-generate missing keys with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either key is missing.
        """
        for field in ("secret_key", "refresh_secret_key"):
            if not getattr(self, field):
                if self.debug:
                    setattr(self, field, secrets.token_hex(32))
                    logger.warning(
                        "WARNING: Using auto-generated %s. Sessions will not persist across restarts.",
                        field.upper(),
                    )
                else:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
            if len(getattr(self, field)) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        if self.secret_key == self.refresh_secret_key:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must differ.")
        return self

    @model_validator(mode="after")
    def validate_refresh_store(self) -> "Settings":
        """Production mode refuses to start without a shared refresh-session store."""
        if not self.debug and not self.redis_url:
            raise ValueError(
                "REDIS_URL is required in production mode. "
                "Refresh sessions must be shared by every worker and survive restarts. "
                "To run in development mode with the in-memory store, set DEBUG=true."
            )
        return self

    @model_validator(mode="after")
    def validate_ttls(self) -> "Settings":
        """Every expiry must be a positive number of seconds."""
        for field in (
            "access_token_expire_seconds",
            "refresh_token_expire_seconds",
            "redis_refresh_expire_seconds",
        ):
            if getattr(self, field) <= 0:
                raise ValueError(f"{field.upper()} must be a positive number of seconds.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
