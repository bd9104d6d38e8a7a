"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the StudyShala backend happen here. No
module should call os.getenv() or os.environ.get() directly -- import
get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. session_secret -> SESSION_SECRET). `environment` accepts either
      APP_ENV or NODE_ENV so existing deployment configs keep working.

  @model_validator(mode="after"): Cross-field validation of SESSION_SECRET.
      Development generates a key with a warning; production refuses to start
      without one. There is no hard-coded fallback secret.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or client/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("studyshala.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'studyshala.db'}"

# Browser origins that are always allowed (Vite dev server, CRA-style fallback).
LOCAL_ORIGINS: tuple[str, ...] = (
    "http://localhost:5173",
    "http://localhost:3000",
)

SESSION_COOKIE_NAME = "studyshala.sid"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "APP_ENV", "NODE_ENV"),
    )
    port: int = 5000
    database_url: str = _DEFAULT_DB_URL
    log_dir: str = "logs"

    # ------------------------------------------------------------------
    # Browser access
    # ------------------------------------------------------------------

    # Production front end origin, e.g. https://studyshala.netlify.app
    frontend_url: str = ""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    session_secret: str = ""
    session_ttl_seconds: int = 24 * 60 * 60
    session_purge_interval_seconds: int = 60 * 60

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def allowed_origins(self) -> tuple[str, ...]:
        """Ordered allow-list: fixed localhost origins, then FRONTEND_URL if set."""
        origins = list(LOCAL_ORIGINS)
        frontend = self.frontend_url.strip().rstrip("/")
        if frontend and frontend not in origins:
            origins.append(frontend)
        return tuple(origins)

    @property
    def cookie_same_site(self) -> str:
        # Cross-site front end (separate host) needs SameSite=None in production.
        return "none" if self.is_production else "lax"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Enforce the SESSION_SECRET policy.

        Non-production: auto-generate a random secret with a warning.
            Sessions will not survive restart, which is fine for local dev.

        Production: refuse to start without a secret. Signing cookies with a
            guessable constant would let anyone forge a session.

        Both: reject secrets shorter than 32 characters.
        """
        if not self.session_secret:
            if self.is_production:
                raise ValueError(
                    "SESSION_SECRET is required in production. "
                    "Set SESSION_SECRET in your environment or .env file."
                )
            self.session_secret = secrets.token_hex(32)
            logger.warning("Using auto-generated SESSION_SECRET. Sessions will not persist across restarts.")
        if len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
