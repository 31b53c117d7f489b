"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Storm backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Implements the DEBUG-conditional JWT_SECRET logic.

Security notes:
  A JWT_SECRET shorter than 32 chars is rejected outright. Session-token
  signing relies on key entropy -- a short key weakens it.

  Outside DEBUG a missing JWT_SECRET does not stop the process. It is logged
  as an operational alarm and the token verifier fails closed with a
  config_error (HTTP 500) on every protected request, never open.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, bootstrap/, or contact/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("storm.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'storm.db'}"


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
    database_url: str = _DEFAULT_DB_URL
    # Run the one-time bootstrap seeder on startup.
    use_mock: bool = False

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_secret: str = ""
    session_cookie_name: str = "storm_app_token"
    # Baseline cookie is readable from JS (the SPA reads it). Flip to true
    # once the client stops depending on document.cookie.
    session_cookie_httponly: bool = False
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Outbound email
    # ------------------------------------------------------------------

    # Empty host selects the log-only mailer.
    email_host: str = "localhost"
    email_port: int = 2525
    email_from_address: str = "noreply@storm.dev"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    forgot_password_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: keep the empty sentinel and log an alarm. Protected
            routes answer 500 until the secret is configured.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                logger.error("JWT_SECRET is not configured. Protected routes will fail with a server error.")
            return self
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
