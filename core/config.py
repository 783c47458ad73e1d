"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Inkpress happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. DEBUG relaxes two production rules: a missing SECRET_KEY is
      generated, and a bcrypt cost below 12 is accepted (tests use 4).

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. Session JWTs are
       signed with it.

  [M7] In production mode a missing SECRET_KEY is a hard startup failure.

  [T1] Service-account tokens and passwords are hashed with bcrypt at BCRYPT_ROUNDS.
       Production refuses anything under 12; bcrypt itself only accepts 4..31.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or blog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("inkpress.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'inkpress.db'}"

_MIN_PRODUCTION_ROUNDS = 12


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_cookie_name: str = "session_token"
    session_expire_seconds: int = 8 * 3600
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Hashing (service-account tokens and passwords)
    # ------------------------------------------------------------------

    bcrypt_rounds: int = _MIN_PRODUCTION_ROUNDS

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    allowed_hosts: list[str] = ["*"]

    rate_limit_enabled: bool = True
    public_rate_limit: str = "60/minute"
    admin_rate_limit: str = "30/minute"
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M6][M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_bcrypt_rounds(self) -> "Settings":
        """Keep the bcrypt cost inside bcrypt's range and at 12+ outside dev [T1]."""
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.bcrypt_rounds < _MIN_PRODUCTION_ROUNDS and not self.debug:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {_MIN_PRODUCTION_ROUNDS} in production mode.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
