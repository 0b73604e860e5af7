"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TaskDesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. jwt_secret_key -> JWT_SECRET_KEY). Type coercion and validation
      are built in.

  @model_validator(mode="after"): Cross-field validation after all fields
      are resolved. Implements the DEBUG-conditional signing configuration:
      dev mode fills in missing values with a warning, production mode
      refuses to start without them.

Security notes:
  [S1] JWT_SECRET_KEY shorter than 32 chars is rejected outright. HS256
       signing relies on key entropy -- a short key weakens every token.

  [S2] Outside DEBUG, a missing secret, issuer or audience is a hard startup
       failure. Token validation checks all three, so running without any of
       them is never a per-request problem -- it is a broken deployment.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, tasks/, or notes/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskdesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'taskdesk.db'}"
_DEV_ISSUER = "taskdesk-dev"
_DEV_AUDIENCE = "taskdesk-dev-clients"


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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token signing -- empty string is the "not configured" sentinel
    # ------------------------------------------------------------------

    jwt_secret_key: str = ""
    jwt_issuer: str = ""
    jwt_audience: str = ""

    # ------------------------------------------------------------------
    # Password policy and hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    password_min_length: int = 8
    password_require_digit: bool = True
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_non_alphanumeric: bool = False
    password_required_unique_chars: int = 1

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    lockout_max_failed_attempts: int = 5
    lockout_minutes: int = 5

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    cors_origins: list[str] = [
        "http://localhost:3000",
        "https://localhost:3000",
        "http://localhost:5173",
        "https://localhost:5173",
    ]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Bootstrap admin account
    # ------------------------------------------------------------------

    seed_default_admin: bool = False
    default_admin_username: str = "adminuser"
    default_admin_email: str = "admin@example.com"
    default_admin_password: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing(self) -> "Settings":
        """Enforce signing configuration [S1][S2].

        Dev mode (DEBUG=true): generate a random secret and fall back to dev
            issuer/audience values, each with a warning. Tokens will not
            survive a restart -- acceptable for local dev.

        Production mode: refuse to start if any of the three is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.jwt_secret_key:
            if self.debug:
                self.jwt_secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET_KEY. Tokens will not survive restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET_KEY is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret_key) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters.")

        for field, dev_value in (("jwt_issuer", _DEV_ISSUER), ("jwt_audience", _DEV_AUDIENCE)):
            if getattr(self, field):
                continue
            if not self.debug:
                raise ValueError(f"{field.upper()} is required in production mode.")
            setattr(self, field, dev_value)
            logger.warning("%s not set, using development value %r", field.upper(), dev_value)
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() if you need to inject
    different environment variables.
    """
    return Settings()
