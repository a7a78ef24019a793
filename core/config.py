"""
core/config.py -- Knowledge base settings, read once from the environment.

Every environment variable the service understands is a field on Settings.
Other modules call get_settings() and never touch os.environ themselves.

Sources, highest priority first: process environment, then a .env file in the
working directory, then the defaults below. Field names are the upper-cased
variable names (bcrypt_rounds <- BCRYPT_ROUNDS). List fields such as
ALLOWED_HOSTS take a JSON array.

get_settings() is cached, so the whole process shares one Settings object.
Modules that capture it at import time (auth/tokens.py, api/main.py) see
environment changes only after get_settings.cache_clear() and a re-import.

Startup refusals:
  - no SECRET_KEY outside debug mode
  - SECRET_KEY under 32 characters
  - BCRYPT_ROUNDS outside 10..15
  - SEARCH_DEFAULT_SIZE larger than SEARCH_MAX_SIZE

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or kb/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("knowledgebase.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'knowledgebase.db'}"

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Runtime configuration for the API, the CLI and the stores.

    Every field has a default, so tests can build Settings() with nothing but
    DEBUG=true in the environment.
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
    # "" means unset; validate_secret_key replaces it or refuses to start.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Fixed session TTL. There is no revocation list, so this bounds how long
    # a demoted admin keeps a token carrying the old role.
    token_expire_seconds: int = Field(default=3600, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=10, le=15)
    # Upper bound on bcrypt computations running at once across the process.
    hash_concurrency: int = Field(default=4, ge=1)
    login_rate_limit: str = "10/minute"
    self_registration_enabled: bool = False

    # Bootstrap admin, created at API startup when both are set.
    admin_email: str = ""
    admin_password: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    search_default_size: int = Field(default=10, ge=1)
    search_max_size: int = Field(default=50, ge=1)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill or reject SECRET_KEY.

        With DEBUG=true a missing key is generated per process, which logs
        everyone out on restart. Without DEBUG a missing key stops startup.
        Short keys are refused in both modes: tokens are HMAC-signed with it.
        """
        if not self.secret_key:
            if not self.debug:
                raise ValueError("SECRET_KEY must be set unless DEBUG=true.")
            self.secret_key = secrets.token_hex(_MIN_SECRET_LENGTH)
            logger.warning("SECRET_KEY not set; generated a throwaway key for this debug process.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        return self

    @model_validator(mode="after")
    def validate_search_sizes(self) -> "Settings":
        if self.search_default_size > self.search_max_size:
            raise ValueError("SEARCH_DEFAULT_SIZE must not exceed SEARCH_MAX_SIZE.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first call and return the same instance afterwards."""
    return Settings()
