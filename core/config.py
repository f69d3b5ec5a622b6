"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Cogito API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_window_seconds -> SESSION_WINDOW_SECONDS). Type coercion
      and validation are built in.

  @model_validator(mode="after"): Cross-field checks that run once all fields
      are resolved from the environment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or conversations/.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("cogito.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'cogito.db'}"


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
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Sliding window: a session dies after this many seconds without an
    # authenticated request. Also used as the cookie Max-Age.
    session_window_seconds: int = 1800
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Conversational agent
    # ------------------------------------------------------------------

    agent_url: str = "http://127.0.0.1:50051"
    agent_timeout_seconds: float = 30.0

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    @property
    def session_window(self) -> timedelta:
        return timedelta(seconds=self.session_window_seconds)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_sessions(self) -> "Settings":
        """Reject a non-positive session window; warn on insecure cookies in production.

        A zero or negative window would expire every session on its first
        protected request, which is never a useful deployment.
        """
        if self.session_window_seconds <= 0:
            raise ValueError("SESSION_WINDOW_SECONDS must be a positive number of seconds.")
        if not self.debug and not self.secure_cookies:
            logger.warning(
                "SECURE_COOKIES is disabled. Session cookies will be sent over plain HTTP; "
                "enable it when the service sits behind TLS."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
