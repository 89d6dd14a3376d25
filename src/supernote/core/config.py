"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded once from environment variables or a .env file and
passed explicitly to the components that need them.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ASYNC_DRIVER_SCHEMES = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
}


class Settings(BaseSettings):
    """
    Immutable application settings with environment variable binding.

    Required env vars (no defaults):
        DATABASE_URL

    Optional env vars:
        PORT (8080), HOST (0.0.0.0), ENV (development), LOG_LEVEL (INFO), LOG_SQL,
        DB_POOL_* bounds, DB_QUERY_TIMEOUT (10.0), AUTO_CREATE_SCHEMA (False),
        SUPABASE_* and GEMINI_API_KEY (embedding provider, not wired yet)
    """

    PROJECT_NAME: str = "Supernote AI Backend"
    SERVICE_NAME: str = "supernote-ai-backend"
    VERSION: str = "1.0.0"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    ENV: str = "development"

    # Database
    DATABASE_URL: str = Field(..., min_length=1)
    AUTO_CREATE_SCHEMA: bool = False

    # Connection pool bounds
    DB_POOL_MAX_CONNS: int = Field(default=25, ge=1)
    DB_POOL_MIN_CONNS: int = Field(default=5, ge=0)
    DB_POOL_MAX_CONN_LIFETIME: int = Field(default=3600, ge=1)  # seconds
    DB_POOL_MAX_CONN_IDLE_TIME: int = Field(default=1800, ge=1)  # seconds

    # Per-operation deadline for gateway calls (seconds), 0 disables it
    DB_QUERY_TIMEOUT: float = Field(default=10.0, ge=0)

    # Startup connectivity check
    DB_CONNECT_RETRIES: int = Field(default=10, ge=1)
    DB_CONNECT_RETRY_DELAY: float = Field(default=1.0, ge=0)

    # External providers (embedding generation is not wired yet)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    GEMINI_API_KEY: str = ""

    # HTTP
    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_SQL: bool = False  # Log every SQL statement and pool event

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
        frozen=True,
    )

    @field_validator("DB_POOL_MIN_CONNS")
    @classmethod
    def _min_not_above_max(cls, value: int, info: ValidationInfo) -> int:
        max_conns = info.data.get("DB_POOL_MAX_CONNS")
        if max_conns is not None and value > max_conns:
            raise ValueError("DB_POOL_MIN_CONNS cannot exceed DB_POOL_MAX_CONNS")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def query_timeout(self) -> float | None:
        """Gateway deadline in seconds, None when disabled."""
        return self.DB_QUERY_TIMEOUT or None

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """
        DATABASE_URL rewritten for the asyncpg driver.

        Hosted Postgres providers hand out ``postgres://`` or
        ``postgresql://`` URLs with libpq options; SQLAlchemy needs the
        driver in the scheme and asyncpg takes ``ssl`` instead of ``sslmode``.
        """
        parts = urlsplit(self.DATABASE_URL)
        scheme = _ASYNC_DRIVER_SCHEMES.get(parts.scheme, parts.scheme)

        query = []
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            query.append(("ssl" if key == "sslmode" else key, value))

        return urlunsplit(
            (scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
        )


def load_settings() -> Settings:
    """
    Build the settings value from the process environment.

    Raises:
        pydantic.ValidationError: If DATABASE_URL is missing or a bound is
            invalid. Callers treat this as a fatal startup condition.
    """
    return Settings()  # type: ignore[call-arg]
