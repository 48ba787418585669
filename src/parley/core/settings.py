"""Application settings and configuration.

This module defines all configuration options for the Parley application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Parley", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./parley.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the message rate limiter when configured
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Direct message limits
    dm_max_body_chars: int = Field(default=8000, alias="DM_MAX_BODY_CHARS")
    dm_max_attachments: int = Field(default=10, alias="DM_MAX_ATTACHMENTS")
    dm_max_attachment_bytes: int = Field(
        default=25 * 1024 * 1024,
        alias="DM_MAX_ATTACHMENT_BYTES",
    )
    dm_max_emoji_chars: int = Field(default=32, alias="DM_MAX_EMOJI_CHARS")
    dm_page_size_max: int = Field(default=200, alias="DM_PAGE_SIZE_MAX")

    # Per-user send throttling (messages per window)
    dm_rate_limit_messages: int = Field(default=30, alias="DM_RATE_LIMIT_MESSAGES")
    dm_rate_limit_window_seconds: int = Field(
        default=60,
        alias="DM_RATE_LIMIT_WINDOW_SECONDS",
    )

    # Read-state policies
    dm_unread_excludes_own: bool = Field(default=True, alias="DM_UNREAD_EXCLUDES_OWN")
    dm_monotonic_read_markers: bool = Field(
        default=True,
        alias="DM_MONOTONIC_READ_MARKERS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
