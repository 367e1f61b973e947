"""Application settings and configuration.

This module defines all configuration options for the Mehfil service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Mehfil", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mehfil.db",
        alias="DATABASE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Realtime layer
    mehfil_namespace: str = Field(default="/mehfil", alias="MEHFIL_NAMESPACE")
    mehfil_paused: bool = Field(default=False, alias="MEHFIL_PAUSED")
    mehfil_paused_message: str = Field(
        default=(
            "Mehfil is temporarily unavailable while we deal with spam. "
            "We will notify you as soon as it is back."
        ),
        alias="MEHFIL_PAUSED_MESSAGE",
    )
    feed_page_size: int = Field(default=20, alias="FEED_PAGE_SIZE")
    feed_page_size_max: int = Field(default=50, alias="FEED_PAGE_SIZE_MAX")

    # Content policy
    min_content_length: int = Field(default=15, alias="MIN_CONTENT_LENGTH")
    max_content_length: int = Field(default=5000, alias="MAX_CONTENT_LENGTH")
    rejected_post_ttl_minutes: int = Field(default=60, alias="REJECTED_POST_TTL_MINUTES")
    reclassify_on_edit: bool = Field(default=False, alias="RECLASSIFY_ON_EDIT")

    # Escalation: spam strikes -> shadow ban, reports -> posting ban
    shadow_ban_strike_threshold: int = Field(default=2, alias="SHADOW_BAN_STRIKE_THRESHOLD")
    report_ban_threshold: int = Field(default=1, alias="REPORT_BAN_THRESHOLD")
    first_ban_days: int = Field(default=2, alias="FIRST_BAN_DAYS")
    second_ban_days: int = Field(default=7, alias="SECOND_BAN_DAYS")

    # Language-model classifier (OpenAI-compatible chat completions endpoint)
    classifier_api_key: str | None = Field(default=None, alias="CLASSIFIER_API_KEY")
    classifier_base_url: str = Field(
        default="https://api.openai.com/v1",
        alias="CLASSIFIER_BASE_URL",
    )
    classifier_model: str = Field(default="gpt-4o-mini", alias="CLASSIFIER_MODEL")
    classifier_timeout_seconds: float = Field(default=4.0, alias="CLASSIFIER_TIMEOUT_SECONDS")

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
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts async driver URLs to their synchronous counterparts for
        operations like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url

    @property
    def classifier_enabled(self) -> bool:
        """Return True when credentials for the language-model classifier exist."""
        return bool(self.classifier_api_key)


settings = Settings()  # type: ignore[call-arg]
