"""Application settings and configuration.

This module defines all configuration options for the community trust service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from community_trust.services.eligibility import EligibilityCriteria


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Community Trust", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./community_trust.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    # Isolation for server backends; SQLite transactions open with BEGIN IMMEDIATE.
    db_isolation_level: str = Field(default="SERIALIZABLE", alias="DB_ISOLATION_LEVEL")
    store_max_retries: int = Field(default=3, alias="STORE_MAX_RETRIES")

    # Community vouch eligibility thresholds
    vouch_required_events: int = Field(default=5, alias="VOUCH_REQUIRED_EVENTS")
    vouch_required_days: int = Field(default=90, alias="VOUCH_REQUIRED_DAYS")
    vouch_max_community_vouches: int = Field(default=2, alias="VOUCH_MAX_COMMUNITY_VOUCHES")
    community_vouch_weight: float = Field(default=0.2, alias="COMMUNITY_VOUCH_WEIGHT")
    vouch_offer_window_days: int = Field(default=30, alias="VOUCH_OFFER_WINDOW_DAYS")

    # Best-effort notification delivery
    notify_webhook_url: str | None = Field(default=None, alias="NOTIFY_WEBHOOK_URL")
    notify_timeout_seconds: float = Field(default=5.0, alias="NOTIFY_TIMEOUT_SECONDS")

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

    @property
    def eligibility_criteria(self) -> "EligibilityCriteria":
        """Return the configured auto-vouch thresholds."""
        from community_trust.services.eligibility import EligibilityCriteria

        return EligibilityCriteria(
            required_events=self.vouch_required_events,
            required_days=self.vouch_required_days,
            max_vouches=self.vouch_max_community_vouches,
        )


settings = Settings()  # type: ignore[call-arg]
