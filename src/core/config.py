"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Tenant Invitations API")
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/invitations",
        description="PostgreSQL connection URL with asyncpg driver",
    )

    database_pool_size: int = Field(default=5)
    database_max_overflow: int = Field(default=10)

    # For testing with SQLite
    test_database_url: str = Field(
        default="sqlite+aiosqlite:///./test.db",
        description="Test database URL",
    )

    # JWT Authentication
    jwt_secret_key: str = Field(
        default="CHANGE-ME-IN-PRODUCTION",
        description="Secret key for signing session tokens and OAuth state",
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=60 * 24)

    # Invitations
    invitation_expiry_days: int = Field(default=7)
    invitation_retention_days: int = Field(
        default=90,
        description="Terminal invitations older than this are deleted by cleanup",
    )
    audit_log_retention_days: int = Field(default=365)
    invitation_sweep_interval_seconds: int = Field(default=3600)
    invitation_cleanup_interval_seconds: int = Field(default=86400)
    bulk_create_max: int = Field(default=100)
    bulk_update_max: int = Field(default=50)
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build invitation links",
    )

    # Google OAuth
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(
        default="http://localhost:3000/invitations/google/callback",
    )
    google_auth_endpoint: str = Field(default="https://accounts.google.com/o/oauth2/v2/auth")
    google_token_endpoint: str = Field(default="https://oauth2.googleapis.com/token")
    google_jwks_uri: str = Field(default="https://www.googleapis.com/oauth2/v3/certs")
    google_http_timeout_seconds: float = Field(default=10.0)
    oauth_state_ttl_seconds: int = Field(default=600)

    # Email delivery
    email_from_address: str = Field(default="no-reply@example.com")
    email_max_attempts: int = Field(
        default=3,
        description="Delivery attempts before an email is reported as failed",
    )
    email_backoff_base_seconds: float = Field(default=1.0)
    verification_code_ttl_minutes: int = Field(default=15)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver scheme.

        Hosting providers usually supply a standard ``postgresql://`` URL.
        SQLAlchemy's async engine requires ``postgresql+asyncpg://``.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable/disable rate limiting (disable for tests)",
    )
    invitation_tenant_rate_limit: str = Field(
        default="100/day",
        description="Invitation creation requests per tenant",
    )
    invitation_admin_rate_limit: str = Field(
        default="20/hour",
        description="Invitation creation requests per inviting user",
    )
    invitation_acceptance_ip_rate_limit: str = Field(
        default="10/hour",
        description="Acceptance flow requests per client IP",
    )
    invitation_email_daily_limit: int = Field(
        default=3,
        description="Invitations created for one email address in 24 hours",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed origins",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
