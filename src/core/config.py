"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_create_tables: bool = True

    # Token verification - HS256 shared secret (Supabase-style project secret)
    # takes precedence; otherwise RS256 keys are fetched from the issuer's JWKS.
    auth_jwt_secret: str = ""
    auth_issuer: str = ""
    auth_audience: str = "authenticated"

    # Development mode - bypasses auth for local development
    dev_mode: bool = False

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Redis - cross-process fan-out of the realtime change feed
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True
    redis_pool_size: int = 20

    # Realtime change feed
    realtime_keepalive_seconds: float = 15.0
    realtime_queue_size: int = 100

    # Field length limits
    max_title_length: int = 500
    max_category_length: int = 50

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Prevent DEV_MODE from being enabled with a production database.

        DEV_MODE completely bypasses authentication, so it may only be combined
        with a local database (localhost or a SQLite file/in-memory database).
        """
        if not self.dev_mode:
            return self

        try:
            parsed = urlparse(self.database_url)
            scheme = parsed.scheme
            hostname = parsed.hostname or ""
        except ValueError:
            scheme = ""
            hostname = ""

        if scheme.startswith("sqlite"):
            return self

        local_hosts = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
        if hostname.lower() not in local_hosts:
            raise ValueError(
                f"DEV_MODE cannot be enabled with a non-local database. "
                f"Database host '{hostname}' appears to be a production database. "
                f"DEV_MODE bypasses all authentication and must only be used locally.",
            )

        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def auth_jwks_url(self) -> str:
        """Get the JWKS URL for fetching the issuer's public keys."""
        return f"{self.auth_issuer.rstrip('/')}/.well-known/jwks.json"

    @property
    def uses_shared_secret(self) -> bool:
        """True when tokens are verified with the HS256 shared secret."""
        return bool(self.auth_jwt_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
