"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./wedding_photos.db"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


@dataclass(frozen=True)
class MediaLibraryConfig:
    """
    Explicit configuration for the Google Photos client.

    Built once at startup from Settings and handed to the client constructor,
    so business logic never reads credentials from the environment.
    """
    client_id: str
    client_secret: str
    refresh_token: str
    token_url: str
    api_base_url: str
    upload_url: str
    connect_timeout: float
    read_timeout: float

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="Wedding Photos API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Database (empty value falls back to local SQLite)
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # JWT / passwordless sign-in
    jwt_secret_key: str = Field(default="jwt-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)
    magic_link_expire_minutes: int = Field(default=15)
    magic_link_base_url: str = Field(
        default="http://localhost:3000/auth/confirm",
        description="Front-end page that receives ?token=... and calls /auth/verify",
    )

    # Google Photos Library API
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_refresh_token: str = Field(default="")
    google_token_url: str = Field(default="https://oauth2.googleapis.com/token")
    google_api_base_url: str = Field(default="https://photoslibrary.googleapis.com/v1")
    google_upload_url: str = Field(default="https://photoslibrary.googleapis.com/v1/uploads")
    google_connect_timeout: float = Field(default=10.0)
    google_read_timeout: float = Field(default=30.0)
    google_upload_timeout: float = Field(
        default=300.0, description="Direct transfer timeout used by the upload client"
    )

    # Upload policy
    album_title_prefix: str = Field(default="Wedding Photos")
    max_image_bytes: int = Field(default=10 * 1024 * 1024)
    max_video_bytes: int = Field(default=100 * 1024 * 1024)
    max_batch_size: int = Field(default=50, description="Google batchCreate limit")

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=120)
    magic_link_rate_limit: str = Field(default="5/minute")

    # Observability
    node_name: str = Field(default="", description="Node/Pod identifier for Prometheus labels")
    instance_ip: str = Field(default="", description="Instance IP for logs and metrics (hostname if empty)")
    region: str = Field(default="")
    log_dir: str = Field(
        default="/var/log/wedding-photos",
        description="NDJSON log directory. Empty disables file logging.",
    )

    def media_library_config(self) -> MediaLibraryConfig:
        """Build the explicit Google Photos client configuration."""
        return MediaLibraryConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            refresh_token=self.google_refresh_token,
            token_url=self.google_token_url,
            api_base_url=self.google_api_base_url.rstrip("/"),
            upload_url=self.google_upload_url,
            connect_timeout=self.google_connect_timeout,
            read_timeout=self.google_read_timeout,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid re-reading the environment on every request.
    """
    return Settings()
