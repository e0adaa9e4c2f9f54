"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Every field has a default so the engine imports without an environment.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # FULFILLMENT BACKEND
    # ===================
    fulfillment_api_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the fulfillment backend"
    )
    fulfillment_api_token: Optional[str] = Field(
        None,
        description="Bearer token forwarded on every backend request"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout applied to order fetch and submissions"
    )

    # ===================
    # LIVE SYNC
    # ===================
    sync_enabled: bool = Field(
        default=True,
        description="Start a push-stream listener for every packing session"
    )
    sync_stream_path: str = Field(
        default="/sales/sse/invoices/",
        description="Path of the server-sent event stream"
    )
    reconnect_base_delay_seconds: float = Field(
        default=1.0,
        gt=0,
        le=60,
        description="First reconnect delay; doubles on every failed attempt"
    )
    reconnect_max_delay_seconds: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Ceiling for the reconnect delay"
    )
    reconnect_max_attempts: Optional[int] = Field(
        None,
        ge=1,
        description="Stop reconnecting after this many failures (None = never)"
    )

    # ===================
    # PACKING
    # ===================
    container_id_prefix: str = Field(
        default="CUST001",
        min_length=1,
        max_length=20,
        description="Prefix for generated container identifiers"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API from a browser"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def fulfillment_api_configured(self) -> bool:
        """Check if a backend token is configured."""
        return bool(self.fulfillment_api_token)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
