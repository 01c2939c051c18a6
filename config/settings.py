"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Search tuning values are calibration parameters, not load-bearing constants.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/public key"
    )

    # ===================
    # SEARCH TUNING
    # ===================
    search_min_query_length: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Queries shorter than this return no results and issue no fetches"
    )
    search_debounce_ms: int = Field(
        default=150,
        ge=0,
        le=2000,
        description="Debounce window applied to rapidly changing search input"
    )
    search_cache_ttl_seconds: int = Field(
        default=30,
        ge=0,
        le=600,
        description="Lifetime of cached search results (0 disables the cache)"
    )
    search_fetch_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Per-catalog fetch timeout before the catalog counts as unavailable"
    )
    search_default_result_cap: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Default maximum rows fetched per catalog"
    )
    search_default_display_cap: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Default maximum results shown per category"
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

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase credentials are present."""
        return bool(self.supabase_url and self.supabase_key)


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
