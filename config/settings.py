"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Values come from the environment, `.env` or `.env.local`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens on first call to get_settings().
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
        description="Supabase project URL"
    )
    supabase_service_key: str = Field(
        ...,
        validation_alias=AliasChoices("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
        description="Supabase service role key (imports write across all tables)"
    )

    # ===================
    # IMPORT SETTINGS
    # ===================
    import_data_dir: Path = Field(
        default=Path("data") / "shopify-export",
        description="Folder scanned for Shopify CSV exports"
    )
    default_vendor: str = Field(
        default="My Kind Kandles",
        max_length=255,
        description="Vendor used when a product row has none"
    )

    # ===================
    # SHIPPING SETTINGS
    # ===================
    default_country: str = Field(
        default="US",
        min_length=2,
        max_length=2,
        description="Country code used when an address has none"
    )
    default_item_weight_oz: float = Field(
        default=12.0,
        gt=0,
        le=320,
        description="Estimated parcel weight per item when an order has no weight"
    )

    # ===================
    # API SETTINGS
    # ===================
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="API server port"
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

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        pydantic.ValidationError: If required env vars are missing or invalid
    """
    return Settings()
