"""
Configuration Management for Mis Finanzas

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted backend (database, auth and object storage) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    key: str = Field(
        ...,
        description="Anon or service key used by the client"
    )
    receipts_bucket: str = Field(
        default="receipts",
        description="Object storage bucket holding receipt files"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Supabase URL must start with http:// or https://, got {v}")
        return v.rstrip("/")


class SavingsSettings(BaseSettings):
    """Automated savings configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    config_path: Path = Field(
        default=Path.home() / ".mis_finanzas" / "savings.json",
        description="Local file holding the persisted savings configuration"
    )
    storage_key: str = Field(
        default="savings-storage",
        description="Name of the entry inside the local file"
    )
    category_name: str = Field(
        default="Ahorro e Inversión",
        min_length=1,
        description="Name of the category that tags auto-generated savings"
    )
    category_icon: str = Field(
        default="piggy-bank",
        description="Icon for the savings category"
    )
    default_retention_percentage: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Retention percentage used on first run"
    )

    @field_validator('config_path')
    @classmethod
    def expand_config_path(cls, v: Path) -> Path:
        return v.expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    base_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency assigned to transactions that don't name one"
    )

    # Category seeding
    seed_threshold: int = Field(
        default=2,
        ge=0,
        description="Seed default categories when the owner has this many or fewer"
    )

    @field_validator('base_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so that an offline setup
    # (no Supabase credentials) can still use the savings store.

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def savings(self) -> SavingsSettings:
        return SavingsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "supabase": lambda: settings.supabase,
        "savings": lambda: settings.savings,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
