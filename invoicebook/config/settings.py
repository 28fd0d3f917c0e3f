"""
Configuration Management for InvoiceBook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The storage root itself is NOT configuration: it lives in a pointer file
so the user can move their data without editing the environment.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    return Path.home() / "InvoiceBook"


def _default_pointer_file() -> Path:
    return Path.home() / ".invoicebook" / "storage-root.json"


class StorageSettings(BaseSettings):
    """Where data lives on disk."""

    model_config = SettingsConfigDict(
        env_prefix="INVOICEBOOK_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_root: Path = Field(
        default_factory=_default_data_dir,
        description="Storage root used on first run, before any root pointer exists"
    )
    pointer_file: Path = Field(
        default_factory=_default_pointer_file,
        description="JSON file recording the active storage root"
    )

    @field_validator('default_root', 'pointer_file')
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        """Allow ~ in paths coming from the environment."""
        return v.expanduser()


class LifecycleSettings(BaseSettings):
    """Status lifecycle business rules."""

    model_config = SettingsConfigDict(
        env_prefix="INVOICEBOOK_LIFECYCLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enforce_terminal_states: bool = Field(
        default=False,
        description="Reject transitions out of paid/rejected/cancelled"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="INVOICEBOOK_",
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

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local logs"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False renders for the console)"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def lifecycle(self) -> LifecycleSettings:
        return LifecycleSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus {setting_name_error: message}
    for every section that failed to load.
    """
    results: dict[str, bool | str] = {}
    settings = get_settings()

    for name in ("storage", "lifecycle", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
