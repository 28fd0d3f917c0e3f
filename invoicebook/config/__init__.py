"""Configuration package."""

from invoicebook.config.settings import (
    AppSettings,
    LifecycleSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LifecycleSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
