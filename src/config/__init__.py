"""Configuration package."""

from src.config.settings import (
    AppSettings,
    LocalStoreSettings,
    RemoteStoreSettings,
    SecuritySettings,
    Settings,
    StorageMode,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LocalStoreSettings",
    "RemoteStoreSettings",
    "SecuritySettings",
    "Settings",
    "StorageMode",
    "get_settings",
    "validate_all_settings",
]
