"""Configuration package."""

from fintrack.config.settings import (
    AppSettings,
    AuthSettings,
    MongoSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "MongoSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
