"""Configuration package."""

from fintrack.config.settings import (
    AppSettings,
    BackendConfig,
    BackendSettings,
    GeminiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)
from fintrack.config.logging import configure_logging

__all__ = [
    "AppSettings",
    "BackendConfig",
    "BackendSettings",
    "GeminiSettings",
    "Settings",
    "configure_logging",
    "get_settings",
    "validate_all_settings",
]
