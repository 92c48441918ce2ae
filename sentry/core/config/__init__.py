"""Configuration management for SENTRY."""

from sentry.core.config.loader import ConfigLoader
from sentry.core.config.settings import (
    LoggingSettings,
    ProviderSettings,
    SandboxSettings,
    ServerSettings,
    Settings,
    ToolchainSettings,
    get_settings,
)

__all__ = [
    "ConfigLoader",
    "LoggingSettings",
    "ProviderSettings",
    "SandboxSettings",
    "ServerSettings",
    "Settings",
    "ToolchainSettings",
    "get_settings",
]
