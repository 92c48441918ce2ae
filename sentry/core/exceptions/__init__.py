"""Exception definitions module."""

from sentry.core.exceptions.errors import (
    ConfigurationError,
    HarnessError,
    SanitizationError,
    SentryError,
    ToolchainError,
)

__all__ = [
    "SentryError",
    "ConfigurationError",
    "SanitizationError",
    "ToolchainError",
    "HarnessError",
]
