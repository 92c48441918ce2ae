"""Custom exception definitions for SENTRY."""

from typing import Any


class SentryError(Exception):
    """Base exception for all SENTRY errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(SentryError):
    """Exception raised for configuration errors."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error message.
            config_key: Configuration key that caused the error.
            details: Additional error details.
        """
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)


class SanitizationError(SentryError):
    """Raised when sanitized source still references an untrusted dependency."""

    def __init__(
        self,
        message: str,
        offending_match: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize sanitization error.

        Args:
            message: Error message.
            offending_match: The untrusted text found in the output.
            details: Additional error details.
        """
        details = details or {}
        if offending_match:
            details["match"] = offending_match
        super().__init__(message, details)
        self.offending_match = offending_match


class ToolchainError(SentryError):
    """Exception raised when the build/test toolchain cannot be used."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize toolchain error.

        Args:
            message: Error message.
            command: Toolchain command involved.
            details: Additional error details.
        """
        details = details or {}
        if command:
            details["command"] = command
        super().__init__(message, details)


class HarnessError(SentryError):
    """Exception raised when the exploit harness cannot be rendered."""

    def __init__(
        self,
        message: str,
        template_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize harness error.

        Args:
            message: Error message.
            template_path: Path of the harness template.
            details: Additional error details.
        """
        details = details or {}
        if template_path:
            details["template_path"] = template_path
        super().__init__(message, details)
