"""
LLM Client - Abstract base class for hypothesis provider clients.

Provides a common interface for the supported providers (OpenRouter, OpenAI,
Gemini). Transport failures are raised as ``LLMError`` subclasses so the
analyzer can fall back to the next model.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENROUTER = "openrouter"
    OPENAI = "openai"
    GEMINI = "gemini"


@dataclass
class TokenUsage:
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class LLMResponse:
    """Response from a completion request."""

    content: str
    model: str
    provider: LLMProvider
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)
    latency_seconds: float = 0.0


class LLMClient(ABC):
    """
    Abstract base class for LLM clients.

    One client instance talks to exactly one model.
    """

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout: float = 30.0,
        max_retries: int = 1,
    ):
        """
        Initialize the LLM client.

        Args:
            model: Model identifier (e.g., "gpt-4o", "moonshotai/kimi-k2").
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature (0.0-2.0).
            timeout: Request timeout in seconds.
            max_retries: Attempts per request; model fallback happens above
                this layer, so the default is a single attempt.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._total_usage = TokenUsage()

    @abstractmethod
    async def complete_with_messages(
        self,
        messages: list[dict[str, str]],
        **options,
    ) -> LLMResponse:
        """
        Generate a completion using a chat message format.

        Args:
            messages: List of message dicts with 'role' and 'content'.
                     Roles: 'system', 'user', 'assistant'.
            **options: Provider-specific options (e.g. ``json_mode``).

        Returns:
            LLMResponse containing the generated text and metadata.

        Raises:
            LLMError: If the request fails.
        """

    async def complete_with_context(
        self,
        system_prompt: str,
        user_prompt: str,
        **options,
    ) -> LLMResponse:
        """Generate a completion for a system prompt plus one user turn."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self.complete_with_messages(messages, **options)

    async def close(self) -> None:
        """Release transport resources."""

    def get_total_usage(self) -> TokenUsage:
        return self._total_usage

    def _update_usage(self, usage: TokenUsage) -> None:
        self._total_usage = self._total_usage + usage

    @property
    @abstractmethod
    def provider(self) -> LLMProvider:
        """Get the provider type."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the client can be used (e.g., API key configured)."""

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class LLMError(Exception):
    """Base exception for LLM-related errors.

    Attributes:
        message: Error message.
        is_retryable: Whether the error can be retried.
        context: Additional context information (model, status code, etc.).
        suggestion: Suggested action to resolve the error.
    """

    def __init__(
        self,
        message: str,
        is_retryable: bool = False,
        context: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.is_retryable = is_retryable
        self.context = context or {}
        self.suggestion = suggestion

    def __str__(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("Context: " + ", ".join(f"{k}={v}" for k, v in self.context.items()))
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


class LLMConfigurationError(LLMError):
    """Raised when a client is not properly configured."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(
            message,
            is_retryable=False,
            context=context,
            suggestion="Check AI_PROVIDER and the provider's *_API_KEY variable.",
        )


class LLMRateLimitError(LLMError):
    """Raised when the provider rate-limits the request."""

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            is_retryable=True,
            context={**(context or {}), "retry_after": retry_after},
            suggestion=f"Wait {retry_after or 60} seconds or add a fallback model.",
        )
        self.retry_after = retry_after


class LLMTimeoutError(LLMError):
    """Raised when a request exceeds the analysis timeout."""

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            is_retryable=True,
            context={**(context or {}), "timeout": timeout},
            suggestion="Increase ANALYSIS_TIMEOUT_MS or submit a smaller contract.",
        )
        self.timeout = timeout


class LLMResponseError(LLMError):
    """Raised when the provider payload cannot be read."""

    def __init__(
        self,
        message: str,
        raw_response: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        preview = None
        if raw_response:
            preview = raw_response[:500] + "..." if len(raw_response) > 500 else raw_response
        super().__init__(
            message,
            is_retryable=False,
            context={**(context or {}), "response_preview": preview},
        )
        self.raw_response = raw_response


class LLMEmptyResponseError(LLMError):
    """Raised when the model returns no content."""

    def __init__(
        self,
        message: str = "LLM returned empty response",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, is_retryable=True, context=context)


class LLMTruncatedResponseError(LLMError):
    """Raised when the response hit the max_tokens limit."""

    def __init__(
        self,
        message: str = "LLM response was truncated",
        finish_reason: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            is_retryable=True,
            context={**(context or {}), "finish_reason": finish_reason},
            suggestion="Increase MAX_TOKENS.",
        )
        self.finish_reason = finish_reason
