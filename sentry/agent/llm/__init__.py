"""
LLM Client Module

Provides the abstract client and the concrete provider transports.
"""

from sentry.agent.llm.client import (
    LLMClient,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMResponse,
    LLMResponseError,
    LLMTimeoutError,
    LLMTruncatedResponseError,
    TokenUsage,
)
from sentry.agent.llm.gemini_client import GeminiClient
from sentry.agent.llm.openai_client import OpenAIClient

__all__ = [
    "GeminiClient",
    "LLMClient",
    "LLMConfigurationError",
    "LLMEmptyResponseError",
    "LLMError",
    "LLMProvider",
    "LLMRateLimitError",
    "LLMResponse",
    "LLMResponseError",
    "LLMTimeoutError",
    "LLMTruncatedResponseError",
    "OpenAIClient",
    "TokenUsage",
]
