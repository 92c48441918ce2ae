"""
Provider resolution - picks the active AI provider and its model list.

Configuration is read from the environment on every call, so changing
``AI_PROVIDER`` or a model list takes effect on the next audit.
"""

from dataclasses import dataclass
from typing import Any

from sentry.agent.llm.client import LLMClient, LLMProvider
from sentry.agent.llm.gemini_client import GeminiClient
from sentry.agent.llm.openai_client import OpenAIClient
from sentry.core.config.settings import ProviderSettings
from sentry.core.logger.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PROVIDER = LLMProvider.OPENROUTER

OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://sentry.dev",
    "X-Title": "SENTRY Vulnerability Analyzer",
}


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved provider settings.

    Attributes:
        provider: Active provider.
        models: Ordered model identifiers; index 0 is primary.
        api_key: Provider key, if any.
        base_url: API base URL.
        key_required: Whether requests are refused without a key.
    """

    provider: LLMProvider
    models: tuple[str, ...]
    api_key: str | None
    base_url: str
    key_required: bool

    @property
    def model(self) -> str:
        return self.models[0]

    @property
    def fallback_models(self) -> tuple[str, ...]:
        return self.models[1:]

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or not self.key_required


def parse_model_list(raw: str | None, default: str) -> tuple[str, ...]:
    """Split a comma-separated model list, dropping blanks."""
    models = tuple(m.strip() for m in (raw or "").split(",") if m.strip())
    return models or (default,)


def resolve_provider_config(settings: ProviderSettings | None = None) -> ProviderConfig:
    """
    Resolve the active provider.

    Unknown or missing ``AI_PROVIDER`` values fall back to OpenRouter.
    """
    settings = settings or ProviderSettings()
    defaults = ProviderSettings.model_fields

    raw = (settings.ai_provider or "").strip().lower()
    known = {p.value for p in LLMProvider}
    if raw and raw not in known:
        logger.warning(f"Unknown AI_PROVIDER '{raw}', using {DEFAULT_PROVIDER.value}")
    provider = LLMProvider(raw) if raw in known else DEFAULT_PROVIDER

    if provider == LLMProvider.OPENAI:
        return ProviderConfig(
            provider=provider,
            models=parse_model_list(settings.openai_model, defaults["openai_model"].default),
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            key_required=True,
        )

    if provider == LLMProvider.GEMINI:
        return ProviderConfig(
            provider=provider,
            models=parse_model_list(settings.gemini_model, defaults["gemini_model"].default),
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            key_required=True,
        )

    return ProviderConfig(
        provider=LLMProvider.OPENROUTER,
        models=parse_model_list(settings.openrouter_model, defaults["openrouter_model"].default),
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        key_required=False,
    )


def is_provider_configured(settings: ProviderSettings | None = None) -> bool:
    """False when a key-requiring provider has no key."""
    return resolve_provider_config(settings).is_configured


def create_llm_client(
    config: ProviderConfig,
    model: str,
    settings: ProviderSettings | None = None,
) -> LLMClient:
    """Build the transport client for one model of ``config``."""
    settings = settings or ProviderSettings()
    common: dict[str, Any] = {
        "model": model,
        "api_key": config.api_key,
        "base_url": config.base_url,
        "max_tokens": settings.max_tokens,
        "temperature": settings.temperature,
        "timeout": settings.analysis_timeout_ms / 1000,
    }

    if config.provider == LLMProvider.GEMINI:
        return GeminiClient(**common)

    if config.provider == LLMProvider.OPENROUTER:
        return OpenAIClient(
            provider=LLMProvider.OPENROUTER,
            require_api_key=False,
            extra_headers=OPENROUTER_HEADERS,
            **common,
        )

    return OpenAIClient(provider=LLMProvider.OPENAI, require_api_key=True, **common)


def get_provider_info(settings: ProviderSettings | None = None) -> dict[str, Any]:
    """Summary of the active provider for diagnostics."""
    config = resolve_provider_config(settings)
    return {
        "provider": config.provider.value,
        "model": config.model,
        "fallback_models": list(config.fallback_models),
        "configured": config.is_configured,
    }
