"""
AI agent: provider resolution, prompts, response schema and the hypothesis generator.
"""

from sentry.agent.analyzer import HypothesisGenerator, format_analysis_report
from sentry.agent.prompts import SYSTEM_PROMPT, build_analysis_prompt
from sentry.agent.providers import (
    ProviderConfig,
    create_llm_client,
    get_provider_info,
    is_provider_configured,
    resolve_provider_config,
)
from sentry.agent.schema import (
    HypothesisSchemaError,
    normalize_vulnerability_type,
    parse_analysis_payload,
)

__all__ = [
    "HypothesisGenerator",
    "HypothesisSchemaError",
    "ProviderConfig",
    "SYSTEM_PROMPT",
    "build_analysis_prompt",
    "create_llm_client",
    "format_analysis_report",
    "get_provider_info",
    "is_provider_configured",
    "normalize_vulnerability_type",
    "parse_analysis_payload",
    "resolve_provider_config",
]
