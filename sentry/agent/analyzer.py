"""
Hypothesis Generator - Asks the configured AI provider which function lacks
access control.

Models from the provider's list are tried strictly in order. An empty answer,
an API error, undecodable JSON or a schema violation moves on to the next
model; the call only fails after the last model has failed.
"""

from collections.abc import Callable

from sentry.agent.llm.client import LLMClient, LLMError, LLMProvider
from sentry.agent.prompts import SYSTEM_PROMPT, build_analysis_prompt
from sentry.agent.providers import ProviderConfig, create_llm_client, resolve_provider_config
from sentry.agent.schema import parse_analysis_payload
from sentry.core.config.settings import ProviderSettings
from sentry.core.logger.logger import get_logger
from sentry.core.utils.json_parser import JSONParseError
from sentry.models.audit import AnalysisResponse

logger = get_logger(__name__)

ClientFactory = Callable[[ProviderConfig, str], LLMClient]

HEAVY_RULE = "═" * 75
LIGHT_RULE = "─" * 75


class HypothesisGenerator:
    """
    Multi-provider hypothesis generator with model fallback.

    Usage:
        generator = HypothesisGenerator()
        response = await generator.analyze(source)
        if response.success and response.primary:
            ...
    """

    def __init__(
        self,
        provider_settings: ProviderSettings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """
        Args:
            provider_settings: Fixed settings; read from the environment on
                every call when omitted.
            client_factory: Builds the client for one model (tests inject fakes).
        """
        self._provider_settings = provider_settings
        self._client_factory = client_factory

    def _settings(self) -> ProviderSettings:
        return self._provider_settings or ProviderSettings()

    def provider_config(self) -> ProviderConfig:
        return resolve_provider_config(self._settings())

    def is_configured(self) -> bool:
        return self.provider_config().is_configured

    def _create_client(self, config: ProviderConfig, model: str, settings: ProviderSettings) -> LLMClient:
        if self._client_factory is not None:
            return self._client_factory(config, model)
        return create_llm_client(config, model, settings)

    async def analyze(self, source_code: str) -> AnalysisResponse:
        """
        Produce vulnerability hypotheses for ``source_code``.

        Returns:
            AnalysisResponse; ``attempts`` counts the model calls made.
        """
        settings = self._settings()
        config = resolve_provider_config(settings)

        logger.info(f"Starting vulnerability analysis ({len(source_code)} characters)")

        if not config.is_configured:
            error = f"{config.provider.value.upper()}_API_KEY not configured"
            logger.error(error)
            return AnalysisResponse(
                success=False,
                error=error,
                provider=config.provider.value,
                attempts=0,
            )

        user_prompt = build_analysis_prompt(source_code)
        json_mode = config.provider == LLMProvider.OPENAI
        last_error: str | None = None
        attempts = 0

        for index, model in enumerate(config.models):
            attempts += 1
            suffix = " (fallback)" if index else ""
            logger.info(f"Using {config.provider.value} with model: {model}{suffix}")

            client = self._create_client(config, model, settings)
            try:
                async with client:
                    response = await client.complete_with_context(
                        SYSTEM_PROMPT,
                        user_prompt,
                        json_mode=json_mode,
                    )
                logger.debug(f"Raw AI response: {response.content[:300]}")
                hypotheses = parse_analysis_payload(response.content)
            except (LLMError, JSONParseError) as e:
                last_error = f"{model}: {e}"
                remaining = len(config.models) - attempts
                if remaining:
                    logger.warning(f"Model {model} failed ({type(e).__name__}), trying next model...")
                else:
                    logger.error(f"Model {model} failed: {e}")
                continue

            usage = client.get_total_usage()
            logger.info(
                f"Analysis complete: {len(hypotheses)} hypotheses from {model} "
                f"({usage.total_tokens} tokens)"
            )
            for i, hypothesis in enumerate(hypotheses, 1):
                logger.info(f"  [{i}] {hypothesis.target} ({hypothesis.confidence}% confidence)")

            return AnalysisResponse(
                hypotheses=hypotheses,
                success=True,
                provider=config.provider.value,
                model=model,
                attempts=attempts,
            )

        return AnalysisResponse(
            success=False,
            error=f"All {attempts} model(s) failed. Last error: {last_error}",
            provider=config.provider.value,
            attempts=attempts,
        )


def format_analysis_report(response: AnalysisResponse) -> str:
    """Transcript block for an analysis result."""
    provider = (response.provider or "unknown").upper()
    lines = [
        HEAVY_RULE,
        "  SENTRY AI HYPOTHESIS REPORT",
        HEAVY_RULE,
        "",
        f"  Provider: {provider} ({response.model or 'n/a'})",
        f"  Status: {'✓ ANALYSIS COMPLETE' if response.success else '✗ ANALYSIS FAILED'}",
        f"  Model Calls: {response.attempts}",
    ]

    if response.error:
        lines.append(f"  Error: {response.error}")

    lines.append(f"  Hypotheses Found: {len(response.hypotheses)}")
    lines.append("")

    if response.hypotheses:
        lines.append("  POTENTIAL VULNERABILITIES:")
        lines.append(LIGHT_RULE)
        for i, h in enumerate(response.hypotheses, 1):
            lines.append(f"  [{i}] Target Function: {h.target}")
            lines.append(f"      Type: {h.vulnerability_type.value}")
            lines.append(f"      Confidence: {h.confidence}%")
            lines.append(f"      Reasoning: {h.reasoning}")
            lines.append("")
    else:
        lines.append("  No vulnerabilities detected by AI analysis.")
        lines.append("")

    lines.append(HEAVY_RULE)
    return "\n".join(lines)
