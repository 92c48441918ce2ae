"""
Response schema for hypothesis generation.

The payload is validated strictly: wrong types are rejected rather than
coerced, so ``"confidence": "90"`` or ``"confidence": true`` fail the attempt.
"""

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sentry.agent.llm.client import LLMError
from sentry.core.utils.json_parser import load_json_object
from sentry.models.audit import VulnerabilityHypothesis, VulnerabilityType


class HypothesisSchemaError(LLMError):
    """Raised when a decoded response does not match the hypothesis schema."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(
            message,
            is_retryable=True,
            context={"errors": len(errors or [])},
            suggestion="Try another model or tighten the output format instructions.",
        )
        self.errors = errors or []


class HypothesisPayload(BaseModel):
    """One hypothesis exactly as the model must emit it."""

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    target: str = Field(min_length=1)
    vulnerability_type: str = Field(alias="vulnerabilityType")
    confidence: float
    reasoning: str

    @field_validator("confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be a number")
        if not math.isfinite(v) or not 0 <= v <= 100:
            raise ValueError("confidence must be within [0, 100]")
        return float(v)


class AnalysisPayload(BaseModel):
    """Top-level model answer."""

    model_config = ConfigDict(strict=True, extra="ignore")

    hypotheses: list[HypothesisPayload]


_TYPE_ALIASES = {
    "ACCESSCONTROL": VulnerabilityType.ACCESS_CONTROL,
    "MISSINGACCESSCONTROL": VulnerabilityType.ACCESS_CONTROL,
    "BROKENACCESSCONTROL": VulnerabilityType.ACCESS_CONTROL,
    "REENTRANCY": VulnerabilityType.REENTRANCY,
    "OVERFLOW": VulnerabilityType.OVERFLOW,
    "UNDERFLOW": VulnerabilityType.OVERFLOW,
    "INTEGEROVERFLOW": VulnerabilityType.OVERFLOW,
    "INTEGERUNDERFLOW": VulnerabilityType.OVERFLOW,
}


def normalize_vulnerability_type(raw: str) -> VulnerabilityType:
    """Case-insensitive, punctuation-insensitive mapping onto the closed set."""
    key = re.sub(r"[^A-Z]", "", raw.upper())
    return _TYPE_ALIASES.get(key, VulnerabilityType.OTHER)


def validate_payload(data: dict[str, Any]) -> list[VulnerabilityHypothesis]:
    """
    Validate a decoded payload and convert it to domain hypotheses.

    Raises:
        HypothesisSchemaError: On any schema violation.
    """
    try:
        payload = AnalysisPayload.model_validate(data)
    except ValidationError as e:
        raise HypothesisSchemaError(
            f"Response does not match expected schema: {e.error_count()} error(s)",
            errors=e.errors(include_url=False),
        ) from e

    return [
        VulnerabilityHypothesis(
            target=item.target,
            vulnerability_type=normalize_vulnerability_type(item.vulnerability_type),
            confidence=round(item.confidence),
            reasoning=item.reasoning,
        )
        for item in payload.hypotheses
    ]


def parse_analysis_payload(content: str) -> list[VulnerabilityHypothesis]:
    """
    Extract, decode and validate a raw model answer.

    Raises:
        JSONParseError: If no JSON object can be decoded.
        HypothesisSchemaError: If the object violates the schema.
    """
    return validate_payload(load_json_object(content))
