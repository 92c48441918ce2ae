"""Data models module."""

from sentry.models.audit import (
    AnalysisResponse,
    AuditResult,
    AuditVerdict,
    CompilationResult,
    ImportMapping,
    InjectionResult,
    SanitizationResult,
    VerificationResult,
    VerificationVerdict,
    VulnerabilityHypothesis,
    VulnerabilityType,
)

__all__ = [
    "AnalysisResponse",
    "AuditResult",
    "AuditVerdict",
    "CompilationResult",
    "ImportMapping",
    "InjectionResult",
    "SanitizationResult",
    "VerificationResult",
    "VerificationVerdict",
    "VulnerabilityHypothesis",
    "VulnerabilityType",
]
