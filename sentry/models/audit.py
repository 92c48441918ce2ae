"""Audit pipeline data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VulnerabilityType(str, Enum):
    """Closed set of vulnerability classes a hypothesis can carry."""

    ACCESS_CONTROL = "ACCESS_CONTROL"
    REENTRANCY = "REENTRANCY"
    OVERFLOW = "OVERFLOW"
    OTHER = "OTHER"


class VerificationVerdict(str, Enum):
    """Outcome of running the exploit harness."""

    VULNERABILITY_CONFIRMED = "VULNERABILITY_CONFIRMED"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    INCONCLUSIVE = "INCONCLUSIVE"
    COMPILATION_FAILED = "COMPILATION_FAILED"


class AuditVerdict(str, Enum):
    """Terminal classification of one audit request."""

    SECURE = "SECURE"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"
    ERROR = "ERROR"


class ImportMapping(BaseModel):
    """One resolved import substitution."""

    model_config = ConfigDict(frozen=True)

    original: str = Field(description="Import path found in the source")
    mocked: str = Field(description="Mock library path it was replaced with")


class SanitizationResult(BaseModel):
    """Result of neutralizing untrusted imports."""

    code: str = Field(description="Sanitized source code")
    remapped_imports: list[ImportMapping] = Field(
        default_factory=list,
        description="Whitelisted imports, one entry per occurrence",
    )
    removed_imports: list[str] = Field(
        default_factory=list,
        description="Paths (or raw statements) that were commented out",
    )
    success: bool = Field(default=True)


class CompilationResult(BaseModel):
    """Result of one toolchain build invocation."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(description="True iff the build exited with code 0")
    logs: str = Field(default="", description="Captured build transcript")
    timestamp: datetime = Field(default_factory=datetime.now)
    duration_ms: int = Field(default=0, ge=0)
    timed_out: bool = Field(default=False)
    command: str | None = Field(default=None, description="Command that was run")


class VulnerabilityHypothesis(BaseModel):
    """An AI-proposed target function, unverified until exploited."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(min_length=1, description="Function identifier")
    vulnerability_type: VulnerabilityType = Field(default=VulnerabilityType.OTHER)
    confidence: int = Field(ge=0, le=100)
    reasoning: str = Field(default="")


class AnalysisResponse(BaseModel):
    """Hypotheses returned by the generator; index 0 is the primary one."""

    hypotheses: list[VulnerabilityHypothesis] = Field(default_factory=list)
    success: bool
    error: str | None = None
    provider: str | None = Field(default=None, description="Provider that was used")
    model: str | None = Field(default=None, description="Model that produced the answer")
    attempts: int = Field(default=0, ge=0, description="Number of model calls made")

    @property
    def primary(self) -> VulnerabilityHypothesis | None:
        return self.hypotheses[0] if self.hypotheses else None


class InjectionResult(BaseModel):
    """Result of rendering the exploit harness."""

    success: bool
    test_file_path: str | None = None
    exploit_code: str | None = None
    error: str | None = None


class VerificationResult(BaseModel):
    """Result of running the rendered exploit harness."""

    verdict: VerificationVerdict
    target_function: str
    exploit_succeeded: bool = False
    test_output: str = ""
    duration_ms: int = Field(default=0, ge=0)


class AuditResult(BaseModel):
    """The only entity exposed across the system boundary."""

    logs: str
    verdict: AuditVerdict
