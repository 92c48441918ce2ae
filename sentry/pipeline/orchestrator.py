"""
Pipeline Orchestrator - Runs one audit end to end.

Stages, each attempted once:

    SANITIZE -> COMPILE -> ANALYZE -> VERIFY -> VERDICT

Every failure short-circuits to ERROR, except an analysis with zero
hypotheses, which short-circuits to SECURE. The transcript collected along
the way is returned with the verdict.
"""

import logging
from collections.abc import Callable

from sentry.agent.analyzer import HypothesisGenerator, format_analysis_report
from sentry.core.exceptions import SanitizationError
from sentry.core.logger.logger import get_logger
from sentry.engine.compiler import INSTALL_HINT, CompilerAdapter
from sentry.engine.sanitizer import (
    extract_contract_name,
    format_sanitization_report,
    sanitize,
)
from sentry.engine.verifier import ExploitVerifier, format_verification_report
from sentry.models.audit import (
    AuditResult,
    AuditVerdict,
    SanitizationResult,
    VerificationVerdict,
)

logger = get_logger(__name__)

ERROR_PREFIX = "[ERROR] "

BANNER_RULE = "═" * 64
SECTION_RULE = "─" * 65

_VERDICT_MAP = {
    VerificationVerdict.VULNERABILITY_CONFIRMED: AuditVerdict.CRITICAL,
    VerificationVerdict.FALSE_POSITIVE: AuditVerdict.SECURE,
}


def reduce_verdict(verdict: VerificationVerdict) -> AuditVerdict:
    """CONFIRMED -> CRITICAL, FALSE_POSITIVE -> SECURE, anything else -> UNKNOWN."""
    return _VERDICT_MAP.get(verdict, AuditVerdict.UNKNOWN)


class AuditTranscript:
    """Ordered, append-only audit log, mirrored to the module logger."""

    def __init__(self, mirror: logging.Logger | None = None):
        self._lines: list[str] = []
        self._mirror = mirror or logger

    def log(self, message: str = "") -> None:
        for line in message.splitlines() or [""]:
            self._lines.append(line)
            self._mirror.debug(line)

    def error(self, message: str = "") -> None:
        for line in message.splitlines() or [""]:
            self._lines.append(f"{ERROR_PREFIX}{line}")
            self._mirror.warning(line)

    def section(self, title: str) -> None:
        self.log(f"┌{'─' * 64}┐")
        self.log(f"│  {title:<62}│")
        self.log(f"└{'─' * 64}┘")

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def render(self) -> str:
        return "\n".join(self._lines) + "\n" if self._lines else ""


class AuditPipeline:
    """
    Sequences sanitizer, compiler, hypothesis generator and verifier.

    Collaborators are injectable; by default they are built from the global
    settings. The sandbox is shared, so callers must not run two pipelines
    at once.
    """

    def __init__(
        self,
        compiler: CompilerAdapter | None = None,
        generator: HypothesisGenerator | None = None,
        verifier: ExploitVerifier | None = None,
        sanitizer: Callable[[str], SanitizationResult] = sanitize,
    ):
        self.compiler = compiler or CompilerAdapter()
        self.generator = generator or HypothesisGenerator()
        self.verifier = verifier or ExploitVerifier(
            sandbox=self.compiler.sandbox,
            toolchain=self.compiler.toolchain,
            resolver=self.compiler.resolver,
        )
        self.sanitizer = sanitizer

    async def run(self, code: str) -> AuditResult:
        """
        Audit one contract.

        Never raises: unexpected exceptions become an ERROR verdict with a
        ``FATAL EXCEPTION`` line in the transcript.
        """
        transcript = AuditTranscript()
        transcript.log(BANNER_RULE)
        transcript.log("                     SENTRY PIPELINE STARTED")
        transcript.log(BANNER_RULE)
        transcript.log()

        try:
            verdict = await self._run_stages(code, transcript)
        except Exception as e:
            logger.exception("Pipeline failed with an unexpected exception")
            transcript.error(f"FATAL EXCEPTION: {e}")
            verdict = AuditVerdict.ERROR

        logger.info(f"Audit finished: {verdict.value}")
        return AuditResult(logs=transcript.render(), verdict=verdict)

    async def _run_stages(self, code: str, transcript: AuditTranscript) -> AuditVerdict:
        # Step A: sanitize
        transcript.section("STEP A: SANITIZATION")
        try:
            sanitized = self.sanitizer(code)
        except SanitizationError as e:
            transcript.error("❌ Error: sanitization rejected the contract")
            transcript.error(f"   {e}")
            return AuditVerdict.ERROR

        transcript.log("✅ Sanitized (Imports remapped)")
        transcript.log(f"   → {len(sanitized.remapped_imports)} import(s) remapped")
        transcript.log(f"   → {len(sanitized.removed_imports)} import(s) removed")
        if sanitized.remapped_imports or sanitized.removed_imports:
            transcript.log(format_sanitization_report(sanitized))
        transcript.log()

        # Step B: compile
        transcript.section("STEP B: COMPILATION")
        if not await self.compiler.is_toolchain_available():
            transcript.error("❌ Error: Foundry not installed")
            transcript.error(f"   Install: {INSTALL_HINT}")
            return AuditVerdict.ERROR

        compilation = await self.compiler.compile(sanitized.code, clean=True)
        if not compilation.success:
            transcript.error("❌ Error compiling")
            transcript.error(compilation.logs)
            return AuditVerdict.ERROR

        transcript.log(f"✅ Compiled (Foundry build success, {compilation.duration_ms}ms)")
        transcript.log(f"   → Saved to: {self.compiler.sandbox.contract_path}")
        transcript.log()

        # Step C: analyze
        transcript.section("STEP C: AI ANALYSIS")
        if not self.generator.is_configured():
            transcript.error("❌ Error: AI Provider API key not configured")
            transcript.error("   Check .env file for AI_PROVIDER and corresponding API key")
            return AuditVerdict.ERROR

        transcript.log("🧠 Analyzing (AI hypothesis...)")
        analysis = await self.generator.analyze(sanitized.code)
        if not analysis.success:
            transcript.error("❌ Error: AI analysis failed")
            transcript.error(f"   {analysis.error}")
            return AuditVerdict.ERROR

        transcript.log(format_analysis_report(analysis))

        primary = analysis.primary
        if primary is None:
            transcript.log("✅ Analysis complete: No vulnerabilities detected")
            transcript.log()
            transcript.log(BANNER_RULE)
            transcript.log("   FINAL VERDICT: CONTRACT SECURE")
            transcript.log(BANNER_RULE)
            return AuditVerdict.SECURE

        transcript.log(f"🧠 AI found: {primary.target}")
        transcript.log(f"   → Vulnerability Type: {primary.vulnerability_type.value}")
        transcript.log(f"   → Confidence: {primary.confidence}%")
        transcript.log()

        # Step D: verify
        transcript.section("STEP D: EXPLOIT VERIFICATION")
        contract_name = extract_contract_name(sanitized.code)
        transcript.log("💉 Injecting Exploit...")
        transcript.log(f"   → Target function: {primary.target}()")
        if contract_name:
            transcript.log(f"   → Target contract: {contract_name}")
        transcript.log()
        transcript.log("🔨 Running Foundry...")

        verification = await self.verifier.verify(
            self.compiler.sandbox.contract_file_name,
            primary,
            contract_name=contract_name,
        )

        transcript.log()
        transcript.log(SECTION_RULE)
        transcript.log("FOUNDRY OUTPUT:")
        transcript.log(SECTION_RULE)
        transcript.log(verification.test_output or "No output captured")
        transcript.log(SECTION_RULE)
        transcript.log(format_verification_report(verification))
        transcript.log()

        # Verdict
        verdict = reduce_verdict(verification.verdict)
        transcript.log(BANNER_RULE)
        if verdict == AuditVerdict.CRITICAL:
            transcript.log("🚨 FINAL VERDICT: CRITICAL VULNERABILITY CONFIRMED 🚨")
            transcript.log()
            transcript.log(f"   Vulnerability: {primary.vulnerability_type.value}")
            transcript.log(f"   Target: {primary.target}()")
            transcript.log(f"   Confidence: {primary.confidence}%")
            transcript.log()
            transcript.log("   ⚠️  EXPLOIT SUCCEEDED - The vulnerability is REAL!")
        elif verdict == AuditVerdict.SECURE:
            transcript.log("✅ FINAL VERDICT: VULNERABILITY NOT EXPLOITABLE")
            transcript.log()
            transcript.log("   The AI hypothesis could not be verified.")
            transcript.log("   The contract may have additional protections.")
        else:
            transcript.log("⚠️  FINAL VERDICT: VERIFICATION INCONCLUSIVE")
            transcript.log()
            transcript.log(f"   Verdict: {verification.verdict.value}")
            transcript.log("   Manual review recommended.")
        transcript.log(BANNER_RULE)

        return verdict
