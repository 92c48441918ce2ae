"""
Exploit Verifier - Turns a hypothesis into a runnable Foundry test.

Flow:
1. Validate the hypothesis target as a Solidity identifier
2. Render the AttackerHarness template with a direct unprivileged call
3. Write it to ``test/Attacker.t.sol``
4. Run ``forge test`` on that file and classify the output

The harness ends with ``assertTrue(false, "EXPLOIT SUCCEEDED")`` right after
the call. The marker only appears in the output when the call went through,
so its presence is what confirms the vulnerability.
"""

import re
import time
from pathlib import Path

from sentry.core.config.settings import SandboxSettings, ToolchainSettings, get_settings
from sentry.core.exceptions import HarnessError, ToolchainError
from sentry.core.logger.logger import get_logger
from sentry.engine.compiler import BUILD_ENV
from sentry.engine.toolchain import ToolchainResolver
from sentry.models.audit import (
    InjectionResult,
    VerificationResult,
    VerificationVerdict,
    VulnerabilityHypothesis,
    VulnerabilityType,
)

logger = get_logger(__name__)

INJECTION_MARKER = "// {{INJECT_ATTACK_CODE}}"
EXPLOIT_MARKER = "EXPLOIT SUCCEEDED"
DEFAULT_CONTRACT = "Vault"

VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_FAIL = re.compile(r"\[FAIL\b")
_PASS = re.compile(r"\[PASS\b")

_SNIPPET_TITLES = {
    VulnerabilityType.ACCESS_CONTROL: "Testing Access Control",
    VulnerabilityType.REENTRANCY: "Testing Reentrancy",
}
_SNIPPET_INDENT = " " * 8


def is_valid_identifier(target: str) -> bool:
    return bool(target) and VALID_IDENTIFIER.match(target.strip()) is not None


def render_exploit_code(hypothesis: VulnerabilityHypothesis) -> str:
    """Render the attack snippet for ``hypothesis``.

    Every vulnerability type currently reduces to the same direct call; only
    the comment header differs.
    """
    target = hypothesis.target.strip()
    title = _SNIPPET_TITLES.get(hypothesis.vulnerability_type, "Generic Access Test")
    # Single line, so model text can never leave the comment.
    reasoning = " ".join(hypothesis.reasoning.split())

    lines = [
        f"// SENTRY Generated Exploit: {title}",
        f"// Target Function: {target}",
        f"// Vulnerability Type: {hypothesis.vulnerability_type.value}",
        f"// Confidence: {hypothesis.confidence}%",
    ]
    if reasoning:
        lines.append(f"// Reasoning: {reasoning}")
    lines.append("// If this call does NOT revert, the access control is broken")
    lines.append(f"target.{target}();")

    return f"\n{_SNIPPET_INDENT}".join(lines)


def classify_output(output: str) -> VerificationVerdict:
    """
    Map test runner output to a verdict.

    Precedence: exploit marker, then ``[FAIL``, then ``[PASS``, then any
    compiler error.
    """
    if EXPLOIT_MARKER in output:
        return VerificationVerdict.VULNERABILITY_CONFIRMED
    if _FAIL.search(output):
        return VerificationVerdict.FALSE_POSITIVE
    if _PASS.search(output):
        return VerificationVerdict.INCONCLUSIVE

    lowered = output.lower()
    if "compil" in lowered and "error" in lowered:
        return VerificationVerdict.COMPILATION_FAILED
    return VerificationVerdict.INCONCLUSIVE


def classify_failure_message(message: str) -> VerificationVerdict:
    """Verdict for a run that produced no output at all."""
    lowered = message.lower()
    if "error" in lowered or "compil" in lowered:
        return VerificationVerdict.COMPILATION_FAILED
    return VerificationVerdict.INCONCLUSIVE


class ExploitVerifier:
    """Injects exploit calls into the harness and runs them."""

    def __init__(
        self,
        sandbox: SandboxSettings | None = None,
        toolchain: ToolchainSettings | None = None,
        resolver: ToolchainResolver | None = None,
    ):
        settings = None if sandbox and toolchain else get_settings()
        self.sandbox = sandbox or settings.sandbox
        self.toolchain = toolchain or settings.toolchain
        self.resolver = resolver or ToolchainResolver(self.toolchain)

    @property
    def test_file_path(self) -> Path:
        return self.sandbox.test_path

    def render_harness(
        self,
        contract_file_name: str,
        hypothesis: VulnerabilityHypothesis,
        contract_name: str | None = None,
    ) -> tuple[str, str]:
        """
        Render the harness source for ``hypothesis``.

        Returns:
            Tuple of (harness source, exploit snippet).

        Raises:
            HarnessError: If the target, template or marker is unusable.
        """
        if not is_valid_identifier(hypothesis.target):
            raise HarnessError(
                f'Invalid target function name: "{hypothesis.target}". '
                "Must be a valid Solidity identifier."
            )

        template_path = self.sandbox.harness_template
        if not template_path.is_file():
            raise HarnessError(
                f"Harness template not found at: {template_path}",
                template_path=str(template_path),
            )

        harness = template_path.read_text(encoding="utf-8")
        if INJECTION_MARKER not in harness:
            raise HarnessError(
                f'Injection marker "{INJECTION_MARKER}" not found in harness template.',
                template_path=str(template_path),
            )

        contract_name = contract_name or Path(contract_file_name).stem
        if not is_valid_identifier(contract_name):
            raise HarnessError(f'Invalid contract name: "{contract_name}"')

        if contract_file_name != f"{DEFAULT_CONTRACT}.sol":
            harness = harness.replace(
                f'import "src/{DEFAULT_CONTRACT}.sol";',
                f'import "src/{contract_file_name}";',
            )
        if contract_name != DEFAULT_CONTRACT:
            harness = re.sub(
                rf"\b{DEFAULT_CONTRACT} public target\b",
                f"{contract_name} public target",
                harness,
            )
            harness = re.sub(
                rf"\bnew {DEFAULT_CONTRACT}\(\)",
                f"new {contract_name}()",
                harness,
            )

        exploit_code = render_exploit_code(hypothesis)
        return harness.replace(INJECTION_MARKER, exploit_code, 1), exploit_code

    def inject(
        self,
        contract_file_name: str,
        hypothesis: VulnerabilityHypothesis,
        contract_name: str | None = None,
    ) -> InjectionResult:
        """
        Write the rendered harness to ``test/Attacker.t.sol``.

        Nothing is written when rendering fails.
        """
        try:
            harness, exploit_code = self.render_harness(
                contract_file_name, hypothesis, contract_name
            )
        except HarnessError as e:
            logger.warning(f"Injection rejected: {e.message}")
            return InjectionResult(success=False, error=e.message)

        try:
            self.test_file_path.parent.mkdir(parents=True, exist_ok=True)
            self.test_file_path.write_text(harness, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write harness: {e}")
            return InjectionResult(success=False, error=f"Failed to write harness: {e}")

        logger.info(f"Injected exploit for {hypothesis.target}() into {self.test_file_path}")
        return InjectionResult(
            success=True,
            test_file_path=str(self.test_file_path),
            exploit_code=exploit_code.strip(),
        )

    async def run(
        self,
        hypothesis: VulnerabilityHypothesis,
        timeout_ms: int | None = None,
    ) -> VerificationResult:
        """Run the injected harness and classify the outcome."""
        timeout_ms = timeout_ms or self.toolchain.test_timeout_ms
        started = time.monotonic()
        match_path = f"{self.sandbox.test_dir.name}/{self.sandbox.test_file_name}"

        try:
            process = await self.resolver.run(
                ["test", "--match-path", match_path, "-vvv"],
                cwd=self.sandbox.root,
                timeout_ms=timeout_ms,
                env=BUILD_ENV,
            )
        except ToolchainError as e:
            logger.error(str(e))
            return VerificationResult(
                verdict=classify_failure_message(e.message),
                target_function=hypothesis.target,
                exploit_succeeded=False,
                test_output=e.message,
                duration_ms=int((time.monotonic() - started) * 1000),
            )

        if process.lines:
            output = process.output
            verdict = classify_output(output)
            if process.timed_out:
                output += f"\nTest run exceeded {timeout_ms}ms and was killed"
        else:
            output = process.error or (
                f"Test run exceeded {timeout_ms}ms and was killed"
                if process.timed_out
                else ""
            )
            verdict = (
                classify_failure_message(output)
                if process.error or process.timed_out
                else classify_output(output)
            )

        exploit_succeeded = verdict == VerificationVerdict.VULNERABILITY_CONFIRMED
        logger.info(f"Exploit test for {hypothesis.target}(): {verdict.value}")

        return VerificationResult(
            verdict=verdict,
            target_function=hypothesis.target,
            exploit_succeeded=exploit_succeeded,
            test_output=output,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def verify(
        self,
        contract_file_name: str,
        hypothesis: VulnerabilityHypothesis,
        contract_name: str | None = None,
    ) -> VerificationResult:
        """Inject then run. An injection failure is INCONCLUSIVE."""
        injection = self.inject(contract_file_name, hypothesis, contract_name)
        if not injection.success:
            return VerificationResult(
                verdict=VerificationVerdict.INCONCLUSIVE,
                target_function=hypothesis.target,
                exploit_succeeded=False,
                test_output=f"Injection failed: {injection.error}",
                duration_ms=0,
            )
        return await self.run(hypothesis)


_VERDICT_DESCRIPTIONS = {
    VerificationVerdict.VULNERABILITY_CONFIRMED: "VULNERABILITY CONFIRMED - Exploit successful",
    VerificationVerdict.FALSE_POSITIVE: "FALSE POSITIVE - Access control is working",
    VerificationVerdict.INCONCLUSIVE: "INCONCLUSIVE - Manual review recommended",
    VerificationVerdict.COMPILATION_FAILED: "COMPILATION FAILED - Test could not run",
}


def format_verification_report(result: VerificationResult) -> str:
    """Summary block for the audit transcript."""
    return "\n".join([
        "  SENTRY VERIFICATION RESULT",
        f"  Target: {result.target_function}",
        f"  Verdict: {_VERDICT_DESCRIPTIONS[result.verdict]}",
        f"  Duration: {result.duration_ms} ms",
        f"  Exploit Succeeded: {'YES' if result.exploit_succeeded else 'NO'}",
    ])
