"""
Compiler Adapter - Builds sanitized contracts inside the Foundry sandbox.

Sandbox layout (rooted at ``SandboxSettings.root``)::

    foundry.toml
    src/Vault.sol        audited contract
    src/mocks/*.sol      mock dependency library
    test/Attacker.t.sol  exploit harness
    lib/forge-std        test framework
"""

import shutil
import time
from datetime import datetime

from sentry.core.config.settings import SandboxSettings, ToolchainSettings, get_settings
from sentry.core.logger.logger import get_logger
from sentry.engine.toolchain import ProcessResult, ToolchainResolver, run_process
from sentry.models.audit import CompilationResult

logger = get_logger(__name__)

BUILD_ENV = {"NO_COLOR": "1", "FORCE_COLOR": "0"}

INSTALL_HINT = "curl -L https://foundry.paradigm.xyz | bash && foundryup"

FOUNDRY_TOML = """[profile.default]
src = "src"
out = "out"
libs = ["lib"]
test = "test"
remappings = [
    "forge-std/=lib/forge-std/src/",
    "mocks/=src/mocks/",
]
"""

HEAVY_RULE = "═" * 75
LIGHT_RULE = "─" * 75


class CompilerAdapter:
    """Writes a contract into the sandbox and runs ``forge build`` on it."""

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

    def prepare_sandbox(self, clean: bool = False) -> None:
        """Create the sandbox tree, config and mock library."""
        for directory in (self.sandbox.src_dir, self.sandbox.test_dir, self.sandbox.lib_dir):
            directory.mkdir(parents=True, exist_ok=True)

        config_path = self.sandbox.root / "foundry.toml"
        if not config_path.exists():
            config_path.write_text(FOUNDRY_TOML, encoding="utf-8")
            logger.debug(f"Wrote {config_path}")

        if clean:
            for artifact in ("out", "cache"):
                shutil.rmtree(self.sandbox.root / artifact, ignore_errors=True)

        self.copy_mocks()

    def clear_previous_run(self) -> None:
        """Remove the last audit's contracts and harness; forge builds ``test/`` too."""
        self.clean_source_directory()
        if self.sandbox.test_path.exists():
            self.sandbox.test_path.unlink()
            logger.debug(f"Removed stale harness {self.sandbox.test_path}")

    def copy_mocks(self) -> int:
        """Copy every mock fixture into ``src/mocks``. Returns the count."""
        target = self.sandbox.src_dir / "mocks"
        target.mkdir(parents=True, exist_ok=True)

        if not self.sandbox.mocks_dir.is_dir():
            logger.warning(f"Mock library not found: {self.sandbox.mocks_dir}")
            return 0

        copied = 0
        for mock in sorted(self.sandbox.mocks_dir.glob("*.sol")):
            shutil.copyfile(mock, target / mock.name)
            copied += 1
        return copied

    async def compile(
        self,
        sanitized_source: str,
        clean: bool = True,
        timeout_ms: int | None = None,
    ) -> CompilationResult:
        """
        Build the sanitized contract.

        Args:
            sanitized_source: Output of the sanitizer.
            clean: Remove ``out/`` and ``cache/`` first.
            timeout_ms: Build deadline, defaults to the configured one.

        Returns:
            CompilationResult; ``success`` is exactly "exit code was 0".
        """
        timeout_ms = timeout_ms or self.toolchain.build_timeout_ms
        started = time.monotonic()

        command = await self.resolver.resolve()
        if command is None:
            message = (
                f"Foundry toolchain not found (tried: "
                f"{', '.join(' '.join(c) for c in self.resolver.candidates())}). "
                f"Install with: {INSTALL_HINT}"
            )
            logger.error(message)
            return CompilationResult(
                success=False,
                logs=message,
                duration_ms=int((time.monotonic() - started) * 1000),
            )

        self.prepare_sandbox(clean=clean)
        self.clear_previous_run()
        self.sandbox.contract_path.write_text(sanitized_source, encoding="utf-8")
        logger.info(f"Compiling {self.sandbox.contract_path}")

        process = await run_process(
            [*command, "build"],
            cwd=self.sandbox.root,
            timeout_seconds=timeout_ms / 1000,
            env=BUILD_ENV,
        )

        success = process.return_code == 0 and not process.timed_out and process.error is None
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Build {'succeeded' if success else 'failed'} in {duration_ms}ms")

        return CompilationResult(
            success=success,
            logs=self._format_logs(process, timeout_ms, success, duration_ms),
            duration_ms=duration_ms,
            timed_out=process.timed_out,
            command=process.command_line,
        )

    def _format_logs(
        self,
        process: ProcessResult,
        timeout_ms: int,
        success: bool,
        duration_ms: int,
    ) -> str:
        logs = [
            HEAVY_RULE,
            "  SENTRY COMPILER OUTPUT",
            HEAVY_RULE,
            f"  Command: {process.command_line}",
            f"  Working Directory: {self.sandbox.root}",
            f"  Timestamp: {datetime.now().isoformat(timespec='seconds')}",
            LIGHT_RULE,
            *process.format_lines(),
            LIGHT_RULE,
        ]

        if process.error:
            logs.append(f"  Status: ✗ SPAWN ERROR: {process.error}")
        elif process.timed_out:
            logs.append("  Status: TIMEOUT")
            logs.append(f"  Build exceeded {timeout_ms}ms and was killed")
        else:
            logs.append(f"  Status: {'✓ SUCCESS' if success else '✗ FAILED'}")
            logs.append(f"  Exit Code: {process.return_code}")

        logs.append(f"  Duration: {duration_ms}ms")
        logs.append(HEAVY_RULE)
        return "\n".join(logs)

    async def is_toolchain_available(self) -> bool:
        return await self.resolver.resolve() is not None

    async def get_toolchain_version(self) -> str | None:
        return await self.resolver.version()

    def clean_source_directory(self) -> int:
        """Delete top-level contracts in ``src/``. Returns the count."""
        removed = 0
        if not self.sandbox.src_dir.is_dir():
            return removed
        for contract in self.sandbox.src_dir.glob("*.sol"):
            contract.unlink()
            removed += 1
        logger.debug(f"Source directory cleaned ({removed} files)")
        return removed

    def has_forge_std(self) -> bool:
        """Whether the forge-std test library is installed in the sandbox."""
        return (self.sandbox.lib_dir / "forge-std" / "src" / "Test.sol").is_file()
