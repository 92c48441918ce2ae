"""
Toolchain - Foundry process runner and platform resolver.

Runs ``forge`` subprocesses with a kill-on-deadline timer and keeps stdout and
stderr lines in the order they arrived. The resolver finds a working
``forge`` invocation once per process and reuses it afterwards.
"""

import asyncio
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

from sentry.core.config.settings import ToolchainSettings, get_settings
from sentry.core.exceptions import ToolchainError
from sentry.core.logger.logger import get_logger

logger = get_logger(__name__)

STDOUT = "stdout"
STDERR = "stderr"
STDERR_PREFIX = "[STDERR] "

# Forge prints long ABI blobs on a single line at -vvv.
_STREAM_LIMIT = 1024 * 1024


@dataclass
class ProcessResult:
    """Result of one toolchain subprocess.

    Attributes:
        command: The argv that was executed.
        return_code: Exit code, None if the process never started.
        lines: (stream, line) pairs in arrival order.
        timed_out: Whether the deadline timer killed the process.
        duration_ms: Wall-clock duration.
        error: Spawn error message, if the process could not be started.
    """

    command: list[str]
    return_code: int | None = None
    lines: list[tuple[str, str]] = field(default_factory=list)
    timed_out: bool = False
    duration_ms: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.return_code == 0 and not self.timed_out and self.error is None

    @property
    def stdout(self) -> str:
        return "\n".join(line for stream, line in self.lines if stream == STDOUT)

    @property
    def stderr(self) -> str:
        return "\n".join(line for stream, line in self.lines if stream == STDERR)

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in arrival order."""
        return "\n".join(line for _, line in self.lines)

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def format_lines(self) -> list[str]:
        """Transcript lines with stderr marked."""
        return [
            f"{STDERR_PREFIX}{line}" if stream == STDERR else line
            for stream, line in self.lines
        ]


async def run_process(
    command: list[str],
    cwd: Path | None = None,
    timeout_seconds: float | None = None,
    env: dict[str, str] | None = None,
) -> ProcessResult:
    """
    Run a command asynchronously, streaming both pipes.

    Output captured before a timeout is kept. Spawn failures are reported
    through ``ProcessResult.error`` rather than raised.

    Args:
        command: Command and arguments.
        cwd: Working directory.
        timeout_seconds: Deadline after which the child is killed.
        env: Variables added on top of the current environment.

    Returns:
        ProcessResult for the run.
    """
    result = ProcessResult(command=list(command))
    start = time.monotonic()

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
            limit=_STREAM_LIMIT,
        )
    except OSError as e:
        result.error = f"{type(e).__name__}: {e}"
        result.duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug(f"Failed to start {result.command_line}: {result.error}")
        return result

    async def pump(stream: asyncio.StreamReader, name: str) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                break
            result.lines.append((name, raw.decode("utf-8", errors="replace").rstrip("\r\n")))

    async def communicate() -> int:
        await asyncio.gather(pump(process.stdout, STDOUT), pump(process.stderr, STDERR))
        return await process.wait()

    try:
        result.return_code = await asyncio.wait_for(communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        result.timed_out = True
        try:
            process.kill()
        except ProcessLookupError:
            pass
        result.return_code = await process.wait()
        logger.warning(f"Command timed out after {timeout_seconds}s: {result.command_line}")

    result.duration_ms = int((time.monotonic() - start) * 1000)
    return result


# Process-wide resolution cache. Assigned once, never re-probed.
_resolved_command: list[str] | None = None


def reset_resolution_cache() -> None:
    """Forget the cached toolchain invocation."""
    global _resolved_command
    _resolved_command = None


class ToolchainResolver:
    """
    Finds a working ``forge`` invocation.

    Candidates, in order:
    1. The native binary.
    2. ``wsl forge`` (Windows, or when forced by configuration).
    3. ``wsl ~/.foundry/bin/forge`` for shells without Foundry on PATH.

    A failed resolution is not cached, so installing Foundry while the
    service runs is picked up by the next request.
    """

    def __init__(
        self,
        settings: ToolchainSettings | None = None,
        platform: str | None = None,
    ):
        self.settings = settings or get_settings().toolchain
        self.platform = platform or sys.platform

    def candidates(self) -> list[list[str]]:
        candidates = [[self.settings.binary]]
        if self.platform == "win32" or self.settings.force_compat_shell:
            candidates.append([self.settings.compat_shell, self.settings.binary])
            candidates.append([self.settings.compat_shell, self.settings.wsl_fallback_path])
        return candidates

    async def probe(self, command: list[str]) -> ProcessResult:
        """Run ``<command> --version``."""
        return await run_process(
            [*command, "--version"],
            timeout_seconds=self.settings.probe_timeout_ms / 1000,
        )

    async def resolve(self) -> list[str] | None:
        """
        Return the first candidate whose version probe exits 0.

        Returns:
            The command prefix to invoke, or None if nothing responded.
        """
        global _resolved_command

        if _resolved_command is not None:
            return list(_resolved_command)

        for candidate in self.candidates():
            probe = await self.probe(candidate)
            if probe.success:
                _resolved_command = candidate
                version = probe.stdout.splitlines()[0] if probe.stdout else "unknown"
                logger.info(f"Resolved toolchain: {' '.join(candidate)} ({version})")
                return list(candidate)
            logger.debug(f"Toolchain candidate rejected: {' '.join(candidate)}")

        logger.warning("No working toolchain found")
        return None

    async def version(self) -> str | None:
        """Return the first line of the toolchain's version banner."""
        command = await self.resolve()
        if command is None:
            return None
        probe = await self.probe(command)
        if not probe.success or not probe.stdout:
            return None
        return probe.stdout.splitlines()[0].strip()

    async def run(
        self,
        args: list[str],
        cwd: Path,
        timeout_ms: int,
        env: dict[str, str] | None = None,
    ) -> ProcessResult:
        """
        Run a toolchain subcommand.

        Raises:
            ToolchainError: If no toolchain invocation can be resolved.
        """
        command = await self.resolve()
        if command is None:
            raise ToolchainError(
                "Foundry toolchain not found",
                command=" ".join(self.candidates()[0]),
            )
        return await run_process(
            [*command, *args],
            cwd=cwd,
            timeout_seconds=timeout_ms / 1000,
            env=env,
        )
