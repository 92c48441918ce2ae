"""Pytest configuration and shared fixtures."""

import shutil
import stat
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest

from sentry.agent.llm.client import LLMClient, LLMError, LLMProvider, LLMResponse
from sentry.agent.providers import ProviderConfig
from sentry.core.config.settings import ProviderSettings, SandboxSettings, ToolchainSettings
from sentry.engine.toolchain import reset_resolution_cache

FAKE_FORGE_SCRIPT = """#!/bin/sh
DIR="$(cd "$(dirname "$0")" && pwd)"
if [ "$1" = "--version" ]; then SUB=version; else SUB="$1"; fi
echo "$@" >> "$DIR/calls.log"
find src test -maxdepth 1 -name "*.sol" 2>/dev/null | sort > "$DIR/$SUB.tree"
[ -f "$DIR/$SUB.out" ] && cat "$DIR/$SUB.out"
[ -f "$DIR/$SUB.err" ] && cat "$DIR/$SUB.err" >&2
[ -f "$DIR/$SUB.hang" ] && exec sleep "$(cat "$DIR/$SUB.hang")"
if [ -f "$DIR/$SUB.code" ]; then exit "$(cat "$DIR/$SUB.code")"; fi
exit 0
"""


class FakeForge:
    """Shell script standing in for the ``forge`` binary.

    Each subcommand (``version``, ``build``, ``test``) prints the configured
    stdout/stderr and exits with the configured code. Every invocation's
    arguments are appended to ``calls.log``.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.script = self.directory / "forge"
        self.script.write_text(FAKE_FORGE_SCRIPT, encoding="utf-8")
        self.script.chmod(self.script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.set("version", stdout="forge 0.2.0 (fake 2024-01-01)\n")

    @property
    def path(self) -> str:
        return str(self.script)

    def set(
        self,
        sub: str,
        stdout: str = "",
        stderr: str = "",
        code: int = 0,
        hang_seconds: int | None = None,
    ) -> None:
        """Configure the behaviour of one subcommand."""
        for suffix in ("out", "err", "code", "hang"):
            (self.directory / f"{sub}.{suffix}").unlink(missing_ok=True)
        if stdout:
            (self.directory / f"{sub}.out").write_text(stdout, encoding="utf-8")
        if stderr:
            (self.directory / f"{sub}.err").write_text(stderr, encoding="utf-8")
        (self.directory / f"{sub}.code").write_text(str(code), encoding="utf-8")
        if hang_seconds is not None:
            (self.directory / f"{sub}.hang").write_text(str(hang_seconds), encoding="utf-8")

    def calls(self) -> list[str]:
        log = self.directory / "calls.log"
        if not log.exists():
            return []
        return log.read_text(encoding="utf-8").splitlines()

    def subcommand_calls(self, sub: str) -> list[str]:
        return [c for c in self.calls() if c.split(" ", 1)[0] == sub]

    def sources_seen(self, sub: str) -> list[str]:
        """Top-level ``src/`` and ``test/`` contracts present during the last ``sub`` call."""
        tree = self.directory / f"{sub}.tree"
        if not tree.exists():
            return []
        return tree.read_text(encoding="utf-8").splitlines()


class ScriptedLLMClient(LLMClient):
    """LLM client replaying a fixed reply (or raising a fixed error) per model."""

    def __init__(self, model: str, reply: str | Exception, calls: list[str]):
        super().__init__(model=model)
        self._reply = reply
        self._calls = calls
        self.closed = False

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.OPENROUTER

    @property
    def is_available(self) -> bool:
        return True

    async def complete_with_messages(self, messages: list[dict[str, str]], **options) -> LLMResponse:
        self._calls.append(self.model)
        if isinstance(self._reply, Exception):
            raise self._reply
        return LLMResponse(content=self._reply, model=self.model, provider=self.provider)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_toolchain_cache() -> Generator[None, None, None]:
    """Each test resolves the toolchain from scratch."""
    reset_resolution_cache()
    yield
    reset_resolution_cache()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory that is cleaned up after the test.

    Yields:
        Path to the temporary directory.
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fake_forge(temp_dir: Path) -> FakeForge:
    """A scriptable stand-in for the Foundry toolchain."""
    if sys.platform == "win32":
        pytest.skip("fake forge is a POSIX shell script")
    return FakeForge(temp_dir / "bin")


@pytest.fixture
def sandbox_settings(temp_dir: Path) -> SandboxSettings:
    """Sandbox rooted in a temporary directory, with the bundled fixtures."""
    return SandboxSettings(root=temp_dir / "workspace")


@pytest.fixture
def toolchain_settings(fake_forge: FakeForge) -> ToolchainSettings:
    """Toolchain settings pointing at the fake forge."""
    return ToolchainSettings(binary=fake_forge.path, probe_timeout_ms=5000)


@pytest.fixture
def missing_toolchain_settings(temp_dir: Path) -> ToolchainSettings:
    """Toolchain settings pointing at a binary that does not exist."""
    return ToolchainSettings(binary=str(temp_dir / "no-such-forge"), probe_timeout_ms=2000)


@pytest.fixture
def openrouter_settings() -> ProviderSettings:
    """Anonymous OpenRouter settings with one fallback model."""
    return ProviderSettings(
        ai_provider="openrouter",
        openrouter_api_key=None,
        openrouter_model="primary/model,fallback/model",
    )


@pytest.fixture
def scripted_llm() -> Callable[..., tuple[Callable[[ProviderConfig, str], LLMClient], list[str]]]:
    """Build a client factory replaying ``replies`` keyed by model name.

    Returns:
        Function returning (factory, calls) where ``calls`` records every
        model that was asked.
    """

    def build(replies: dict[str, str | Exception]):
        calls: list[str] = []

        def factory(config: ProviderConfig, model: str) -> LLMClient:
            reply = replies.get(model, LLMError(f"no scripted reply for {model}"))
            return ScriptedLLMClient(model, reply, calls)

        return factory, calls

    return build


VULNERABLE_VAULT = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/access/Ownable.sol";

contract Vault is Ownable {
    mapping(address => uint256) public balances;

    function deposit() external payable {
        balances[msg.sender] += msg.value;
    }

    function withdraw() external {
        payable(msg.sender).transfer(address(this).balance);
    }
}
"""

GUARDED_VAULT = VULNERABLE_VAULT.replace(
    "function withdraw() external {",
    "function withdraw() external onlyOwner {",
)


@pytest.fixture
def vulnerable_vault() -> str:
    return VULNERABLE_VAULT


@pytest.fixture
def guarded_vault() -> str:
    return GUARDED_VAULT
