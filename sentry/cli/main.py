"""Main CLI entry point for SENTRY."""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from sentry.cli.display import (
    console,
    show_banner,
    show_doctor_report,
    show_error,
    show_transcript,
    show_verdict,
)
from sentry.core.config.settings import get_settings
from sentry.core.exceptions import ConfigurationError
from sentry.core.logger.logger import setup_logging
from sentry.models.audit import AuditVerdict

EXIT_CODES = {
    AuditVerdict.SECURE: 0,
    AuditVerdict.UNKNOWN: 0,
    AuditVerdict.CRITICAL: 1,
    AuditVerdict.ERROR: 2,
}

FORGE_STD_HINT = "git clone --depth 1 https://github.com/foundry-rs/forge-std lib/forge-std"


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file",
)
@click.pass_context
def main(ctx: click.Context, version: bool, config_path: str | None) -> None:
    """SENTRY - Hypothesize, then prove.

    AI-guided, Foundry-verified detection of missing access control.
    """
    if version:
        from sentry import __version__

        click.echo(f"SENTRY version {__version__}")
        return

    if config_path:
        os.environ["SENTRY_CONFIG"] = str(Path(config_path).resolve())
        get_settings.cache_clear()

    try:
        setup_logging(get_settings().logging)
    except ConfigurationError as e:
        show_error("Configuration Error", str(e))
        ctx.exit(2)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the AuditResult as JSON")
@click.option("--output", "-o", "output_path", type=click.Path(), help="Write the transcript to a file")
@click.pass_context
def audit(ctx: click.Context, file: str, as_json: bool, output_path: str | None) -> None:
    """Audit a Solidity contract.

    Example:
        sentry audit contracts/Vault.sol
    """
    from sentry.pipeline.orchestrator import AuditPipeline

    code = Path(file).read_text(encoding="utf-8")
    if not code.strip():
        show_error("Audit", f"{file} is empty")
        ctx.exit(2)

    if not as_json:
        show_banner()

    result = asyncio.run(AuditPipeline().run(code))

    if output_path:
        Path(output_path).write_text(result.logs, encoding="utf-8")

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        show_transcript(result.logs)
        show_verdict(result)
        if output_path:
            console.print(f"[dim]Transcript saved to {output_path}[/dim]")

    ctx.exit(EXIT_CODES[result.verdict])


@main.command()
@click.option("--host", "-h", help="Bind address")
@click.option("--port", "-p", type=int, help="Bind port")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP API (POST /audit)."""
    from sentry.api.app import start_server

    start_server(host=host, port=port)


async def collect_environment_report() -> dict[str, dict[str, Any]]:
    """Pre-flight checks for the toolchain, sandbox fixtures and provider."""
    from sentry.agent.providers import get_provider_info
    from sentry.engine.compiler import INSTALL_HINT, CompilerAdapter

    compiler = CompilerAdapter()
    sandbox = compiler.sandbox
    report: dict[str, dict[str, Any]] = {}

    version = await compiler.get_toolchain_version()
    report["toolchain"] = {
        "ok": version is not None,
        "detail": version or f"forge not found. Install: {INSTALL_HINT}",
    }

    report["forge-std"] = {
        "ok": compiler.has_forge_std(),
        "detail": str(sandbox.lib_dir / "forge-std")
        if compiler.has_forge_std()
        else f"missing. Run in {sandbox.root}: {FORGE_STD_HINT}",
    }

    mocks = sorted(p.name for p in sandbox.mocks_dir.glob("*.sol")) if sandbox.mocks_dir.is_dir() else []
    report["mock library"] = {
        "ok": bool(mocks),
        "detail": ", ".join(mocks) or f"no fixtures in {sandbox.mocks_dir}",
    }

    report["harness template"] = {
        "ok": sandbox.harness_template.is_file(),
        "detail": str(sandbox.harness_template),
    }

    info = get_provider_info()
    models = ", ".join([info["model"], *info["fallback_models"]])
    report["ai provider"] = {
        "ok": info["configured"],
        "detail": f"{info['provider']} ({models})"
        if info["configured"]
        else f"{info['provider'].upper()}_API_KEY not set",
    }

    return report


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def doctor(ctx: click.Context, as_json: bool) -> None:
    """Check the local environment for everything an audit needs."""
    report = asyncio.run(collect_environment_report())

    if as_json:
        click.echo(json.dumps(report, indent=2))
    else:
        show_doctor_report(report)

    ready = all(check["ok"] for check in report.values())
    ctx.exit(0 if ready else 1)


if __name__ == "__main__":
    sys.exit(main())
