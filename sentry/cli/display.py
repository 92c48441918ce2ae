"""Display components for CLI using Rich."""

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sentry.models.audit import AuditResult, AuditVerdict

console = Console()

BANNER = r"""
[bold cyan]
   _____ ______ _   _ _______ _______     __
  / ____|  ____| \ | |__   __|  __ \ \   / /
 | (___ | |__  |  \| |  | |  | |__) \ \_/ /
  \___ \|  __| | . ` |  | |  |  _  / \   /
  ____) | |____| |\  |  | |  | | \ \  | |
 |_____/|______|_| \_|  |_|  |_|  \_\ |_|
[/bold cyan]
[dim]Hypothesize, then prove: access-control verification for smart contracts[/dim]
"""

VERDICT_STYLES = {
    AuditVerdict.SECURE: ("green", "CONTRACT SECURE", "No exploitable access-control issue was proven."),
    AuditVerdict.CRITICAL: ("red", "CRITICAL VULNERABILITY", "An unprivileged call to the target succeeded."),
    AuditVerdict.UNKNOWN: ("yellow", "INCONCLUSIVE", "Verification could not decide. Manual review recommended."),
    AuditVerdict.ERROR: ("red", "PIPELINE ERROR", "The audit could not complete. See the transcript."),
}


def show_banner() -> None:
    """Display the SENTRY banner."""
    console.print()
    console.print(Panel(BANNER, border_style="cyan", padding=(0, 2)))
    console.print()


def show_success(title: str, message: str) -> None:
    """Display a success message."""
    console.print()
    console.print(
        Panel(
            f"[bold green]{escape(message)}[/]",
            title=f"[bold]{escape(title)}[/]",
            border_style="green",
        )
    )


def show_error(title: str, message: str) -> None:
    """Display an error message."""
    console.print()
    console.print(
        Panel(
            f"[bold red]{escape(message)}[/]",
            title=f"[bold]{escape(title)}[/]",
            border_style="red",
        )
    )


def show_transcript(logs: str) -> None:
    """Print the audit transcript verbatim."""
    # Transcript lines such as "[ERROR]" and "[FAIL..." are not markup.
    console.print(logs, markup=False, highlight=False, end="")


def show_verdict(result: AuditResult) -> None:
    """Display the final verdict panel."""
    color, title, description = VERDICT_STYLES[result.verdict]
    console.print()
    console.print(
        Panel(
            f"[bold {color}]{title}[/]\n\n{description}",
            title="[bold]Verdict[/]",
            border_style=color,
        )
    )


def show_doctor_report(report: dict[str, Any]) -> None:
    """Display the environment pre-flight report.

    Args:
        report: Mapping of check name to {"ok": bool, "detail": str}.
    """
    table = Table(title="[bold]SENTRY Environment[/]", show_header=True)
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="white")

    for name, check in report.items():
        status = "[bold green]OK[/]" if check["ok"] else "[bold red]MISSING[/]"
        table.add_row(name, status, escape(str(check["detail"])))

    console.print()
    console.print(table)
