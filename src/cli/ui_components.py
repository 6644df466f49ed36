"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Tables and panels are reused by several commands.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import (
    CheckStatus,
    CommandStatus,
    EnsureResult,
    FallbackReport,
    VerificationItem,
    VerificationReport,
)

_STATUS_STYLE = {
    CommandStatus.SUCCEEDED: "green",
    CommandStatus.FAILED: "red",
    CommandStatus.TIMED_OUT: "yellow",
}

_CHECK_MARK = {
    CheckStatus.PASS: "[green]✓[/green]",
    CheckStatus.WARN: "[yellow]⚠[/yellow]",
    CheckStatus.FAIL: "[red]✗[/red]",
}


def print_banner(console: Console, subtitle: str) -> None:
    title = Text("TodoList Ops", style="bold cyan")
    body = Align.center(Text.assemble(title, "\n", Text(subtitle, style="dim")), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def step(console: Console, message: str) -> None:
    console.print(f"[blue]→[/blue] {message}")


def success(console: Console, message: str) -> None:
    console.print(f"[green]✅ {message}[/green]")


def warning(console: Console, message: str) -> None:
    console.print(f"[yellow]⚠️  {message}[/yellow]")


def error(console: Console, message: str) -> None:
    console.print(f"[red]❌ {message}[/red]")


def build_attempts_table(report: FallbackReport) -> Table:
    table = Table(title="Build strategies")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Result")
    table.add_column("Exit", style="dim")
    table.add_column("Duration", style="dim")
    for index, attempt in enumerate(report.attempts, start=1):
        style = _STATUS_STYLE[attempt.status]
        table.add_row(
            str(index),
            attempt.strategy,
            f"[{style}]{attempt.status.value}[/{style}]",
            "-" if attempt.returncode is None else str(attempt.returncode),
            f"{attempt.duration_seconds:.1f}s",
        )
    return table


def build_troubleshooting_panel(steps: Sequence[str]) -> Panel:
    body = Text()
    for index, line in enumerate(steps, start=1):
        body.append(f"{index}. {line}\n")
    return Panel(body, title=Text("Troubleshooting", style="bold red"), border_style="red")


def build_ensure_table(results: Iterable[EnsureResult]) -> Table:
    table = Table(title="Azure AD resources")
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Action")
    table.add_column("Identifier", style="dim")
    for result in results:
        style = "green" if result.created else "yellow"
        action = f"[{style}]{result.action}[/{style}]"
        table.add_row(result.kind.label(), result.key, action, result.identifier)
    return table


def format_verification_item(item: VerificationItem) -> str:
    detail = f": {item.detail}" if item.detail else ""
    return f"{_CHECK_MARK[item.status]} {item.kind.label()} [bold]{item.name}[/bold]{detail}"


def build_verification_panel(report: VerificationReport) -> Panel:
    body = Text()
    body.append(f"Application ID:  {report.app_id or '-'}\n")
    body.append(f"Tenant ID:       {report.tenant_id or '-'}\n")
    body.append(f"Subscription ID: {report.subscription_id or '-'}\n")
    body.append(
        f"Federated credentials: {report.credentials_present()}/{report.credentials_expected()}\n"
    )
    style = "green" if report.passed else "red"
    return Panel(body, title=Text("Configuration summary", style=f"bold {style}"), border_style=style)


def build_settings_table(title: str, values: dict[str, str], *, secret: bool) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for name, value in values.items():
        shown = "•" * 8 if secret and name == "POSTGRES_ADMIN_PASSWORD" else value
        table.add_row(name, shown)
    return table
