"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import shutil
from typing import Callable

import httpx
import typer
from rich.table import Table

from adapters.http_client import build_async_client
from cli import common
from core.config import AppSettings, write_user_env_vars
from core.errors import OpsError
from core.interfaces.runner import CommandRunner

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")


async def _check_http(url: str) -> tuple[bool, str]:
    try:
        async with build_async_client() as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except httpx.HTTPError as exc:
        return False, str(exc) or type(exc).__name__


def _first_line(runner: CommandRunner, argv: list[str]) -> str | None:
    result = runner.run(argv, timeout=30)
    if not result.ok or not result.stdout.strip():
        return None
    return result.stdout.strip().splitlines()[0]


def _tools(settings: AppSettings, runner: CommandRunner) -> list[tuple[str, Callable[[], str | None], str]]:
    """(tool, version probe, needed by)"""

    return [
        ("docker", common.make_docker(settings).version, "docker build / smoke"),
        ("az", common.make_azure(settings).version, "oidc, infra"),
        ("gh", common.make_github(settings).version, "secrets"),
        ("dotnet", lambda: _first_line(runner, ["dotnet", "--version"]), "docker build --verify-dotnet"),
        ("terraform", lambda: _first_line(runner, ["terraform", "version"]), "infra"),
    ]


def _check(action: Callable[[], object]) -> tuple[bool, str]:
    try:
        action()
    except OpsError as exc:
        return False, str(exc)
    return True, "OK"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    runner = common.make_runner()

    table = Table(title="TodoList Ops Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Tools
    for tool, probe, needed_by in _tools(settings, runner):
        if shutil.which(tool) is None:
            table.add_row(tool, "MISSING", f"needed by {needed_by}")
        else:
            table.add_row(tool, "OK", probe() or "installed (version unknown)")

    # Sessions
    if shutil.which("docker"):
        ok, detail = _check(common.make_docker(settings).ensure_available)
        table.add_row("Docker daemon", "OK" if ok else "FAIL", detail)
    if shutil.which("az"):
        try:
            account = common.make_azure(settings).account_show()
        except OpsError as exc:
            table.add_row("Azure login", "FAIL", str(exc))
        else:
            table.add_row("Azure login", "OK", f"{account.name} ({account.subscription_id})")
    if shutil.which("gh"):
        ok, detail = _check(common.make_github(settings).ensure_available)
        table.add_row("GitHub auth", "OK" if ok else "FAIL", detail)

    # Config
    repo = f"{settings.github_org}/{settings.github_repo}" if settings.github_org and settings.github_repo else None
    if repo:
        table.add_row("Repository", "OK", repo)
    else:
        table.add_row("Repository", "OPTIONAL", "Not set -> pass --org/--repo or run `doctor configure`")

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(_check_http("https://github.com"))
    table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)

    common.console.print(table)


@app.command()
def configure() -> None:
    """Interactive setup of repository and Azure defaults (stored in the user config .env)."""

    settings = AppSettings()

    org = typer.prompt("GitHub organization", default=settings.github_org or "", show_default=True).strip()
    repo = typer.prompt("GitHub repository", default=settings.github_repo or "", show_default=True).strip()
    location = typer.prompt("Azure location", default=settings.azure_location, show_default=True).strip()
    resource_group = typer.prompt("Resource group", default=settings.resource_group, show_default=True).strip()
    app_name = typer.prompt("Application name", default=settings.app_name, show_default=True).strip()

    if not org or not repo:
        raise typer.BadParameter("organization and repository are required")

    env_path = write_user_env_vars(
        {
            "TODOLIST_OPS_GITHUB_ORG": org,
            "TODOLIST_OPS_GITHUB_REPO": repo,
            "TODOLIST_OPS_AZURE_LOCATION": location,
            "TODOLIST_OPS_RESOURCE_GROUP": resource_group,
            "TODOLIST_OPS_APP_NAME": app_name,
        }
    )

    common.console.print(f"[green]Saved config to:[/green] {env_path}")
