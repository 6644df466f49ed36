"""Shared plumbing for the command modules.

- One `Console` for status output (stdout); logs go to stderr.
- Factories for the CLI adapters, so tests can monkeypatch them with fakes.
- `abort_on_error` turns any `OpsError` into a red line and exit code 1.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer
from rich.console import Console

from adapters.azure_cli import AzureCli
from adapters.docker_cli import DockerCli
from adapters.github_cli import GitHubCli
from adapters.process import default_runner
from cli.ui_components import error
from core.config import AppSettings
from core.errors import OpsError
from core.interfaces.runner import CommandRunner

console = Console()


def make_runner() -> CommandRunner:
    return default_runner()


def make_docker(settings: AppSettings) -> DockerCli:
    return DockerCli(make_runner(), timeout=settings.cli_timeout_seconds)


def make_azure(settings: AppSettings) -> AzureCli:
    return AzureCli(make_runner(), timeout=settings.cli_timeout_seconds)


def make_github(settings: AppSettings) -> GitHubCli:
    return GitHubCli(make_runner(), timeout=settings.cli_timeout_seconds)


def require_value(value: str | None, flag: str) -> str:
    if not value:
        raise typer.BadParameter(f"{flag} is required (or set it in the config / environment)")
    return value


@contextmanager
def abort_on_error(out: Console | None = None) -> Iterator[None]:
    try:
        yield
    except OpsError as exc:
        error(out or console, str(exc))
        raise typer.Exit(code=1) from exc
