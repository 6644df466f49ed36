"""Root Typer application (`todolist-ops`)."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import typer

from cli.docker_commands import app as docker_app
from cli.doctor import app as doctor_app
from cli.infra_commands import app as infra_app
from cli.oidc_commands import app as oidc_app
from cli.secrets_commands import app as secrets_app
from core.config import AppSettings
from core.logging import bind_context, clear_context, configure_logging

app = typer.Typer(
    name="todolist-ops",
    help="Build, deploy-identity and repository tooling for the TodoList app.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("todolist-ops")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"todolist-ops {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR (logs go to stderr)."
    ),
    log_json: bool | None = typer.Option(None, "--log-json/--log-console", help="JSON log lines."),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Ops tooling: Docker build debugging, Azure OIDC setup, GitHub secrets."""

    settings = AppSettings()
    try:
        configure_logging(
            level=log_level or settings.log_level,
            json_format=settings.log_json if log_json is None else log_json,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    clear_context()
    bind_context(command=ctx.invoked_subcommand)


app.add_typer(docker_app, name="docker", help="Docker build debugging and smoke tests.")
app.add_typer(oidc_app, name="oidc", help="Azure AD OIDC setup and verification.")
app.add_typer(secrets_app, name="secrets", help="GitHub repository secrets and variables.")
app.add_typer(infra_app, name="infra", help="Terraform backend bootstrap.")
app.add_typer(doctor_app, name="doctor", help="Environment diagnostics.")


def run() -> None:
    app()
