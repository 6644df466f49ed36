"""`secrets` command: push OIDC secrets and variables with `gh`."""

from __future__ import annotations

from pathlib import Path

import typer

from adapters.json_exporter import load_summary_json
from cli import common
from cli.ui_components import build_settings_table, success
from core.config import AppSettings
from core.services.repo_config import RepoConfigService, build_request

app = typer.Typer(no_args_is_help=True, help="GitHub repository secrets and variables.")


@app.command(name="set")
def set_secrets(
    org: str | None = typer.Option(None, "--org", "-o", help="GitHub organization or user."),
    repo: str | None = typer.Option(None, "--repo", "-r", help="GitHub repository name."),
    from_summary: Path | None = typer.Option(
        None, "--from-summary", help="Read values from an `oidc setup` JSON summary."
    ),
    client_id: str | None = typer.Option(None, "--client-id", help="AZURE_CLIENT_ID."),
    tenant_id: str | None = typer.Option(None, "--tenant-id", help="AZURE_TENANT_ID."),
    subscription_id: str | None = typer.Option(None, "--subscription-id", help="AZURE_SUBSCRIPTION_ID."),
    postgres_password: str | None = typer.Option(
        None, "--postgres-password", envvar="POSTGRES_ADMIN_PASSWORD", help="POSTGRES_ADMIN_PASSWORD."
    ),
    prompt_postgres_password: bool = typer.Option(
        False, "--prompt-postgres-password", help="Ask for the database password interactively."
    ),
    resource_group: str | None = typer.Option(None, "--resource-group", "-g", help="AZURE_RESOURCE_GROUP."),
    location: str | None = typer.Option(None, "--location", "-l", help="AZURE_LOCATION."),
) -> None:
    """Set the Azure secrets (and optional variables) on the repository."""

    settings = AppSettings()

    with common.abort_on_error():
        summary = load_summary_json(from_summary) if from_summary else None
        if prompt_postgres_password and not postgres_password:
            postgres_password = typer.prompt(
                "PostgreSQL admin password", hide_input=True, confirmation_prompt=True
            )
        request = build_request(
            org=common.require_value(
                org or (summary.github_org if summary else None) or settings.github_org, "--org"
            ),
            repo=common.require_value(
                repo or (summary.github_repo if summary else None) or settings.github_repo, "--repo"
            ),
            summary=summary,
            client_id=client_id,
            tenant_id=tenant_id,
            subscription_id=subscription_id,
            postgres_password=postgres_password,
            resource_group=resource_group,
            location=location,
        )

        common.console.print(f"[bold blue]🔐 Configuring {request.full_name}[/bold blue]")
        result = RepoConfigService(common.make_github(settings)).run(
            request,
            on_set=lambda kind, name: success(common.console, f"Set {kind} {name}"),
        )

    common.console.print(
        build_settings_table("Repository secrets", {name: "set" for name in result.listed_secrets}, secret=False)
    )
    if result.listed_variables:
        common.console.print(build_settings_table("Repository variables", result.listed_variables, secret=False))
    success(common.console, "GitHub repository configured")
