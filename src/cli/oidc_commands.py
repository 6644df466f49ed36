"""`oidc` commands: provision and verify GitHub Actions -> Azure OIDC."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from adapters.json_exporter import export_summary_json
from cli import common
from cli.ui_components import (
    build_ensure_table,
    build_settings_table,
    build_verification_panel,
    format_verification_item,
    print_banner,
    step,
    success,
    warning,
)
from core.config import AppSettings
from core.domain.models import EnsureResult, VerificationItem
from core.services.oidc_setup import OidcSetupRequest, OidcSetupService, RoleScope, SetupHooks
from core.services.verification import VerificationRequest, VerificationService

app = typer.Typer(no_args_is_help=True, help="Azure AD OIDC federation for GitHub Actions.")


def _print_ensured(result: EnsureResult) -> None:
    if result.created:
        success(common.console, f"Created {result.kind.label()} {result.key}")
    else:
        warning(common.console, f"{result.kind.label()} {result.key} already exists")


@app.command()
def setup(
    org: str | None = typer.Option(None, "--org", "-o", help="GitHub organization or user."),
    repo: str | None = typer.Option(None, "--repo", "-r", help="GitHub repository name."),
    subscription: str | None = typer.Option(
        None, "--subscription", "-s", help="Azure subscription ID (defaults to the current account)."
    ),
    app_name: str | None = typer.Option(None, "--app-name", "-a", help="Application display name."),
    location: str | None = typer.Option(None, "--location", "-l", help="Azure region."),
    resource_group: str | None = typer.Option(None, "--resource-group", "-g", help="Resource group."),
    create_resource_group: bool = typer.Option(
        False, "--create-resource-group", help="Create the resource group if it does not exist."
    ),
    role: str | None = typer.Option(None, "--role", help="Role granted to the service principal."),
    scope: RoleScope = typer.Option(RoleScope.SUBSCRIPTION, "--scope", help="Role assignment scope."),
    branch: str | None = typer.Option(None, "--branch", help="Branch trusted for pushes."),
    environment: list[str] | None = typer.Option(
        None, "--environment", "-e", help="GitHub environment (repeatable)."
    ),
    summary: Path | None = typer.Option(None, "--summary", help="Where to write the JSON summary."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Create (or reuse) the app, service principal, role and federated credentials."""

    settings = AppSettings()
    request = OidcSetupRequest(
        org=common.require_value(org or settings.github_org, "--org"),
        repo=common.require_value(repo or settings.github_repo, "--repo"),
        app_name=app_name or settings.app_name,
        subscription_id=subscription or settings.subscription_id,
        location=location or settings.azure_location,
        resource_group=resource_group or settings.resource_group,
        create_resource_group=create_resource_group,
        role=role or settings.role,
        scope=scope,
        branch=branch or settings.main_branch,
        environments=tuple(environment or settings.environments),
    )
    summary_path = summary or settings.summary_path

    directory = common.make_azure(settings)
    service = OidcSetupService(directory)

    print_banner(common.console, "🔐 Azure AD OIDC setup for GitHub Actions")
    with common.abort_on_error():
        directory.ensure_available()
        # Read-only until the operator confirms; `az account set` comes later.
        current = directory.account_show()
        target = request.subscription_id or current.subscription_id

        plan = Table(title="OIDC setup")
        plan.add_column("Setting", style="cyan", no_wrap=True)
        plan.add_column("Value", style="white")
        if target == current.subscription_id:
            plan.add_row("Subscription", f"{current.name} ({current.subscription_id})")
        else:
            plan.add_row("Subscription", f"{target} (switching from {current.subscription_id})")
        plan.add_row("Tenant", current.tenant_id)
        plan.add_row("Repository", f"{request.org}/{request.repo}")
        plan.add_row("Application", request.app_name)
        plan.add_row("Role", f"{request.role} @ {request.role_scope(target)}")
        plan.add_row("Credentials", ", ".join(c.name for c in request.credentials()))
        common.console.print(plan)

        if not yes and not typer.confirm("Continue with this configuration?", default=False):
            common.console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(code=1)

        account = service.resolve_account(request.subscription_id)
        result = service.run(
            request,
            account=account,
            hooks=SetupHooks(step=lambda m: step(common.console, m), ensured=_print_ensured),
        )
        path = export_summary_json(summary=result.summary, output_path=summary_path)

    common.console.print(build_ensure_table(result.results))
    common.console.print(f"Created {len(result.created())}, reused {len(result.reused())}.")
    common.console.print(build_settings_table("GitHub secrets", result.summary.secrets, secret=False))
    common.console.print(build_settings_table("GitHub variables", result.summary.variables, secret=False))
    success(common.console, f"Summary saved to {path}")
    common.console.print(
        "\n[bold]Next steps[/bold]\n"
        f"1. Add the secrets above at https://github.com/{request.org}/{request.repo}/settings/secrets/actions\n"
        f"   (or run `todolist-ops secrets set --from-summary {path}`)\n"
        "2. Add POSTGRES_ADMIN_PASSWORD as a secret\n"
        "3. Create the GitHub environments: " + ", ".join(request.environments) + "\n"
        "4. Run `todolist-ops oidc verify` to check the result"
    )


@app.command()
def verify(
    org: str | None = typer.Option(None, "--org", "-o", help="GitHub organization or user."),
    repo: str | None = typer.Option(None, "--repo", "-r", help="GitHub repository name."),
    app_name: str | None = typer.Option(None, "--app-name", "-a", help="Application display name."),
    role: str | None = typer.Option(None, "--role", help="Role expected on the service principal."),
    branch: str | None = typer.Option(None, "--branch", help="Branch trusted for pushes."),
    environment: list[str] | None = typer.Option(
        None, "--environment", "-e", help="GitHub environment (repeatable)."
    ),
) -> None:
    """Read-only check of the setup; exits 1 when anything is missing."""

    settings = AppSettings()
    request = VerificationRequest(
        org=common.require_value(org or settings.github_org, "--org"),
        repo=common.require_value(repo or settings.github_repo, "--repo"),
        app_name=app_name or settings.app_name,
        role=role or settings.role,
        branch=branch or settings.main_branch,
        environments=tuple(environment or settings.environments),
    )
    directory = common.make_azure(settings)

    def show(item: VerificationItem) -> None:
        common.console.print(format_verification_item(item))

    with common.abort_on_error():
        directory.ensure_available()
        report = VerificationService(directory).run(request, on_item=show)

    common.console.print(build_verification_panel(report))
    if not report.passed:
        common.console.print(
            "[red]Verification failed.[/red] Re-run `todolist-ops oidc setup` to create what is missing."
        )
        raise typer.Exit(code=1)

    success(common.console, "OIDC configuration verified")
    common.console.print(
        "Make sure these secrets exist at "
        f"https://github.com/{request.org}/{request.repo}/settings/secrets/actions:\n"
        f"  AZURE_CLIENT_ID       = {report.app_id}\n"
        f"  AZURE_TENANT_ID       = {report.tenant_id}\n"
        f"  AZURE_SUBSCRIPTION_ID = {report.subscription_id}\n"
        "  POSTGRES_ADMIN_PASSWORD"
    )
