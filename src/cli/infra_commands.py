"""`infra` commands: Terraform remote-state backend and deployment."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from cli import common
from cli.ui_components import print_banner, step, success, warning
from core.config import AppSettings
from core.services.backend_setup import BackendRequest, BackendSetupService
from core.services.terraform_deploy import (
    ESTIMATED_MONTHLY_COSTS,
    ESTIMATED_TOTAL,
    DeployHooks,
    DeployRequest,
    TerraformDeployService,
)

app = typer.Typer(no_args_is_help=True, help="Infrastructure bootstrap helpers.")


@app.command()
def backend(
    resource_group: str = typer.Option("rg-terraform-state", "--resource-group", "-g", help="State resource group."),
    location: str | None = typer.Option(None, "--location", "-l", help="Azure region."),
    container: str = typer.Option("tfstate", "--container", help="Blob container name."),
    account_name: str | None = typer.Option(
        None, "--account-name", help="Storage account name (random suffix when omitted)."
    ),
    output: Path = typer.Option(Path("backend-config.txt"), "--output", help="Backend config file."),
) -> None:
    """Create the storage account and container that hold Terraform state."""

    settings = AppSettings()
    request = BackendRequest(
        resource_group=resource_group,
        location=location or settings.azure_location,
        container=container,
        account_name=account_name,
        output_path=output,
    )
    with common.abort_on_error():
        result = BackendSetupService(common.make_azure(settings)).run(
            request, step=lambda m: step(common.console, m)
        )

    success(common.console, f"Backend config written to {result.config_path}")
    common.console.print(f"Storage account: [cyan]{result.account_name}[/cyan]")
    common.console.print(f"Run: terraform init -backend-config={result.config_path}")


@app.command()
def deploy(
    infra_dir: Path = typer.Option(Path("infra"), "--infra-dir", "-d", help="Directory with the Terraform files."),
    plan_file: str = typer.Option("tfplan", "--plan-file", help="Plan file written by terraform plan."),
    backend_config: Path | None = typer.Option(
        None, "--backend-config", help="Backend config file from `infra backend`."
    ),
    timeout_minutes: float = typer.Option(30.0, "--timeout-minutes", min=0.1, help="Deadline per terraform call."),
    plan_only: bool = typer.Option(False, "--plan-only", help="Stop after the plan."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply without asking."),
) -> None:
    """Validate, plan and (after confirmation) apply the Terraform configuration."""

    settings = AppSettings()
    request = DeployRequest(
        infra_dir=infra_dir,
        plan_file=plan_file,
        backend_config=backend_config,
        timeout_minutes=timeout_minutes,
    )
    service = TerraformDeployService(common.make_runner(), common.make_azure(settings))
    hooks = DeployHooks(step=lambda m: step(common.console, m), warning=lambda m: warning(common.console, m))

    print_banner(common.console, "🏗️ TodoList Azure infrastructure deployment")
    with common.abort_on_error():
        plan = service.plan(request, hooks)

    common.console.print(f"Subscription: [cyan]{plan.account.name}[/cyan] ({plan.account.subscription_id})")
    if plan.formatted:
        success(common.console, "Terraform files formatted")
    success(common.console, f"Plan saved to {plan.plan_path}")
    if plan.summary:
        common.console.print(f"[bold]{plan.summary}[/bold]")

    costs = Table(title="Estimated monthly cost (East US)")
    costs.add_column("Resource", style="cyan")
    costs.add_column("USD / month", style="white", justify="right")
    for resource, cost in ESTIMATED_MONTHLY_COSTS:
        costs.add_row(resource, cost)
    costs.add_row("[bold]Total[/bold]", f"[bold]{ESTIMATED_TOTAL}[/bold]")
    common.console.print(costs)

    later = f'Deploy later with: terraform apply "{plan_file}" (in {infra_dir})'
    if plan_only:
        common.console.print(later)
        return

    warning(common.console, "Applying creates billable Azure resources.")
    if not yes and not typer.confirm("Do you want to deploy now?", default=False):
        common.console.print(f"[dim]Deployment skipped.[/dim] {later}")
        return

    with common.abort_on_error():
        service.apply(request)

    success(common.console, "Infrastructure deployed")
    common.console.print(
        "\n[bold]Next steps[/bold]\n"
        "1. Build and push the container image (`todolist-ops docker build`)\n"
        "2. Update the Container App with the new image\n"
        "3. Test the application endpoints"
    )
