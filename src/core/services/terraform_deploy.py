"""Terraform validation and deployment of the Azure infrastructure.

Flow (every terraform call runs inside the infra directory):
1. Prerequisites: az and terraform on PATH, an active `az` login. Docker is
   only reported when missing.
2. `terraform.tfvars` is seeded from `terraform.tfvars.example` when absent.
3. `terraform init`, `terraform validate`, `terraform fmt -check -diff`
   (files are formatted in place when the check fails).
4. `terraform plan -out=<plan file>`.
5. `terraform apply <plan file>`, left to the caller once the operator agrees.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from adapters.azure_cli import AzureCli
from adapters.process import require_tool
from core.domain.models import AzureAccount, CommandResult, CommandStatus
from core.errors import CommandError, ConfigurationError, PrerequisiteError
from core.interfaces.runner import CommandRunner
from core.logging import get_logger

logger = get_logger(__name__)

TERRAFORM_HINT = "Install it from https://developer.hashicorp.com/terraform/install"
TFVARS = "terraform.tfvars"
TFVARS_EXAMPLE = "terraform.tfvars.example"

# East US list prices for the default sizing.
ESTIMATED_MONTHLY_COSTS: tuple[tuple[str, str], ...] = (
    ("Container Apps (1-5 replicas)", "$15-30"),
    ("PostgreSQL Flexible Server (B1ms)", "$25-40"),
    ("Container Registry (Basic)", "$5"),
    ("Application Insights", "$2-10"),
    ("Key Vault", "$1"),
    ("Log Analytics", "$2-5"),
)
ESTIMATED_TOTAL = "$50-91"

_PLAN_SUMMARY = re.compile(r"^(Plan: .+|No changes\..*)$", re.MULTILINE)


@dataclass
class DeployRequest:
    infra_dir: Path = Path("infra")
    plan_file: str = "tfplan"
    backend_config: Path | None = None
    timeout_minutes: float = 30.0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60.0


@dataclass
class DeployHooks:
    """Optional callbacks for UI layers."""

    step: Callable[[str], None] | None = None
    warning: Callable[[str], None] | None = None


@dataclass
class PlanResult:
    account: AzureAccount
    plan_path: Path
    tfvars_created: bool = False
    formatted: bool = False
    summary: str = ""


def plan_summary(output: str) -> str:
    """The `Plan: N to add, ...` line of a plan, or "" when absent."""

    matches = _PLAN_SUMMARY.findall(output)
    return matches[-1].strip() if matches else ""


class TerraformDeployService:
    def __init__(self, runner: CommandRunner, azure: AzureCli) -> None:
        self._runner = runner
        self._azure = azure

    def _terraform(self, request: DeployRequest, *args: str) -> CommandResult:
        argv = ["terraform", *args]
        result = self._runner.run(argv, timeout=request.timeout_seconds, cwd=str(request.infra_dir))
        if result.status is CommandStatus.TIMED_OUT:
            raise CommandError(
                f"`terraform {args[0]}` timed out after {request.timeout_minutes:g} minutes", result
            )
        if not result.ok:
            raise CommandError(f"`terraform {args[0]}` failed", result)
        return result

    def preflight(self, request: DeployRequest, hooks: DeployHooks | None = None) -> AzureAccount:
        hooks = hooks or DeployHooks()
        self._azure.ensure_available()
        require_tool("terraform", hint=TERRAFORM_HINT)
        try:
            require_tool("docker")
        except PrerequisiteError:
            if hooks.warning:
                hooks.warning("Docker not found; it is needed later to build and push the image.")

        if not request.infra_dir.is_dir():
            raise ConfigurationError(f"Infrastructure directory not found: {request.infra_dir}")
        return self._azure.account_show()

    def seed_tfvars(self, request: DeployRequest) -> bool:
        """Copy the example variables file into place; True when it was created."""

        tfvars = request.infra_dir / TFVARS
        if tfvars.exists():
            return False
        example = request.infra_dir / TFVARS_EXAMPLE
        if not example.is_file():
            raise ConfigurationError(f"{TFVARS} is missing and there is no {TFVARS_EXAMPLE} in {request.infra_dir}")
        shutil.copyfile(example, tfvars)
        logger.info("terraform.tfvars_seeded", path=str(tfvars))
        return True

    def plan(self, request: DeployRequest, hooks: DeployHooks | None = None) -> PlanResult:
        hooks = hooks or DeployHooks()

        def step(message: str) -> None:
            if hooks.step:
                hooks.step(message)

        step("Checking prerequisites")
        account = self.preflight(request, hooks)

        tfvars_created = self.seed_tfvars(request)
        if tfvars_created and hooks.warning:
            hooks.warning(f"Created {TFVARS} from the example; review it before applying.")

        step("Running terraform init")
        init_args = ["init", "-input=false"]
        if request.backend_config is not None:
            init_args.append(f"-backend-config={request.backend_config.resolve()}")
        self._terraform(request, *init_args)

        step("Running terraform validate")
        self._terraform(request, "validate")

        step("Checking terraform formatting")
        formatted = False
        check = self._runner.run(
            ["terraform", "fmt", "-check", "-diff"],
            timeout=request.timeout_seconds,
            cwd=str(request.infra_dir),
        )
        if not check.ok:
            if hooks.warning:
                hooks.warning("Some files need formatting; running terraform fmt")
            self._terraform(request, "fmt")
            formatted = True

        step("Running terraform plan")
        planned = self._terraform(request, "plan", "-input=false", f"-out={request.plan_file}")
        summary = plan_summary(planned.stdout)
        logger.info("terraform.planned", plan=request.plan_file, summary=summary, formatted=formatted)

        return PlanResult(
            account=account,
            plan_path=request.infra_dir / request.plan_file,
            tfvars_created=tfvars_created,
            formatted=formatted,
            summary=summary,
        )

    def apply(self, request: DeployRequest) -> CommandResult:
        result = self._terraform(request, "apply", "-input=false", request.plan_file)
        logger.info("terraform.applied", plan=request.plan_file)
        return result
