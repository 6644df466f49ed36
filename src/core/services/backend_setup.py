"""Terraform remote-state bootstrap on Azure Storage.

Creates (or reuses) a resource group, creates a StorageV2 account with a
random numeric suffix and a `tfstate` blob container, then writes the
`-backend-config` file Terraform expects.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from adapters.azure_cli import AzureCli
from core.logging import get_logger

logger = get_logger(__name__)

STATE_KEY = "todolist.terraform.tfstate"


def storage_account_name(prefix: str = "satodolisttfstate", rng: random.Random | None = None) -> str:
    """Globally unique-ish account name: prefix + 4 digits (lowercase, <= 24 chars)."""

    rng = rng or random.Random()
    return f"{prefix}{rng.randint(1000, 9999)}"[:24]


@dataclass
class BackendRequest:
    resource_group: str = "rg-terraform-state"
    location: str = "eastus"
    container: str = "tfstate"
    account_name: str | None = None
    output_path: Path = Path("backend-config.txt")


@dataclass
class BackendResult:
    resource_group: str
    account_name: str
    container: str
    config_path: Path


def render_backend_config(result: BackendResult) -> str:
    return (
        "# Terraform Backend Configuration\n"
        "# Use with: terraform init -backend-config=backend-config.txt\n"
        "\n"
        f'resource_group_name  = "{result.resource_group}"\n'
        f'storage_account_name = "{result.account_name}"\n'
        f'container_name       = "{result.container}"\n'
        f'key                  = "{STATE_KEY}"\n'
    )


class BackendSetupService:
    def __init__(self, azure: AzureCli) -> None:
        self._azure = azure

    def run(self, request: BackendRequest, step: Callable[[str], None] | None = None) -> BackendResult:
        def report(message: str) -> None:
            if step:
                step(message)

        self._azure.ensure_available()
        self._azure.account_show()

        if self._azure.resource_group_exists(request.resource_group):
            report(f"Resource group {request.resource_group} already exists")
        else:
            report(f"Creating resource group {request.resource_group}")
            self._azure.create_resource_group(request.resource_group, request.location, {})

        account_name = request.account_name or storage_account_name()
        report(f"Creating storage account {account_name}")
        self._azure.create_storage_account(account_name, request.resource_group, request.location)

        key = self._azure.storage_account_key(account_name, request.resource_group)
        report(f"Creating blob container {request.container}")
        self._azure.create_storage_container(request.container, account_name, key)

        result = BackendResult(
            resource_group=request.resource_group,
            account_name=account_name,
            container=request.container,
            config_path=request.output_path,
        )
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        request.output_path.write_text(render_backend_config(result), encoding="utf-8")
        logger.info("backend.configured", account=account_name, path=str(request.output_path))
        return result
