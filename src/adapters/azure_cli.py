"""Azure AD / ARM operations through the `az` CLI.

Implements `core.interfaces.directory.IdentityDirectory` plus the storage
calls used by the Terraform backend bootstrap. Every call requests
`-o json` and validates the payload into domain models.
"""

from __future__ import annotations

import json
from typing import Any

from adapters.process import require_tool
from core.domain.models import (
    AppRegistration,
    AzureAccount,
    FederatedCredential,
    RoleAssignment,
    ServicePrincipal,
)
from core.errors import CommandError, PrerequisiteError
from core.interfaces.runner import CommandRunner
from core.logging import get_logger

logger = get_logger(__name__)

INSTALL_HINT = "Install the Azure CLI: https://learn.microsoft.com/cli/azure/install-azure-cli"


class AzureCli:
    def __init__(self, runner: CommandRunner, *, timeout: float = 120.0) -> None:
        self._runner = runner
        self._timeout = timeout

    def _json(self, args: list[str], *, what: str) -> Any:
        result = self._runner.run(["az", *args, "-o", "json"], timeout=self._timeout)
        if not result.ok:
            raise CommandError(f"az failed to {what}", result)
        text = result.stdout.strip()
        if not text:
            return None
        return json.loads(text)

    # Account

    def ensure_available(self) -> None:
        require_tool("az", hint=INSTALL_HINT)

    def version(self) -> str | None:
        try:
            payload = self._json(["version"], what="report its version")
        except CommandError:
            return None
        if isinstance(payload, dict):
            return payload.get("azure-cli")
        return None

    def account_show(self) -> AzureAccount:
        result = self._runner.run(["az", "account", "show", "-o", "json"], timeout=self._timeout)
        if not result.ok:
            raise PrerequisiteError("Not logged into Azure. Run 'az login' first.")
        return AzureAccount.model_validate(json.loads(result.stdout))

    def set_subscription(self, subscription_id: str) -> None:
        result = self._runner.run(
            ["az", "account", "set", "--subscription", subscription_id],
            timeout=self._timeout,
        )
        if not result.ok:
            raise CommandError(f"Could not select subscription {subscription_id}", result)

    # Resource groups

    def resource_group_exists(self, name: str) -> bool:
        payload = self._json(["group", "exists", "--name", name], what=f"check resource group {name}")
        return payload is True

    def create_resource_group(self, name: str, location: str, tags: dict[str, str]) -> str:
        args = ["group", "create", "--name", name, "--location", location]
        if tags:
            args.append("--tags")
            args.extend(f"{key}={value}" for key, value in tags.items())
        payload = self._json(args, what=f"create resource group {name}")
        return str(payload["id"])

    # Application registrations

    def find_application(self, display_name: str) -> AppRegistration | None:
        payload = self._json(
            ["ad", "app", "list", "--display-name", display_name, "--query", "[0]"],
            what=f"look up application {display_name}",
        )
        if not payload:
            return None
        return AppRegistration.model_validate(payload)

    def create_application(self, display_name: str) -> AppRegistration:
        payload = self._json(
            ["ad", "app", "create", "--display-name", display_name],
            what=f"create application {display_name}",
        )
        return AppRegistration.model_validate(payload)

    # Service principals

    def find_service_principal(self, app_id: str) -> ServicePrincipal | None:
        payload = self._json(
            ["ad", "sp", "list", "--filter", f"appId eq '{app_id}'", "--query", "[0]"],
            what=f"look up service principal for {app_id}",
        )
        if not payload:
            return None
        return ServicePrincipal.model_validate(payload)

    def create_service_principal(self, app_id: str) -> ServicePrincipal:
        payload = self._json(
            ["ad", "sp", "create", "--id", app_id],
            what=f"create service principal for {app_id}",
        )
        return ServicePrincipal.model_validate(payload)

    # Role assignments

    def list_role_assignments(
        self, assignee: str, *, role: str | None = None, scope: str | None = None
    ) -> list[RoleAssignment]:
        args = ["role", "assignment", "list", "--assignee", assignee]
        if role:
            args.extend(["--role", role])
        if scope:
            args.extend(["--scope", scope])
        else:
            args.append("--all")
        payload = self._json(args, what=f"list role assignments for {assignee}") or []
        return [RoleAssignment.model_validate(item) for item in payload]

    def create_role_assignment(self, assignee: str, role: str, scope: str) -> RoleAssignment:
        payload = self._json(
            ["role", "assignment", "create", "--assignee", assignee, "--role", role, "--scope", scope],
            what=f"assign {role} to {assignee}",
        )
        return RoleAssignment.model_validate(payload)

    # Federated credentials

    def list_federated_credentials(self, app_object_id: str) -> list[FederatedCredential]:
        payload = self._json(
            ["ad", "app", "federated-credential", "list", "--id", app_object_id],
            what="list federated credentials",
        ) or []
        return [FederatedCredential.model_validate(item) for item in payload]

    def create_federated_credential(
        self, app_object_id: str, credential: FederatedCredential
    ) -> FederatedCredential:
        payload = self._json(
            [
                "ad",
                "app",
                "federated-credential",
                "create",
                "--id",
                app_object_id,
                "--parameters",
                json.dumps(credential.to_parameters()),
            ],
            what=f"create federated credential {credential.name}",
        )
        if isinstance(payload, dict):
            return FederatedCredential.model_validate(payload)
        return credential

    # Storage (Terraform backend)

    def create_storage_account(self, name: str, resource_group: str, location: str) -> str:
        payload = self._json(
            [
                "storage",
                "account",
                "create",
                "--resource-group",
                resource_group,
                "--name",
                name,
                "--location",
                location,
                "--sku",
                "Standard_LRS",
                "--encryption-services",
                "blob",
                "--https-only",
                "true",
                "--kind",
                "StorageV2",
                "--access-tier",
                "Hot",
            ],
            what=f"create storage account {name}",
        )
        return str(payload["id"])

    def storage_account_key(self, name: str, resource_group: str) -> str:
        payload = self._json(
            [
                "storage",
                "account",
                "keys",
                "list",
                "--resource-group",
                resource_group,
                "--account-name",
                name,
                "--query",
                "[0].value",
            ],
            what=f"read the key of storage account {name}",
        )
        return str(payload)

    def create_storage_container(self, name: str, account_name: str, account_key: str) -> None:
        self._json(
            [
                "storage",
                "container",
                "create",
                "--name",
                name,
                "--account-name",
                account_name,
                "--account-key",
                account_key,
            ],
            what=f"create blob container {name}",
        )
