"""Identity-directory contract (Azure AD through the `az` CLI)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import (
    AppRegistration,
    AzureAccount,
    FederatedCredential,
    RoleAssignment,
    ServicePrincipal,
)


@runtime_checkable
class IdentityDirectory(Protocol):
    """Lookups return None/empty when absent; creations return the new object."""

    def ensure_available(self) -> None:
        ...

    def account_show(self) -> AzureAccount:
        ...

    def set_subscription(self, subscription_id: str) -> None:
        ...

    def resource_group_exists(self, name: str) -> bool:
        ...

    def create_resource_group(self, name: str, location: str, tags: dict[str, str]) -> str:
        ...

    def find_application(self, display_name: str) -> AppRegistration | None:
        ...

    def create_application(self, display_name: str) -> AppRegistration:
        ...

    def find_service_principal(self, app_id: str) -> ServicePrincipal | None:
        ...

    def create_service_principal(self, app_id: str) -> ServicePrincipal:
        ...

    def list_role_assignments(
        self, assignee: str, *, role: str | None = None, scope: str | None = None
    ) -> list[RoleAssignment]:
        ...

    def create_role_assignment(self, assignee: str, role: str, scope: str) -> RoleAssignment:
        ...

    def list_federated_credentials(self, app_object_id: str) -> list[FederatedCredential]:
        ...

    def create_federated_credential(
        self, app_object_id: str, credential: FederatedCredential
    ) -> FederatedCredential:
        ...
