"""OIDC setup: idempotent provisioning of the GitHub Actions identity.

Order (each step needs an identifier from the previous one):
    [resource group] -> application -> service principal -> role assignment
    -> federated credentials

Each resource is looked up by its natural key first and only created when
absent. The lookup and the creation are separate calls, so two concurrent
runs can still race; the tool is meant for one operator at a time. Any
failure propagates immediately and nothing is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from core.domain.credentials import default_federated_credentials
from core.domain.models import (
    AppRegistration,
    AzureAccount,
    EnsureResult,
    FederatedCredential,
    ResourceKind,
    SetupSummary,
)
from core.interfaces.directory import IdentityDirectory
from core.logging import get_logger

logger = get_logger(__name__)


class RoleScope(str, Enum):
    SUBSCRIPTION = "subscription"
    RESOURCE_GROUP = "resource-group"


@dataclass
class OidcSetupRequest:
    org: str
    repo: str
    app_name: str = "TodoList-GitHub-Actions-OIDC"
    subscription_id: str | None = None
    location: str = "eastus"
    resource_group: str = "rg-todolist-dev"
    create_resource_group: bool = False
    role: str = "Contributor"
    scope: RoleScope = RoleScope.SUBSCRIPTION
    branch: str = "main"
    environments: Sequence[str] = ("dev", "staging", "production")
    tag_environment: str = "dev"

    def credentials(self) -> list[FederatedCredential]:
        return default_federated_credentials(
            org=self.org,
            repo=self.repo,
            branch=self.branch,
            environments=self.environments,
        )

    def role_scope(self, subscription_id: str) -> str:
        base = f"/subscriptions/{subscription_id}"
        if self.scope is RoleScope.RESOURCE_GROUP:
            return f"{base}/resourceGroups/{self.resource_group}"
        return base


@dataclass
class SetupHooks:
    """Optional callbacks for UI layers."""

    step: Callable[[str], None] | None = None
    ensured: Callable[[EnsureResult], None] | None = None


@dataclass
class OidcSetupResult:
    account: AzureAccount
    application: AppRegistration
    results: list[EnsureResult] = field(default_factory=list)
    summary: SetupSummary | None = None

    def created(self) -> list[EnsureResult]:
        return [r for r in self.results if r.created]

    def reused(self) -> list[EnsureResult]:
        return [r for r in self.results if not r.created]


class ResourceEnsurer:
    """Check-then-create for each kind of Azure AD resource."""

    def __init__(self, directory: IdentityDirectory) -> None:
        self._directory = directory

    @staticmethod
    def _record(result: EnsureResult) -> EnsureResult:
        event = "resource.created" if result.created else "resource.reused"
        logger.info(event, kind=result.kind.value, key=result.key, identifier=result.identifier)
        return result

    def ensure_resource_group(self, name: str, location: str, tags: dict[str, str]) -> EnsureResult:
        if self._directory.resource_group_exists(name):
            return self._record(EnsureResult(kind=ResourceKind.RESOURCE_GROUP, key=name, identifier=name))
        group_id = self._directory.create_resource_group(name, location, tags)
        return self._record(
            EnsureResult(kind=ResourceKind.RESOURCE_GROUP, key=name, identifier=group_id, created=True)
        )

    def ensure_application(self, display_name: str) -> tuple[AppRegistration, EnsureResult]:
        app = self._directory.find_application(display_name)
        created = app is None
        if app is None:
            app = self._directory.create_application(display_name)
        result = EnsureResult(
            kind=ResourceKind.APPLICATION,
            key=display_name,
            identifier=app.app_id,
            created=created,
        )
        return app, self._record(result)

    def ensure_service_principal(self, app_id: str) -> EnsureResult:
        sp = self._directory.find_service_principal(app_id)
        created = sp is None
        if sp is None:
            sp = self._directory.create_service_principal(app_id)
        return self._record(
            EnsureResult(
                kind=ResourceKind.SERVICE_PRINCIPAL,
                key=app_id,
                identifier=sp.object_id,
                created=created,
            )
        )

    def ensure_role_assignment(self, assignee: str, role: str, scope: str) -> EnsureResult:
        key = f"{role}@{scope}"
        existing = self._directory.list_role_assignments(assignee, role=role, scope=scope)
        match = next((a for a in existing if a.role == role and a.scope == scope), None)
        if match is not None:
            return self._record(
                EnsureResult(
                    kind=ResourceKind.ROLE_ASSIGNMENT,
                    key=key,
                    identifier=match.assignment_id or scope,
                )
            )
        assignment = self._directory.create_role_assignment(assignee, role, scope)
        return self._record(
            EnsureResult(
                kind=ResourceKind.ROLE_ASSIGNMENT,
                key=key,
                identifier=assignment.assignment_id or scope,
                created=True,
            )
        )

    def ensure_federated_credentials(
        self,
        app_object_id: str,
        credentials: Sequence[FederatedCredential],
        on_result: Callable[[EnsureResult], None] | None = None,
    ) -> list[EnsureResult]:
        present = {c.name for c in self._directory.list_federated_credentials(app_object_id)}
        results: list[EnsureResult] = []
        for credential in credentials:
            created = credential.name not in present
            if created:
                self._directory.create_federated_credential(app_object_id, credential)
                present.add(credential.name)
            result = self._record(
                EnsureResult(
                    kind=ResourceKind.FEDERATED_CREDENTIAL,
                    key=credential.name,
                    identifier=credential.subject,
                    created=created,
                )
            )
            results.append(result)
            if on_result:
                on_result(result)
        return results


def build_summary(
    request: OidcSetupRequest,
    account: AzureAccount,
    application: AppRegistration,
) -> SetupSummary:
    return SetupSummary(
        app_name=request.app_name,
        app_id=application.app_id,
        tenant_id=account.tenant_id,
        subscription_id=account.subscription_id,
        github_org=request.org,
        github_repo=request.repo,
        secrets={
            "AZURE_CLIENT_ID": application.app_id,
            "AZURE_TENANT_ID": account.tenant_id,
            "AZURE_SUBSCRIPTION_ID": account.subscription_id,
        },
        variables={
            "AZURE_RESOURCE_GROUP": request.resource_group,
            "AZURE_LOCATION": request.location,
        },
    )


class OidcSetupService:
    def __init__(self, directory: IdentityDirectory) -> None:
        self._directory = directory
        self._ensurer = ResourceEnsurer(directory)

    def resolve_account(self, subscription_id: str | None = None) -> AzureAccount:
        """Current `az` account, switched to `subscription_id` when given."""

        account = self._directory.account_show()
        if subscription_id and subscription_id != account.subscription_id:
            self._directory.set_subscription(subscription_id)
            account = self._directory.account_show()
        return account

    def run(
        self,
        request: OidcSetupRequest,
        *,
        account: AzureAccount,
        hooks: SetupHooks | None = None,
    ) -> OidcSetupResult:
        hooks = hooks or SetupHooks()

        def step(message: str) -> None:
            if hooks.step:
                hooks.step(message)

        def ensured(result: EnsureResult) -> None:
            results.append(result)
            if hooks.ensured:
                hooks.ensured(result)

        results: list[EnsureResult] = []

        if request.create_resource_group:
            step(f"Ensuring resource group {request.resource_group}")
            ensured(
                self._ensurer.ensure_resource_group(
                    request.resource_group,
                    request.location,
                    {
                        "Environment": request.tag_environment,
                        "Application": "TodoList",
                        "ManagedBy": "GitHubActions",
                    },
                )
            )

        step(f"Ensuring application '{request.app_name}'")
        application, app_result = self._ensurer.ensure_application(request.app_name)
        ensured(app_result)

        step("Ensuring service principal")
        ensured(self._ensurer.ensure_service_principal(application.app_id))

        scope = request.role_scope(account.subscription_id)
        step(f"Ensuring {request.role} role on {scope}")
        ensured(self._ensurer.ensure_role_assignment(application.app_id, request.role, scope))

        step("Ensuring federated credentials")
        self._ensurer.ensure_federated_credentials(
            application.object_id,
            request.credentials(),
            on_result=ensured,
        )

        return OidcSetupResult(
            account=account,
            application=application,
            results=results,
            summary=build_summary(request, account, application),
        )
