"""Read-only verification of the OIDC setup.

Re-queries the application, its service principal, its role assignments and
its federated credentials, then diffs them against the expected credential
catalog. Nothing is created or modified here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from core.domain.credentials import default_federated_credentials
from core.domain.models import (
    CheckStatus,
    FederatedCredential,
    ResourceKind,
    VerificationItem,
    VerificationReport,
)
from core.interfaces.directory import IdentityDirectory
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class VerificationRequest:
    org: str
    repo: str
    app_name: str = "TodoList-GitHub-Actions-OIDC"
    role: str = "Contributor"
    branch: str = "main"
    environments: Sequence[str] = ("dev", "staging", "production")

    def expected_credentials(self) -> list[FederatedCredential]:
        return default_federated_credentials(
            org=self.org,
            repo=self.repo,
            branch=self.branch,
            environments=self.environments,
        )


class VerificationService:
    def __init__(self, directory: IdentityDirectory) -> None:
        self._directory = directory

    def run(
        self,
        request: VerificationRequest,
        on_item: Callable[[VerificationItem], None] | None = None,
    ) -> VerificationReport:
        account = self._directory.account_show()
        report = VerificationReport(
            app_name=request.app_name,
            tenant_id=account.tenant_id,
            subscription_id=account.subscription_id,
        )

        def add(kind: ResourceKind, name: str, status: CheckStatus, detail: str = "") -> None:
            item = VerificationItem(kind=kind, name=name, status=status, detail=detail)
            report.items.append(item)
            logger.info("verify.item", kind=kind.value, name=name, status=status.value)
            if on_item:
                on_item(item)

        app = self._directory.find_application(request.app_name)
        if app is None:
            add(ResourceKind.APPLICATION, request.app_name, CheckStatus.FAIL, "not found")
            return report
        report.app_id = app.app_id
        add(ResourceKind.APPLICATION, request.app_name, CheckStatus.PASS, app.app_id)

        sp = self._directory.find_service_principal(app.app_id)
        if sp is None:
            add(ResourceKind.SERVICE_PRINCIPAL, app.app_id, CheckStatus.FAIL, "not found")
            return report
        add(ResourceKind.SERVICE_PRINCIPAL, app.app_id, CheckStatus.PASS, sp.object_id)

        assignments = self._directory.list_role_assignments(app.app_id, role=request.role)
        if assignments:
            scopes = ", ".join(sorted({a.scope for a in assignments}))
            add(ResourceKind.ROLE_ASSIGNMENT, request.role, CheckStatus.PASS, scopes)
        else:
            add(ResourceKind.ROLE_ASSIGNMENT, request.role, CheckStatus.WARN, "no assignments found")

        observed = {c.name: c for c in self._directory.list_federated_credentials(app.object_id)}
        for expected in request.expected_credentials():
            found = observed.get(expected.name)
            if found is None:
                add(ResourceKind.FEDERATED_CREDENTIAL, expected.name, CheckStatus.FAIL, "not found")
            elif found.subject != expected.subject:
                add(
                    ResourceKind.FEDERATED_CREDENTIAL,
                    expected.name,
                    CheckStatus.FAIL,
                    f"subject {found.subject} (expected {expected.subject})",
                )
            else:
                add(ResourceKind.FEDERATED_CREDENTIAL, expected.name, CheckStatus.PASS, found.subject)

        return report
