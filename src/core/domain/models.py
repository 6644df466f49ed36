"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without tying the
  Core to any CLI wrapper.
- The `az` CLI answers in camelCase JSON; aliases let the adapters validate
  its payloads directly while the rest of the code uses snake_case.

Note:
- These models describe *what* the data is, not *how* it is obtained.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

GITHUB_OIDC_ISSUER = "https://token.actions.githubusercontent.com"
AZURE_TOKEN_EXCHANGE_AUDIENCE = "api://AzureADTokenExchange"


class CommandStatus(str, Enum):
    """Tri-state outcome of a command run under a deadline."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class CommandResult(BaseModel):
    """What happened when one external command was spawned."""

    argv: list[str] = Field(
        ...,
        min_length=1,
        description="Argument vector that was executed.",
    )
    status: CommandStatus = Field(
        ...,
        description="Succeeded, failed (non-zero exit) or timed out.",
    )
    returncode: int | None = Field(
        default=None,
        description="Exit code; None when the deadline killed the child.",
    )
    stdout: str = Field(default="", description="Captured standard output.")
    stderr: str = Field(default="", description="Captured standard error.")
    duration_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Wall-clock time between spawn and reap.",
    )
    pid: int | None = Field(
        default=None,
        description="PID of the (already reaped) child, for diagnostics.",
    )

    @property
    def ok(self) -> bool:
        return self.status is CommandStatus.SUCCEEDED

    def output_tail(self, lines: int = 20) -> str:
        text = "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)
        return "\n".join(text.splitlines()[-lines:])


class BuildStrategy(BaseModel):
    """One named way of building the image: flags plus environment overrides.

    `env` is applied to the spawned child only; it never leaks into the
    calling process or into the next strategy.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=64)
    description: str = Field(default="")
    command: list[str] = Field(
        ...,
        min_length=1,
        description="Argument vector, e.g. ['docker', 'build', '-t', 'app:test', '.'].",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment overrides scoped to this strategy's child process.",
    )
    timeout_seconds: float = Field(
        ...,
        gt=0,
        description="Deadline after which the child is killed.",
    )


class StrategyAttempt(BaseModel):
    strategy: str = Field(..., min_length=1)
    status: CommandStatus
    returncode: int | None = None
    duration_seconds: float = Field(default=0.0, ge=0.0)
    output_tail: str = Field(default="", description="Last lines of the build output.")


class FallbackReport(BaseModel):
    """Ordered record of the strategies attempted by one fallback run."""

    attempts: list[StrategyAttempt] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return any(a.status is CommandStatus.SUCCEEDED for a in self.attempts)

    @property
    def winner(self) -> str | None:
        for attempt in self.attempts:
            if attempt.status is CommandStatus.SUCCEEDED:
                return attempt.strategy
        return None


class FederatedCredential(BaseModel):
    """Trust between a GitHub Actions subject and the Azure AD application."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=120)
    issuer: str = Field(default=GITHUB_OIDC_ISSUER)
    subject: str = Field(
        ...,
        min_length=1,
        description="e.g. repo:<org>/<repo>:ref:refs/heads/main",
    )
    description: str = Field(default="")
    audiences: list[str] = Field(default_factory=lambda: [AZURE_TOKEN_EXCHANGE_AUDIENCE])

    def to_parameters(self) -> dict[str, Any]:
        """Payload accepted by `az ad app federated-credential create --parameters`."""

        return self.model_dump(mode="json")


class AzureAccount(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    subscription_id: str = Field(..., alias="id")
    name: str = Field(default="")
    tenant_id: str = Field(..., alias="tenantId")


class AppRegistration(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    app_id: str = Field(..., alias="appId", description="Application (client) ID.")
    object_id: str = Field(..., alias="id", description="Directory object ID.")
    display_name: str | None = Field(default=None, alias="displayName")


class ServicePrincipal(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    object_id: str = Field(..., alias="id")
    app_id: str | None = Field(default=None, alias="appId")


class RoleAssignment(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    assignment_id: str | None = Field(default=None, alias="id")
    role: str = Field(..., alias="roleDefinitionName")
    scope: str = Field(...)
    principal_id: str | None = Field(default=None, alias="principalId")


class ResourceKind(str, Enum):
    RESOURCE_GROUP = "resource_group"
    APPLICATION = "application"
    SERVICE_PRINCIPAL = "service_principal"
    ROLE_ASSIGNMENT = "role_assignment"
    FEDERATED_CREDENTIAL = "federated_credential"

    def label(self) -> str:
        return self.value.replace("_", " ")


class EnsureResult(BaseModel):
    """Outcome of one check-then-create step."""

    kind: ResourceKind
    key: str = Field(..., description="Natural key the lookup used.")
    identifier: str = Field(..., description="Identifier reused or captured on creation.")
    created: bool = Field(default=False)

    @property
    def action(self) -> str:
        return "created" if self.created else "already exists"


class SetupSummary(BaseModel):
    """JSON artifact written by `oidc setup` (overwritten on rerun)."""

    model_config = ConfigDict(populate_by_name=True)

    app_name: str = Field(..., alias="appName")
    app_id: str = Field(..., alias="appId")
    tenant_id: str = Field(..., alias="tenantId")
    subscription_id: str = Field(..., alias="subscriptionId")
    github_org: str = Field(..., alias="gitHubOrg")
    github_repo: str = Field(..., alias="gitHubRepo")
    created_at: str = Field(
        default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        alias="createdAt",
    )
    secrets: dict[str, str] = Field(default_factory=dict)
    variables: dict[str, str] = Field(default_factory=dict)


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class VerificationItem(BaseModel):
    kind: ResourceKind
    name: str
    status: CheckStatus
    detail: str = ""


class VerificationReport(BaseModel):
    """Read-only diff of observed Azure AD state against the expected setup."""

    app_name: str
    app_id: str | None = None
    tenant_id: str | None = None
    subscription_id: str | None = None
    items: list[VerificationItem] = Field(default_factory=list)

    @property
    def failures(self) -> list[VerificationItem]:
        return [i for i in self.items if i.status is CheckStatus.FAIL]

    @property
    def passed(self) -> bool:
        return not self.failures

    def credentials_present(self) -> int:
        return sum(
            1
            for i in self.items
            if i.kind is ResourceKind.FEDERATED_CREDENTIAL and i.status is CheckStatus.PASS
        )

    def credentials_expected(self) -> int:
        return sum(1 for i in self.items if i.kind is ResourceKind.FEDERATED_CREDENTIAL)
