"""Push the deployment secrets and variables into a GitHub repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from adapters.github_cli import GitHubCli
from core.domain.models import SetupSummary
from core.errors import ConfigurationError
from core.logging import get_logger

logger = get_logger(__name__)

REQUIRED_SECRETS = ("AZURE_CLIENT_ID", "AZURE_TENANT_ID", "AZURE_SUBSCRIPTION_ID")
POSTGRES_SECRET = "POSTGRES_ADMIN_PASSWORD"


@dataclass
class RepoConfigRequest:
    org: str
    repo: str
    secrets: dict[str, str] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.repo}"

    def validate(self) -> None:
        if not self.org or not self.repo:
            raise ConfigurationError("GitHub organization and repository are required.")
        missing = [name for name in REQUIRED_SECRETS if not self.secrets.get(name)]
        if missing:
            raise ConfigurationError(f"Missing values for: {', '.join(missing)}")


@dataclass
class RepoConfigResult:
    secrets_set: list[str] = field(default_factory=list)
    variables_set: list[str] = field(default_factory=list)
    listed_secrets: list[str] = field(default_factory=list)
    listed_variables: dict[str, str] = field(default_factory=dict)


def build_request(
    *,
    org: str,
    repo: str,
    summary: SetupSummary | None = None,
    client_id: str | None = None,
    tenant_id: str | None = None,
    subscription_id: str | None = None,
    postgres_password: str | None = None,
    resource_group: str | None = None,
    location: str | None = None,
) -> RepoConfigRequest:
    """Merge summary-file values with explicit flags (flags win)."""

    secrets: dict[str, str] = dict(summary.secrets) if summary else {}
    variables: dict[str, str] = dict(summary.variables) if summary else {}

    for name, value in (
        ("AZURE_CLIENT_ID", client_id),
        ("AZURE_TENANT_ID", tenant_id),
        ("AZURE_SUBSCRIPTION_ID", subscription_id),
        (POSTGRES_SECRET, postgres_password),
    ):
        if value:
            secrets[name] = value
    for name, value in (
        ("AZURE_RESOURCE_GROUP", resource_group),
        ("AZURE_LOCATION", location),
    ):
        if value:
            variables[name] = value

    request = RepoConfigRequest(org=org, repo=repo, secrets=secrets, variables=variables)
    request.validate()
    return request


class RepoConfigService:
    def __init__(self, github: GitHubCli) -> None:
        self._github = github

    def run(
        self,
        request: RepoConfigRequest,
        on_set: Callable[[str, str], None] | None = None,
    ) -> RepoConfigResult:
        """Set every secret then every variable; stop at the first failure."""

        request.validate()
        self._github.ensure_available()
        result = RepoConfigResult()
        repo = request.full_name

        for name, value in request.secrets.items():
            self._github.set_secret(repo, name, value)
            result.secrets_set.append(name)
            logger.info("repo.secret_set", repo=repo, name=name)
            if on_set:
                on_set("secret", name)

        for name, value in request.variables.items():
            self._github.set_variable(repo, name, value)
            result.variables_set.append(name)
            logger.info("repo.variable_set", repo=repo, name=name)
            if on_set:
                on_set("variable", name)

        result.listed_secrets = self._github.list_secrets(repo)
        result.listed_variables = self._github.list_variables(repo)
        return result
