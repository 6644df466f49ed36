"""Shared pytest fixtures and fakes for todolist-ops tests.

This module provides:
- `FakeRunner`: scripted `CommandRunner` that records every call
- `FakeDirectory`: in-memory Azure AD with creation counters
- Fixtures isolating settings from the developer's environment
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping, Sequence

import pytest
import structlog

# Ensure src packages are importable without an editable install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.domain.models import (  # noqa: E402
    AppRegistration,
    AzureAccount,
    CommandResult,
    CommandStatus,
    FederatedCredential,
    RoleAssignment,
    ServicePrincipal,
)
from core.logging import configure_logging  # noqa: E402


# =============================================================================
# Command runner fake
# =============================================================================


class FakeRunner:
    """Answers by longest matching argv prefix; unmatched commands succeed silently."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._script: list[tuple[tuple[str, ...], list[CommandResult]]] = []

    def when(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = 0,
        status: CommandStatus | None = None,
    ) -> "FakeRunner":
        """Queue a response; the last queued response for a prefix repeats."""

        if status is None:
            status = CommandStatus.SUCCEEDED if returncode == 0 else CommandStatus.FAILED
        result = CommandResult(
            argv=list(prefix) or ["?"],
            status=status,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )
        for key, queue in self._script:
            if key == prefix:
                queue.append(result)
                return self
        self._script.append((prefix, [result]))
        return self

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        args = [str(a) for a in argv]
        self.calls.append(
            {"argv": args, "timeout": timeout, "env": dict(env or {}), "input": input_text, "cwd": cwd}
        )
        best: list[CommandResult] | None = None
        best_len = -1
        for prefix, queue in self._script:
            if tuple(args[: len(prefix)]) == prefix and len(prefix) > best_len:
                best, best_len = queue, len(prefix)
        if best is None:
            return CommandResult(argv=args, status=CommandStatus.SUCCEEDED, returncode=0)
        template = best.pop(0) if len(best) > 1 else best[0]
        return template.model_copy(update={"argv": args})

    def argvs(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]

    def called(self, *prefix: str) -> list[dict]:
        return [c for c in self.calls if tuple(c["argv"][: len(prefix)]) == prefix]


# =============================================================================
# Identity directory fake
# =============================================================================


class FakeDirectory:
    """In-memory `IdentityDirectory`; `creations` counts every create call."""

    def __init__(self, *, subscription_id: str = "sub-0001", tenant_id: str = "tenant-0001") -> None:
        self.account = AzureAccount(subscription_id=subscription_id, name="Test Subscription", tenant_id=tenant_id)
        self.groups: dict[str, str] = {}
        self.apps: dict[str, AppRegistration] = {}
        self.service_principals: dict[str, ServicePrincipal] = {}
        self.assignments: list[tuple[str, RoleAssignment]] = []
        self.credentials: dict[str, list[FederatedCredential]] = {}
        self.creations: list[tuple[str, str]] = []
        self.selected_subscriptions: list[str] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:04d}"

    def ensure_available(self) -> None:
        return None

    def account_show(self) -> AzureAccount:
        return self.account

    def set_subscription(self, subscription_id: str) -> None:
        self.selected_subscriptions.append(subscription_id)
        self.account = self.account.model_copy(update={"subscription_id": subscription_id})

    def resource_group_exists(self, name: str) -> bool:
        return name in self.groups

    def create_resource_group(self, name: str, location: str, tags: dict[str, str]) -> str:
        self.creations.append(("resource_group", name))
        group_id = f"/subscriptions/{self.account.subscription_id}/resourceGroups/{name}"
        self.groups[name] = group_id
        return group_id

    def find_application(self, display_name: str) -> AppRegistration | None:
        return self.apps.get(display_name)

    def create_application(self, display_name: str) -> AppRegistration:
        self.creations.append(("application", display_name))
        app = AppRegistration(app_id=self._next_id("app"), object_id=self._next_id("obj"), display_name=display_name)
        self.apps[display_name] = app
        return app

    def find_service_principal(self, app_id: str) -> ServicePrincipal | None:
        return self.service_principals.get(app_id)

    def create_service_principal(self, app_id: str) -> ServicePrincipal:
        self.creations.append(("service_principal", app_id))
        sp = ServicePrincipal(object_id=self._next_id("sp"), app_id=app_id)
        self.service_principals[app_id] = sp
        return sp

    def list_role_assignments(
        self, assignee: str, *, role: str | None = None, scope: str | None = None
    ) -> list[RoleAssignment]:
        return [
            a
            for who, a in self.assignments
            if who == assignee and (role is None or a.role == role) and (scope is None or a.scope == scope)
        ]

    def create_role_assignment(self, assignee: str, role: str, scope: str) -> RoleAssignment:
        self.creations.append(("role_assignment", f"{role}@{scope}"))
        assignment = RoleAssignment(assignment_id=self._next_id("ra"), role=role, scope=scope)
        self.assignments.append((assignee, assignment))
        return assignment

    def list_federated_credentials(self, app_object_id: str) -> list[FederatedCredential]:
        return list(self.credentials.get(app_object_id, []))

    def create_federated_credential(
        self, app_object_id: str, credential: FederatedCredential
    ) -> FederatedCredential:
        self.creations.append(("federated_credential", credential.name))
        self.credentials.setdefault(app_object_id, []).append(credential)
        return credential


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep AppSettings away from the real user config and process env."""

    config_home = tmp_path / "config-home"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("APPDATA", str(config_home))
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("TODOLIST_OPS_"):
            monkeypatch.delenv(name, raising=False)
    return config_home


@pytest.fixture
def tools_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend docker/az/gh/dotnet are installed."""

    monkeypatch.setattr("adapters.process.shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.fixture(autouse=True)
def quiet_logging():
    """Fresh structlog config per test; writes to the current (captured) stderr."""

    configure_logging(level="WARNING")
    yield
    structlog.reset_defaults()
