"""Repository secrets and variables through the `gh` CLI."""

from __future__ import annotations

import json

from adapters.process import require_tool
from core.errors import CommandError, PrerequisiteError
from core.interfaces.runner import CommandRunner

INSTALL_HINT = "Install the GitHub CLI: https://cli.github.com/"


class GitHubCli:
    def __init__(self, runner: CommandRunner, *, timeout: float = 60.0) -> None:
        self._runner = runner
        self._timeout = timeout

    def ensure_available(self) -> None:
        require_tool("gh", hint=INSTALL_HINT)
        result = self._runner.run(["gh", "auth", "status"], timeout=self._timeout)
        if not result.ok:
            raise PrerequisiteError("Not logged into the GitHub CLI. Run 'gh auth login' first.")

    def version(self) -> str | None:
        result = self._runner.run(["gh", "--version"], timeout=self._timeout)
        if not result.ok or not result.stdout.strip():
            return None
        return result.stdout.strip().splitlines()[0]

    def set_secret(self, repo: str, name: str, value: str) -> None:
        # The value travels on stdin so it never shows up in the process list.
        result = self._runner.run(
            ["gh", "secret", "set", name, "--repo", repo],
            timeout=self._timeout,
            input_text=value,
        )
        if not result.ok:
            raise CommandError(f"Could not set secret {name} on {repo}", result)

    def set_variable(self, repo: str, name: str, value: str) -> None:
        result = self._runner.run(
            ["gh", "variable", "set", name, "--repo", repo, "--body", value],
            timeout=self._timeout,
        )
        if not result.ok:
            raise CommandError(f"Could not set variable {name} on {repo}", result)

    def list_secrets(self, repo: str) -> list[str]:
        result = self._runner.run(
            ["gh", "secret", "list", "--repo", repo, "--json", "name"],
            timeout=self._timeout,
        )
        if not result.ok:
            raise CommandError(f"Could not list secrets of {repo}", result)
        return sorted(item["name"] for item in json.loads(result.stdout or "[]"))

    def list_variables(self, repo: str) -> dict[str, str]:
        result = self._runner.run(
            ["gh", "variable", "list", "--repo", repo, "--json", "name,value"],
            timeout=self._timeout,
        )
        if not result.ok:
            raise CommandError(f"Could not list variables of {repo}", result)
        return {item["name"]: item.get("value", "") for item in json.loads(result.stdout or "[]")}
