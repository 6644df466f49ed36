"""Error taxonomy.

Services and adapters raise these; the CLI catches `OpsError` once per command,
prints a red status line and exits non-zero. "Already exists" is never an
error: the ensurer reports it as reuse.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.domain.models import CommandResult, FallbackReport


class OpsError(Exception):
    """Base class for every failure the tooling reports to the operator."""


class PrerequisiteError(OpsError):
    """A required tool is missing, the Docker daemon is down, or a CLI is not logged in."""


class ConfigurationError(OpsError):
    """Required input (org, repo, client id, ...) is missing or invalid."""


class CommandError(OpsError):
    """An external command failed where failure is fatal."""

    def __init__(self, message: str, result: "CommandResult") -> None:
        super().__init__(message)
        self.result = result

    def __str__(self) -> str:
        base = super().__str__()
        detail = (self.result.stderr or self.result.stdout).strip()
        if detail:
            return f"{base}: {detail.splitlines()[-1]}"
        return base


class BuildFailedError(OpsError):
    """Every build strategy failed or timed out."""

    def __init__(self, report: "FallbackReport") -> None:
        super().__init__(f"All {len(report.attempts)} build strategies failed")
        self.report = report


class SmokeTestError(OpsError):
    """The running container did not answer its health or API endpoint."""

    def __init__(self, message: str, logs: str = "") -> None:
        super().__init__(message)
        self.logs = logs
