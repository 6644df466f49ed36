"""Process-runner contract.

Why Protocol:
- A structural contract (duck typing) without rigid inheritance.
- The real subprocess runner and test fakes are interchangeable.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence, runtime_checkable

from core.domain.models import CommandResult


@runtime_checkable
class CommandRunner(Protocol):
    """Minimal contract for spawning one external command under a deadline.

    Design rules:
    - `env` holds overrides merged over the current environment for the child
      only; implementations must not mutate `os.environ`.
    - Timeouts are reported as `CommandStatus.TIMED_OUT`, never raised.
    """

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        ...
