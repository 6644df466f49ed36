"""Timed strategy runner.

Runs an ordered list of `BuildStrategy` objects one at a time, stopping at the
first success. A timed-out strategy is never retried; it counts as a failure
and the next strategy is attempted. Strategies are never run concurrently:
they build the same image tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from core.domain.models import (
    BuildStrategy,
    CommandResult,
    CommandStatus,
    FallbackReport,
    StrategyAttempt,
)
from core.interfaces.runner import CommandRunner
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StrategyHooks:
    """Optional callbacks for UI layers (status lines, spinners)."""

    started: Callable[[int, int, BuildStrategy], None] | None = None
    finished: Callable[[BuildStrategy, StrategyAttempt], None] | None = None


class TimedStrategyRunner:
    def __init__(self, runner: CommandRunner, *, cwd: str | None = None) -> None:
        self._runner = runner
        self._cwd = cwd

    def run_one(self, strategy: BuildStrategy) -> CommandResult:
        """Run a single strategy under its own deadline and scoped env."""

        return self._runner.run(
            strategy.command,
            timeout=strategy.timeout_seconds,
            env=dict(strategy.env),
            cwd=self._cwd,
        )

    def run_fallback(
        self,
        strategies: Sequence[BuildStrategy],
        hooks: StrategyHooks | None = None,
    ) -> FallbackReport:
        """Try strategies in order until one succeeds.

        Returns a report holding exactly one attempt per strategy that was
        tried; the caller decides what to do when `report.succeeded` is False.
        """

        hooks = hooks or StrategyHooks()
        report = FallbackReport()
        total = len(strategies)

        for index, strategy in enumerate(strategies, start=1):
            if hooks.started:
                hooks.started(index, total, strategy)
            logger.info(
                "strategy.start",
                strategy=strategy.name,
                index=index,
                total=total,
                timeout=strategy.timeout_seconds,
            )

            result = self.run_one(strategy)
            attempt = StrategyAttempt(
                strategy=strategy.name,
                status=result.status,
                returncode=result.returncode,
                duration_seconds=result.duration_seconds,
                output_tail=result.output_tail(),
            )
            report.attempts.append(attempt)
            logger.info(
                "strategy.finished",
                strategy=strategy.name,
                status=result.status.value,
                returncode=result.returncode,
            )
            if hooks.finished:
                hooks.finished(strategy, attempt)

            if result.status is CommandStatus.SUCCEEDED:
                break

        return report
