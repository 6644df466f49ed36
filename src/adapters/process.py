"""Subprocess runner with a deadline.

Responsibilities:
- Spawn one child, wait for it with a timeout, capture its output.
- On timeout kill the child (its whole process group on POSIX) and reap it,
  so no orphan outlives `run()`.
- Environment overrides go into the child's `env=` only; `os.environ` is
  never touched, so nothing has to be restored afterwards.
"""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import time
from contextlib import suppress
from typing import Any, Mapping, Sequence

from core.domain.models import CommandResult, CommandStatus
from core.errors import PrerequisiteError
from core.logging import get_logger

logger = get_logger(__name__)

_POSIX = os.name == "posix"


def require_tool(name: str, *, hint: str | None = None) -> str:
    """Return the absolute path of `name` or raise `PrerequisiteError`."""

    path = shutil.which(name)
    if path is None:
        message = f"'{name}' was not found on PATH."
        if hint:
            message = f"{message} {hint}"
        raise PrerequisiteError(message)
    return path


def _spawn_kwargs() -> dict[str, Any]:
    if _POSIX:
        return {"start_new_session": True}
    return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}


def _signal_group(pgid: int, sig: signal.Signals) -> None:
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(pgid, sig)


def _terminate(proc: subprocess.Popen[str], grace_seconds: float) -> None:
    """Stop the child and everything it spawned; escalate to SIGKILL.

    The group is signalled even when the leader already exited: a descendant
    can still be running and holding the output pipes.
    """

    if _POSIX:
        _signal_group(proc.pid, signal.SIGTERM)
        with suppress(subprocess.TimeoutExpired):
            proc.wait(timeout=grace_seconds)
        # Stragglers that ignored SIGTERM, or outlived the leader.
        _signal_group(proc.pid, signal.SIGKILL)
    elif proc.poll() is None:
        proc.kill()
    proc.wait()


class SubprocessRunner:
    """`CommandRunner` backed by `subprocess.Popen`."""

    def __init__(self, *, kill_grace_seconds: float = 5.0) -> None:
        self._grace = kill_grace_seconds

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
        child_env = dict(os.environ)
        if env:
            child_env.update(env)

        logger.debug(
            "command.start",
            argv=args,
            timeout=timeout,
            env_overrides=sorted(env or {}),
        )
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=child_env,
                cwd=cwd,
                **_spawn_kwargs(),
            )
        except FileNotFoundError as exc:
            raise PrerequisiteError(f"Command not found: {args[0]}") from exc

        try:
            stdout, stderr = proc.communicate(input=input_text, timeout=timeout)
        except subprocess.TimeoutExpired:
            _terminate(proc, self._grace)
            stdout, stderr = self._drain(proc)
            duration = time.monotonic() - started
            logger.warning("command.timeout", argv=args, timeout=timeout, pid=proc.pid)
            return CommandResult(
                argv=args,
                status=CommandStatus.TIMED_OUT,
                returncode=None,
                stdout=stdout,
                stderr=stderr,
                duration_seconds=duration,
                pid=proc.pid,
            )
        except BaseException:
            _terminate(proc, self._grace)
            raise

        duration = time.monotonic() - started
        status = CommandStatus.SUCCEEDED if proc.returncode == 0 else CommandStatus.FAILED
        logger.debug(
            "command.finished",
            argv=args,
            returncode=proc.returncode,
            duration=round(duration, 3),
        )
        return CommandResult(
            argv=args,
            status=status,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=duration,
            pid=proc.pid,
        )

    def _drain(self, proc: subprocess.Popen[str]) -> tuple[str, str]:
        """Collect what the killed child wrote before it died."""

        try:
            stdout, stderr = proc.communicate(timeout=self._grace)
        except subprocess.TimeoutExpired:
            # A grandchild outside the group still holds the pipes (Windows).
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            proc.wait()
            return "", ""
        return stdout or "", stderr or ""


def default_runner() -> SubprocessRunner:
    return SubprocessRunner()
