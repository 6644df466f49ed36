"""Thin wrapper over the `docker` CLI.

Every call goes through a `CommandRunner`, so it inherits the deadline and
scoped-environment behaviour of the runner and can be faked in tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from adapters.process import require_tool
from core.domain.models import CommandResult
from core.errors import CommandError, PrerequisiteError
from core.interfaces.runner import CommandRunner
from core.logging import get_logger

logger = get_logger(__name__)

INSTALL_HINT = (
    "Install Docker: https://docs.docker.com/engine/install/ "
    "(Docker Desktop on Windows/macOS)."
)


def build_command(
    *,
    tag: str,
    context: Path,
    dockerfile: Path | None = None,
    no_cache: bool = False,
    pull: bool = False,
    platform: str | None = None,
    progress_plain: bool = False,
) -> list[str]:
    """Argument vector for `docker build` with the given flags."""

    argv = ["docker", "build"]
    if progress_plain:
        argv.append("--progress=plain")
    if no_cache:
        argv.append("--no-cache")
    if pull:
        argv.append("--pull")
    if platform:
        argv.extend(["--platform", platform])
    if dockerfile is not None:
        argv.extend(["-f", str(dockerfile)])
    argv.extend(["-t", tag, str(context)])
    return argv


class DockerCli:
    def __init__(self, runner: CommandRunner, *, timeout: float = 120.0) -> None:
        self._runner = runner
        self._timeout = timeout

    def _run(
        self,
        args: list[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        return self._runner.run(["docker", *args], timeout=timeout or self._timeout, env=env)

    def ensure_available(self) -> None:
        """Fail fast when the CLI is missing or the daemon is unreachable."""

        require_tool("docker", hint=INSTALL_HINT)
        result = self._run(["info", "--format", "{{.ServerVersion}}"], timeout=30)
        if not result.ok:
            raise PrerequisiteError(
                "Docker daemon is not reachable. Start Docker Desktop or the docker service "
                "and retry."
            )
        logger.debug("docker.available", server_version=result.stdout.strip())

    def version(self) -> str | None:
        result = self._run(["--version"], timeout=15)
        return result.stdout.strip() if result.ok else None

    def image_exists(self, tag: str) -> bool:
        result = self._run(["images", "-q", tag], timeout=30)
        return result.ok and bool(result.stdout.strip())

    def image_summary(self, tag: str) -> str:
        result = self._run(
            ["image", "ls", tag, "--format", "{{.Repository}}:{{.Tag}}  {{.ID}}  {{.Size}}"],
            timeout=30,
        )
        return result.stdout.strip() if result.ok else ""

    def remove_image(self, tag: str) -> bool:
        return self._run(["rmi", "-f", tag]).ok

    def prune_builder(self) -> bool:
        return self._run(["builder", "prune", "-f"], timeout=300).ok

    def stop_container(self, name: str) -> bool:
        return self._run(["stop", name], timeout=60).ok

    def remove_container(self, name: str) -> bool:
        return self._run(["rm", "-f", name], timeout=60).ok

    def run_container(
        self,
        *,
        image: str,
        name: str,
        ports: Mapping[int, int],
        env: Mapping[str, str],
    ) -> str:
        """Start a detached container and return its ID."""

        args = ["run", "-d", "--name", name]
        for host_port, container_port in ports.items():
            args.extend(["-p", f"{host_port}:{container_port}"])
        for key, value in env.items():
            args.extend(["-e", f"{key}={value}"])
        args.append(image)

        result = self._run(args)
        if not result.ok:
            raise CommandError(f"Could not start container '{name}' from {image}", result)
        return result.stdout.strip()

    def logs(self, name: str, *, tail: int | None = None) -> str:
        args = ["logs"]
        if tail is not None:
            args.extend(["--tail", str(tail)])
        args.append(name)
        result = self._run(args, timeout=60)
        return "\n".join(part for part in (result.stdout, result.stderr) if part).strip()
