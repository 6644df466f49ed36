"""Docker build debugging with strategy fallback.

Flow:
1. Preflight: docker CLI + daemon, Dockerfile present, optional `dotnet build`.
2. Optional clean build: remove the test container and image, prune the
   builder cache.
3. Skip when the tag already exists, unless forced.
4. Strategy fallback (standard -> legacy -> no-cache -> platform).

The build-engine switch (`DOCKER_BUILDKIT`) is an explicit per-strategy
environment override handed to the spawned process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from adapters.docker_cli import DockerCli, build_command
from adapters.process import require_tool
from core.domain.models import BuildStrategy, CommandResult, FallbackReport
from core.errors import BuildFailedError, CommandError, ConfigurationError
from core.interfaces.runner import CommandRunner
from core.logging import get_logger
from core.services.strategy_runner import StrategyHooks, TimedStrategyRunner

logger = get_logger(__name__)

TROUBLESHOOTING_STEPS: tuple[str, ...] = (
    "Check that Docker Desktop / the docker daemon is running: `docker info`.",
    "Free disk space and clear the build cache: `docker system prune -a`.",
    "Build the application outside Docker: `dotnet build --configuration Release`.",
    "Check network access to mcr.microsoft.com and nuget.org (proxy, VPN, DNS).",
    "Re-run with `--clean-build --verbose` to get plain progress output.",
    "Raise the per-strategy deadline with `--timeout-minutes`.",
    "Restart Docker and retry; on Windows make sure Linux containers are selected.",
)


@dataclass
class BuildOptions:
    tag: str
    context: Path = Path(".")
    dockerfile: Path | None = None
    clean_build: bool = False
    verbose: bool = False
    force: bool = False
    timeout_minutes: float = 10.0
    platform: str = "linux/amd64"
    verify_dotnet: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60.0

    def resolved_dockerfile(self) -> Path:
        return self.dockerfile if self.dockerfile is not None else self.context / "Dockerfile"


@dataclass
class BuildHooks:
    """Optional callbacks for UI layers."""

    step: Callable[[str], None] | None = None
    warning: Callable[[str], None] | None = None
    strategies: StrategyHooks = field(default_factory=StrategyHooks)


@dataclass
class BuildOutcome:
    report: FallbackReport | None
    skipped: bool = False
    image_summary: str = ""


def build_strategies(options: BuildOptions) -> list[BuildStrategy]:
    """Ordered fallback list for `options`."""

    dockerfile = options.dockerfile
    common = {
        "tag": options.tag,
        "context": options.context,
        "dockerfile": dockerfile,
    }
    timeout = options.timeout_seconds
    return [
        BuildStrategy(
            name="standard",
            description="BuildKit",
            command=build_command(
                **common,
                no_cache=options.clean_build,
                progress_plain=options.verbose,
            ),
            env={"DOCKER_BUILDKIT": "1"},
            timeout_seconds=timeout,
        ),
        BuildStrategy(
            name="legacy",
            description="Legacy builder (BuildKit disabled)",
            command=build_command(**common, no_cache=options.clean_build),
            env={"DOCKER_BUILDKIT": "0"},
            timeout_seconds=timeout,
        ),
        BuildStrategy(
            name="no-cache",
            description="BuildKit, no layer cache, fresh base images",
            command=build_command(
                **common,
                no_cache=True,
                pull=True,
                progress_plain=options.verbose,
            ),
            env={"DOCKER_BUILDKIT": "1"},
            timeout_seconds=timeout,
        ),
        BuildStrategy(
            name="platform",
            description=f"BuildKit targeting {options.platform}",
            command=build_command(
                **common,
                no_cache=options.clean_build,
                platform=options.platform,
                progress_plain=options.verbose,
            ),
            env={"DOCKER_BUILDKIT": "1"},
            timeout_seconds=timeout,
        ),
    ]


class DockerBuildService:
    def __init__(self, *, docker: DockerCli, runner: CommandRunner) -> None:
        self._docker = docker
        self._runner = runner

    def preflight(self, options: BuildOptions) -> None:
        self._docker.ensure_available()
        dockerfile = options.resolved_dockerfile()
        if not dockerfile.is_file():
            raise ConfigurationError(f"Dockerfile not found: {dockerfile}")

    def verify_dotnet(self, options: BuildOptions) -> CommandResult:
        """Compile the application outside Docker to isolate code errors."""

        require_tool("dotnet", hint="Install the .NET SDK: https://dotnet.microsoft.com/download")
        result = self._runner.run(
            ["dotnet", "build", "--configuration", "Release"],
            timeout=options.timeout_seconds,
            cwd=str(options.context),
        )
        if not result.ok:
            raise CommandError("`dotnet build` failed; fix the application before building the image", result)
        return result

    def clean(self, options: BuildOptions, *, container_name: str) -> None:
        """Best-effort removal of leftovers from previous runs."""

        self._docker.stop_container(container_name)
        self._docker.remove_container(container_name)
        self._docker.remove_image(options.tag)
        self._docker.prune_builder()

    def build(
        self,
        options: BuildOptions,
        *,
        container_name: str,
        hooks: BuildHooks | None = None,
    ) -> BuildOutcome:
        hooks = hooks or BuildHooks()

        def step(message: str) -> None:
            if hooks.step:
                hooks.step(message)

        step("Checking Docker prerequisites")
        self.preflight(options)

        if options.verify_dotnet:
            step("Compiling the application with dotnet")
            self.verify_dotnet(options)

        if options.clean_build:
            step("Cleaning previous containers, image and build cache")
            self.clean(options, container_name=container_name)
        elif not options.force and self._docker.image_exists(options.tag):
            message = f"Image {options.tag} already exists; use --force to rebuild it."
            logger.info("build.skipped", tag=options.tag)
            if hooks.warning:
                hooks.warning(message)
            return BuildOutcome(
                report=None,
                skipped=True,
                image_summary=self._docker.image_summary(options.tag),
            )

        strategies = build_strategies(options)
        step(f"Building {options.tag} ({len(strategies)} strategies available)")
        runner = TimedStrategyRunner(self._runner)
        report = runner.run_fallback(strategies, hooks.strategies)
        if not report.succeeded:
            raise BuildFailedError(report)

        logger.info("build.succeeded", tag=options.tag, strategy=report.winner)
        return BuildOutcome(report=report, image_summary=self._docker.image_summary(options.tag))
