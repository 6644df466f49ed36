"""`docker` commands: build with strategy fallback, smoke test."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel
from rich.text import Text

from cli import common
from cli.ui_components import (
    build_attempts_table,
    build_troubleshooting_panel,
    error,
    print_banner,
    step,
    success,
    warning,
)
from core.config import AppSettings
from core.domain.models import BuildStrategy, CommandStatus, StrategyAttempt
from core.errors import BuildFailedError, SmokeTestError
from core.services.docker_build import (
    TROUBLESHOOTING_STEPS,
    BuildHooks,
    BuildOptions,
    DockerBuildService,
)
from core.services.smoke_test import EndpointCheck, SmokeHooks, SmokeOptions, SmokeTestService
from core.services.strategy_runner import StrategyHooks

app = typer.Typer(no_args_is_help=True, help="Debug Docker image builds and smoke-test the image.")


def _strategy_started(index: int, total: int, strategy: BuildStrategy) -> None:
    overrides = " ".join(f"{k}={v}" for k, v in strategy.env.items())
    step(
        common.console,
        f"[{index}/{total}] Strategy [bold]{strategy.name}[/bold] ({strategy.description}) "
        f"[dim]{overrides} timeout={strategy.timeout_seconds / 60:g}m[/dim]",
    )


def _strategy_finished(strategy: BuildStrategy, attempt: StrategyAttempt) -> None:
    if attempt.status is CommandStatus.SUCCEEDED:
        success(common.console, f"{strategy.name} succeeded in {attempt.duration_seconds:.1f}s")
    elif attempt.status is CommandStatus.TIMED_OUT:
        warning(common.console, f"{strategy.name} timed out; trying the next strategy")
    else:
        warning(common.console, f"{strategy.name} failed (exit {attempt.returncode}); trying the next strategy")
        if attempt.output_tail:
            common.console.print(Text(attempt.output_tail, style="dim"))


def run_smoke(
    settings: AppSettings,
    *,
    image: str,
    container_name: str,
    port: int,
    startup_timeout: float,
) -> None:
    service = SmokeTestService(docker=common.make_docker(settings), settings=settings)
    options = SmokeOptions(
        image=image,
        container_name=container_name,
        host_port=port,
        startup_timeout_seconds=startup_timeout,
    )

    def passed(check: EndpointCheck) -> None:
        success(common.console, f"GET {check.path} -> HTTP {check.status_code}")

    with common.abort_on_error():
        try:
            service.run(options, SmokeHooks(step=lambda m: step(common.console, m), passed=passed))
        except SmokeTestError as exc:
            error(common.console, str(exc))
            if exc.logs:
                common.console.print(Panel(Text(exc.logs), title="Container logs", border_style="red"))
            raise typer.Exit(code=1) from exc
    success(common.console, "Smoke test passed")


@app.command()
def build(
    tag: str | None = typer.Option(None, "--tag", "-t", help="Image tag to build."),
    context: Path = typer.Option(Path("."), "--context", "-c", help="Build context directory."),
    dockerfile: Path | None = typer.Option(None, "--dockerfile", "-f", help="Dockerfile path."),
    clean_build: bool = typer.Option(
        False, "--clean-build", help="Remove image/container, prune the builder cache, build without cache."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Plain BuildKit progress output."),
    force: bool = typer.Option(False, "--force", help="Rebuild even if the image tag already exists."),
    timeout_minutes: float | None = typer.Option(
        None, "--timeout-minutes", min=0.1, help="Deadline per build strategy."
    ),
    platform: str | None = typer.Option(None, "--platform", help="Platform for the platform strategy."),
    verify_dotnet: bool = typer.Option(
        False, "--verify-dotnet", help="Run `dotnet build` before Docker to isolate compile errors."
    ),
    smoke: bool = typer.Option(False, "--smoke/--no-smoke", help="Run the smoke test after a build."),
) -> None:
    """Build the image, falling back through strategies until one succeeds."""

    settings = AppSettings()
    options = BuildOptions(
        tag=tag or settings.image_tag,
        context=context,
        dockerfile=dockerfile,
        clean_build=clean_build,
        verbose=verbose,
        force=force,
        timeout_minutes=timeout_minutes or settings.build_timeout_minutes,
        platform=platform or settings.build_platform,
        verify_dotnet=verify_dotnet,
    )
    service = DockerBuildService(docker=common.make_docker(settings), runner=common.make_runner())
    hooks = BuildHooks(
        step=lambda m: step(common.console, m),
        warning=lambda m: warning(common.console, m),
        strategies=StrategyHooks(started=_strategy_started, finished=_strategy_finished),
    )

    print_banner(common.console, f"🐳 Docker build for {options.tag}")
    with common.abort_on_error():
        try:
            outcome = service.build(options, container_name=settings.container_name, hooks=hooks)
        except BuildFailedError as exc:
            common.console.print(build_attempts_table(exc.report))
            error(common.console, str(exc))
            common.console.print(build_troubleshooting_panel(TROUBLESHOOTING_STEPS))
            raise typer.Exit(code=1) from exc

    if outcome.report is not None:
        common.console.print(build_attempts_table(outcome.report))
        success(common.console, f"Image built with the '{outcome.report.winner}' strategy")
    if outcome.image_summary:
        common.console.print(f"[dim]{outcome.image_summary}[/dim]")

    if smoke:
        run_smoke(
            settings,
            image=options.tag,
            container_name=settings.container_name,
            port=settings.app_port,
            startup_timeout=settings.startup_timeout_seconds,
        )


@app.command(name="smoke")
def smoke_command(
    tag: str | None = typer.Option(None, "--tag", "-t", help="Image tag to run."),
    container_name: str | None = typer.Option(None, "--container-name", help="Test container name."),
    port: int | None = typer.Option(None, "--port", min=1, max=65535, help="Host port."),
    startup_timeout: float | None = typer.Option(
        None, "--startup-timeout", min=1, help="Seconds to wait for /health."
    ),
) -> None:
    """Run the image and check /health and /mcp/todos."""

    settings = AppSettings()
    with common.abort_on_error():
        common.make_docker(settings).ensure_available()
    run_smoke(
        settings,
        image=tag or settings.image_tag,
        container_name=container_name or settings.container_name,
        port=port or settings.app_port,
        startup_timeout=startup_timeout or settings.startup_timeout_seconds,
    )
    common.console.print("🚀 You can now push to GitHub to trigger the deployment workflow.")
