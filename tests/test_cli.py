"""Tests for the todolist-ops CLI via typer.testing.CliRunner.

Adapters are swapped for fakes through the `cli.common` factories, so no
docker/az/gh binary is needed.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from adapters.azure_cli import AzureCli
from adapters.docker_cli import DockerCli
from adapters.github_cli import GitHubCli
from adapters.json_exporter import export_summary_json
from cli.main import app
from core.domain.models import SetupSummary

runner = CliRunner()


@pytest.fixture
def directory(fake_directory, monkeypatch):
    monkeypatch.setattr("cli.common.make_azure", lambda settings: fake_directory)
    return fake_directory


@pytest.fixture
def docker_runner(fake_runner, tools_on_path, monkeypatch):
    monkeypatch.setattr("cli.common.make_runner", lambda: fake_runner)
    monkeypatch.setattr("cli.common.make_docker", lambda settings: DockerCli(fake_runner))
    return fake_runner


# ─── Root ────────────────────────────────────────────────────────────────


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "todolist-ops" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "oidc" in result.output
        assert "docker" in result.output

    def test_bad_log_level(self, directory):
        result = runner.invoke(app, ["--log-level", "LOUD", "oidc", "verify", "-o", "acme", "-r", "todo"])
        assert result.exit_code == 2


# ─── oidc ────────────────────────────────────────────────────────────────


class TestOidcSetup:
    def test_setup_then_rerun_is_idempotent(self, directory, tmp_path):
        summary = tmp_path / "summary.json"
        args = ["oidc", "setup", "-o", "acme", "-r", "todo", "--yes", "--summary", str(summary)]

        first = runner.invoke(app, args)
        assert first.exit_code == 0, first.output
        assert "Created 8, reused 0" in first.output
        creations = len(directory.creations)

        second = runner.invoke(app, args)
        assert second.exit_code == 0, second.output
        assert "Created 0, reused 8" in second.output
        assert len(directory.creations) == creations

        data = json.loads(summary.read_text(encoding="utf-8"))
        assert data["gitHubOrg"] == "acme"
        assert data["secrets"]["AZURE_TENANT_ID"] == "tenant-0001"

    def test_declined_confirmation_changes_nothing(self, directory, tmp_path):
        result = runner.invoke(
            app, ["oidc", "setup", "-o", "acme", "-r", "todo", "--summary", str(tmp_path / "s.json")], input="n\n"
        )
        assert result.exit_code == 1
        assert directory.creations == []
        assert not (tmp_path / "s.json").exists()

    def test_subscription_switch_waits_for_confirmation(self, directory, tmp_path):
        args = ["oidc", "setup", "-o", "acme", "-r", "todo", "-s", "sub-9999", "--summary", str(tmp_path / "s.json")]

        declined = runner.invoke(app, args, input="n\n")
        assert declined.exit_code == 1
        assert "sub-9999" in declined.output
        assert directory.selected_subscriptions == []

        accepted = runner.invoke(app, [*args, "--yes"])
        assert accepted.exit_code == 0, accepted.output
        assert directory.selected_subscriptions == ["sub-9999"]

    def test_org_is_required(self, directory):
        result = runner.invoke(app, ["oidc", "setup", "-r", "todo", "--yes"])
        assert result.exit_code == 2

    def test_org_from_environment(self, directory, monkeypatch, tmp_path):
        monkeypatch.setenv("TODOLIST_OPS_GITHUB_ORG", "acme")
        monkeypatch.setenv("TODOLIST_OPS_GITHUB_REPO", "todo")
        result = runner.invoke(app, ["oidc", "setup", "--yes", "--summary", str(tmp_path / "s.json")])
        assert result.exit_code == 0, result.output
        assert ("federated_credential", "production-environment") in directory.creations


class TestOidcVerify:
    def test_missing_setup_fails(self, directory):
        result = runner.invoke(app, ["oidc", "verify", "-o", "acme", "-r", "todo"])
        assert result.exit_code == 1
        assert "Verification failed" in result.output

    def test_after_setup_passes(self, directory, tmp_path):
        runner.invoke(app, ["oidc", "setup", "-o", "acme", "-r", "todo", "--yes", "--summary", str(tmp_path / "s.json")])
        result = runner.invoke(app, ["oidc", "verify", "-o", "acme", "-r", "todo"])
        assert result.exit_code == 0, result.output
        assert "5/5" in result.output


# ─── docker ──────────────────────────────────────────────────────────────


class TestDockerBuild:
    @pytest.fixture(autouse=True)
    def dockerfile(self, tmp_path):
        (tmp_path / "Dockerfile").write_text("FROM scratch\n", encoding="utf-8")

    def test_all_strategies_fail(self, docker_runner):
        docker_runner.when("docker", "build", returncode=1, stderr="failed to solve")

        result = runner.invoke(app, ["docker", "build", "--force"])

        assert result.exit_code == 1
        assert "Troubleshooting" in result.output
        assert "Build strategies" in result.output
        assert "All 4 build strategies failed" in result.output
        assert "docker system prune" in result.output
        assert len(docker_runner.called("docker", "build")) == 4

    def test_fallback_success(self, docker_runner):
        docker_runner.when("docker", "build", returncode=1)
        docker_runner.when("docker", "build", returncode=0)

        result = runner.invoke(app, ["docker", "build", "--force", "--timeout-minutes", "1"])

        assert result.exit_code == 0, result.output
        assert "legacy" in result.output
        assert {c["timeout"] for c in docker_runner.called("docker", "build")} == {60.0}

    def test_existing_image_skipped(self, docker_runner):
        docker_runner.when("docker", "images", "-q", stdout="abc\n")
        result = runner.invoke(app, ["docker", "build"])
        assert result.exit_code == 0
        assert "--force" in result.output
        assert docker_runner.called("docker", "build") == []

    def test_daemon_down(self, docker_runner):
        docker_runner.when("docker", "info", returncode=1)
        result = runner.invoke(app, ["docker", "build"])
        assert result.exit_code == 1
        assert "daemon" in result.output


class TestDockerSmoke:
    @pytest.fixture
    def app_responses(self, monkeypatch):
        statuses: dict[str, int] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.get(request.url.path, 404))

        monkeypatch.setattr(
            "core.services.smoke_test.build_async_client",
            lambda settings, base_url: httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler)),
        )
        return statuses

    def test_unhealthy_container_shows_its_logs(self, docker_runner, app_responses):
        app_responses["/health"] = 503
        docker_runner.when("docker", "logs", stdout="Unhandled exception: db down")

        result = runner.invoke(app, ["docker", "smoke", "--startup-timeout", "1"])

        assert result.exit_code == 1
        assert "did not become healthy" in result.output
        assert "Container logs" in result.output
        assert "db down" in result.output
        assert docker_runner.called("docker", "rm")

    def test_failing_api_after_healthy_start(self, docker_runner, app_responses):
        app_responses["/health"] = 200
        app_responses["/mcp/todos"] = 500
        docker_runner.when("docker", "logs", stderr="System.InvalidOperationException: no such table")

        result = runner.invoke(app, ["docker", "smoke"])

        assert result.exit_code == 1
        assert "/mcp/todos failed (HTTP 500)" in result.output
        assert "no such table" in result.output

    def test_healthy_container_passes(self, docker_runner, app_responses):
        app_responses["/health"] = 200
        app_responses["/mcp/todos"] = 200

        result = runner.invoke(app, ["docker", "smoke"])

        assert result.exit_code == 0, result.output
        assert "Smoke test passed" in result.output


# ─── secrets ─────────────────────────────────────────────────────────────


class TestSecrets:
    @pytest.fixture
    def gh_runner(self, fake_runner, tools_on_path, monkeypatch):
        monkeypatch.setattr("cli.common.make_github", lambda settings: GitHubCli(fake_runner))
        return fake_runner

    def _summary_file(self, tmp_path: Path) -> Path:
        summary = SetupSummary(
            app_name="TodoList-GitHub-Actions-OIDC",
            app_id="client-1",
            tenant_id="tenant-1",
            subscription_id="sub-1",
            github_org="acme",
            github_repo="todo",
            secrets={"AZURE_CLIENT_ID": "client-1", "AZURE_TENANT_ID": "tenant-1", "AZURE_SUBSCRIPTION_ID": "sub-1"},
        )
        return export_summary_json(summary=summary, output_path=tmp_path / "summary.json")

    def test_from_summary(self, gh_runner, tmp_path):
        result = runner.invoke(app, ["secrets", "set", "--from-summary", str(self._summary_file(tmp_path))])
        assert result.exit_code == 0, result.output
        secret_calls = gh_runner.called("gh", "secret", "set")
        assert len(secret_calls) == 3
        assert secret_calls[0]["argv"][-1] == "acme/todo"

    def test_prompted_password_goes_to_stdin(self, gh_runner, tmp_path):
        result = runner.invoke(
            app,
            ["secrets", "set", "--from-summary", str(self._summary_file(tmp_path)), "--prompt-postgres-password"],
            input="pw-123\npw-123\n",
        )
        assert result.exit_code == 0, result.output
        postgres = [c for c in gh_runner.called("gh", "secret", "set") if "POSTGRES_ADMIN_PASSWORD" in c["argv"]]
        assert postgres[0]["input"] == "pw-123"

    def test_missing_values(self, gh_runner):
        result = runner.invoke(app, ["secrets", "set", "-o", "acme", "-r", "todo", "--client-id", "c"])
        assert result.exit_code == 1
        assert "AZURE_TENANT_ID" in result.output
        assert gh_runner.calls == []


# ─── infra ──────────────────────────────────────────────────────────────


class TestInfraDeploy:
    @pytest.fixture
    def infra(self, tmp_path):
        path = tmp_path / "infra"
        path.mkdir()
        (path / "terraform.tfvars.example").write_text('location = "eastus"\n', encoding="utf-8")
        return path

    @pytest.fixture
    def tf_runner(self, fake_runner, tools_on_path, monkeypatch):
        monkeypatch.setattr("cli.common.make_runner", lambda: fake_runner)
        monkeypatch.setattr("cli.common.make_azure", lambda settings: AzureCli(fake_runner))
        fake_runner.when("az", "account", "show", stdout=json.dumps({"id": "sub-1", "name": "Dev", "tenantId": "t-1"}))
        fake_runner.when("terraform", "plan", stdout="Plan: 9 to add, 0 to change, 0 to destroy.\n")
        return fake_runner

    def test_declined_apply_keeps_the_plan(self, tf_runner, infra):
        result = runner.invoke(app, ["infra", "deploy", "--infra-dir", str(infra)], input="n\n")

        assert result.exit_code == 0, result.output
        assert "Plan: 9 to add" in result.output
        assert "Deployment skipped" in result.output
        assert tf_runner.called("terraform", "apply") == []
        assert (infra / "terraform.tfvars").exists()

    def test_yes_applies_the_plan(self, tf_runner, infra):
        result = runner.invoke(app, ["infra", "deploy", "--infra-dir", str(infra), "--yes"])

        assert result.exit_code == 0, result.output
        assert tf_runner.called("terraform", "apply")[0]["argv"][-1] == "tfplan"
        assert "Infrastructure deployed" in result.output

    def test_plan_only_never_prompts(self, tf_runner, infra):
        result = runner.invoke(app, ["infra", "deploy", "--infra-dir", str(infra), "--plan-only"])
        assert result.exit_code == 0, result.output
        assert tf_runner.called("terraform", "apply") == []

    def test_validation_error_exits_1(self, tf_runner, infra):
        tf_runner.when("terraform", "validate", returncode=1, stderr="Error: Missing required argument")

        result = runner.invoke(app, ["infra", "deploy", "--infra-dir", str(infra), "--yes"])

        assert result.exit_code == 1
        assert "Missing required argument" in result.output
        assert tf_runner.called("terraform", "plan") == []


# ─── doctor ──────────────────────────────────────────────────────────────


class TestDoctor:
    def test_run_with_nothing_installed(self, monkeypatch):
        async def offline(url: str) -> tuple[bool, str]:
            return False, "offline"

        monkeypatch.setattr("cli.doctor.shutil.which", lambda name: None)
        monkeypatch.setattr("cli.doctor._check_http", offline)

        result = runner.invoke(app, ["doctor", "run"])

        assert result.exit_code == 0
        assert "MISSING" in result.output

    def test_configure_writes_user_env(self, isolated_settings):
        result = runner.invoke(
            app, ["doctor", "configure"], input="acme\ntodo\nwesteurope\nrg-todo\nTodoList-OIDC\n"
        )
        assert result.exit_code == 0, result.output
        env_file = isolated_settings / "todolist-ops" / ".env"
        content = env_file.read_text(encoding="utf-8")
        assert "TODOLIST_OPS_GITHUB_ORG=acme" in content
        assert "TODOLIST_OPS_AZURE_LOCATION=westeurope" in content
