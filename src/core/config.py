"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) away from the CLI.
- Adapters (docker/az/gh/HTTP) and services read one consistent contract.
- Organization, repository and tenant identifiers are always inputs: either
  flags, process env, the project `.env` or the user config `.env`.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "todolist-ops"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "todolist-ops"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "todolist-ops"
    return Path.home() / ".config" / "todolist-ops"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Write or update variables in the user's global `.env`."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# todolist-ops user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    Every field can be set through `TODOLIST_OPS_<FIELD>`; CLI flags take
    precedence over whatever is resolved here.
    """

    model_config = SettingsConfigDict(
        env_prefix="TODOLIST_OPS_",
        extra="ignore",
        case_sensitive=False,
        # Project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    # GitHub
    github_org: str | None = Field(
        default=None,
        description="GitHub organization or user that owns the repository.",
    )
    github_repo: str | None = Field(
        default=None,
        description="GitHub repository name.",
    )

    # Azure AD / OIDC
    app_name: str = Field(
        default="TodoList-GitHub-Actions-OIDC",
        min_length=1,
        description="Display name of the Azure AD application registration.",
    )
    subscription_id: str | None = Field(
        default=None,
        description="Azure subscription; the current `az` account is used when unset.",
    )
    azure_location: str = Field(
        default="eastus",
        min_length=1,
        description="Azure region for created resources.",
    )
    resource_group: str = Field(
        default="rg-todolist-dev",
        min_length=1,
        description="Resource group published as a repository variable.",
    )
    role: str = Field(
        default="Contributor",
        min_length=1,
        description="Role granted to the service principal.",
    )
    main_branch: str = Field(
        default="main",
        min_length=1,
        description="Branch trusted by the branch federated credential.",
    )
    environments: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["dev", "staging", "production"],
        description="GitHub environments that get a federated credential (comma-separated or a JSON list).",
    )
    summary_path: Path = Field(
        default=Path("azure-github-oidc-setup.json"),
        description="Where `oidc setup` writes its JSON summary.",
    )

    # Docker
    image_tag: str = Field(
        default="todolist-app:test",
        min_length=1,
        description="Image tag built and smoke-tested locally.",
    )
    container_name: str = Field(
        default="todolist-test",
        min_length=1,
        description="Name of the throwaway smoke-test container.",
    )
    app_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Host port mapped to the container's 8080.",
    )
    build_platform: str = Field(
        default="linux/amd64",
        min_length=1,
        description="Target platform of the `platform` build strategy.",
    )
    build_timeout_minutes: float = Field(
        default=10.0,
        gt=0,
        description="Deadline applied to each build strategy (minutes).",
    )
    startup_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long the smoke test waits for /health to answer.",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout per HTTP request (seconds).",
    )
    cli_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Deadline for a single az/gh/docker management call.",
    )
    user_agent: str = Field(
        default="todolist-ops/0.1",
        min_length=1,
        description="User-Agent for HTTP checks.",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="structlog level (DEBUG, INFO, WARNING, ERROR).",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of the coloured console format.",
    )

    @field_validator("environments", mode="before")
    @classmethod
    def _split_environments(cls, value: Any) -> Any:
        """Accept `dev,staging,production` as well as `["dev", "staging"]`."""

        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [part.strip() for part in text.split(",") if part.strip()]
