"""Tests for adapters.json_exporter."""

from __future__ import annotations

import json

import pytest

from adapters.json_exporter import export_summary_json, load_summary_json
from core.domain.models import SetupSummary
from core.errors import ConfigurationError


def _summary(**overrides) -> SetupSummary:
    values = dict(
        app_name="TodoList-GitHub-Actions-OIDC",
        app_id="client-1",
        tenant_id="tenant-1",
        subscription_id="sub-1",
        github_org="acme",
        github_repo="todo",
        secrets={"AZURE_CLIENT_ID": "client-1"},
    )
    values.update(overrides)
    return SetupSummary(**values)


def test_writes_camel_case_keys(tmp_path):
    path = export_summary_json(summary=_summary(), output_path=tmp_path / "out" / "summary.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert set(data) == {
        "appName", "appId", "tenantId", "subscriptionId", "gitHubOrg", "gitHubRepo", "createdAt", "secrets", "variables",
    }
    assert data["appId"] == "client-1"
    assert len(data["createdAt"]) == len("2024-01-01 00:00:00")


def test_rerun_overwrites(tmp_path):
    path = tmp_path / "summary.json"
    export_summary_json(summary=_summary(), output_path=path)
    export_summary_json(summary=_summary(app_id="client-2"), output_path=path)
    assert load_summary_json(path).app_id == "client-2"


def test_load_round_trip(tmp_path):
    path = export_summary_json(summary=_summary(), output_path=tmp_path / "summary.json")
    loaded = load_summary_json(path)
    assert loaded.github_org == "acme"
    assert loaded.secrets == {"AZURE_CLIENT_ID": "client-1"}


@pytest.mark.parametrize("content", ["not json", json.dumps({"appName": "x"})])
def test_invalid_file(tmp_path, content):
    path = tmp_path / "summary.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid summary"):
        load_summary_json(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_summary_json(tmp_path / "nope.json")
