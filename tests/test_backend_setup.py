"""Tests for core.services.backend_setup."""

from __future__ import annotations

import json
import random

from adapters.azure_cli import AzureCli
from core.services.backend_setup import STATE_KEY, BackendRequest, BackendSetupService, storage_account_name


def test_storage_account_name_is_valid():
    name = storage_account_name(rng=random.Random(7))
    assert name.startswith("satodolisttfstate")
    assert name.isalnum() and name.islower()
    assert 3 <= len(name) <= 24


def test_bootstrap_writes_backend_config(fake_runner, tools_on_path, tmp_path):
    fake_runner.when("az", "account", "show", stdout=json.dumps({"id": "sub-1", "tenantId": "t-1"}))
    fake_runner.when("az", "group", "exists", stdout="false")
    fake_runner.when("az", "group", "create", stdout=json.dumps({"id": "/subscriptions/sub-1/resourceGroups/rg-tf"}))
    fake_runner.when("az", "storage", "account", "create", stdout=json.dumps({"id": "sa-id"}))
    fake_runner.when("az", "storage", "account", "keys", "list", stdout=json.dumps("key-123"))
    steps: list[str] = []

    result = BackendSetupService(AzureCli(fake_runner)).run(
        BackendRequest(resource_group="rg-tf", account_name="satodolisttfstate1234", output_path=tmp_path / "backend-config.txt"),
        step=steps.append,
    )

    text = result.config_path.read_text(encoding="utf-8")
    assert 'resource_group_name  = "rg-tf"' in text
    assert 'storage_account_name = "satodolisttfstate1234"' in text
    assert 'container_name       = "tfstate"' in text
    assert f'key                  = "{STATE_KEY}"' in text

    container_call = fake_runner.called("az", "storage", "container", "create")[0]["argv"]
    assert container_call[container_call.index("--account-key") + 1] == "key-123"
    assert any("Creating resource group" in s for s in steps)


def test_existing_resource_group_is_reused(fake_runner, tools_on_path, tmp_path):
    fake_runner.when("az", "account", "show", stdout=json.dumps({"id": "sub-1", "tenantId": "t-1"}))
    fake_runner.when("az", "group", "exists", stdout="true")
    fake_runner.when("az", "storage", "account", "create", stdout=json.dumps({"id": "sa-id"}))
    fake_runner.when("az", "storage", "account", "keys", "list", stdout=json.dumps("key"))

    BackendSetupService(AzureCli(fake_runner)).run(BackendRequest(output_path=tmp_path / "b.txt"))

    assert fake_runner.called("az", "group", "create") == []
