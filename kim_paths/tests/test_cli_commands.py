"""Tests for the kim-paths click CLI."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from click.testing import CliRunner

from kim_paths.adapters.kim_adapter import KimAdapter
from kim_paths.mcp import cli as cli_module
from kim_paths.testing.fake_chain import FakeChainPort


@pytest.fixture
def fake_port(monkeypatch) -> FakeChainPort:
    port = FakeChainPort()

    def _build(_wallet=None):
        return KimAdapter({}, port=port, telemetry=AsyncMock())

    monkeypatch.setattr(cli_module, "build_kim_adapter", _build)
    return port


def test_tools_lists_all_operations():
    result = CliRunner().invoke(cli_module.cli, ["tools"])

    assert result.exit_code == 0
    names = [t["name"] for t in json.loads(result.output)]
    assert len(names) == 11
    assert "kim_get_lp_tokens" in names


def test_call_runs_operation(fake_port):
    result = CliRunner().invoke(
        cli_module.cli, ["call", "kim_collect", "--params", '{"token_id": 4}']
    )

    assert result.exit_code == 0
    assert json.loads(result.output)["ok"] is True
    assert fake_port.sent_functions() == ["collect"]


def test_call_failure_exits_non_zero(fake_port):
    fake_port.revert_on.add("collect")

    result = CliRunner().invoke(
        cli_module.cli, ["call", "kim_collect", "--params", '{"token_id": 4}']
    )

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "chain_write_failed"


def test_call_rejects_malformed_params(fake_port):
    result = CliRunner().invoke(
        cli_module.cli, ["call", "kim_collect", "--params", "{not json"]
    )

    assert result.exit_code == 2
    assert "--params" in result.output
    assert fake_port.sent == []


def test_call_reports_wallet_problems(monkeypatch):
    def _fail(_wallet=None):
        raise ValueError("Unknown wallet_label: ghost")

    monkeypatch.setattr(cli_module, "build_kim_adapter", _fail)

    result = CliRunner().invoke(
        cli_module.cli, ["call", "kim_burn", "--wallet", "ghost"]
    )

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "invalid_wallet"
