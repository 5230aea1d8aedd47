"""CLI smoke tests using Typer's runner against a loopback server."""

from __future__ import annotations

import json

import pandas as pd
import pytest
from typer.testing import CliRunner

from ntpquery import client as client_module
from tests.conftest import get_test_logger
from tests.helpers import REFERENCE_ORIGIN, build_server_reply

logger = get_test_logger(__name__)
logger.info("Starting tests for CLI module")

runner = CliRunner()


@pytest.fixture
def cli(monkeypatch: pytest.MonkeyPatch):
    from cli import app as cli_app

    calls: list[str] = []
    monkeypatch.setattr(cli_app.settings, "setup_logging", lambda *_, **__: calls.append("setup_logging"))
    monkeypatch.setattr(cli_app, "logging_calls", calls, raising=False)
    monkeypatch.setattr(cli_app, "load_dotenv", lambda *_, **__: False)
    return cli_app


@pytest.fixture
def scenario_server(fake_ntp_server, monkeypatch: pytest.MonkeyPatch):
    receive = REFERENCE_ORIGIN + pd.Timedelta(milliseconds=50)
    transmit = receive + pd.Timedelta(milliseconds=10)
    server = fake_ntp_server(lambda _request: build_server_reply(receive=receive, transmit=transmit))
    clock = iter([REFERENCE_ORIGIN, REFERENCE_ORIGIN + pd.Timedelta(milliseconds=120)])
    monkeypatch.setattr(client_module, "utc_now", lambda: next(clock))
    return server


def _target_args(server) -> list[str]:
    host, port = server.address
    return ["--host", host, "--port", str(port), "--timeout", "2"]


def test_cli_help(cli) -> None:
    result = runner.invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    assert "ntpquery" in result.stdout


def test_query_json(cli, scenario_server) -> None:
    result = runner.invoke(cli.app, ["ntp", "query", *_target_args(scenario_server), "--json"])
    logger.info("query output: %s", result.stdout)
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["mode"] == "SERVER"
    assert payload["stratum"] == 2
    assert payload["round_trip_ms"] == pytest.approx(110.0)
    assert payload["correction_offset_ms"] == pytest.approx(-5.0)


def test_query_table(cli, scenario_server) -> None:
    result = runner.invoke(cli.app, ["ntp", "query", *_target_args(scenario_server)])
    assert result.exit_code == 0
    assert "stratum" in result.stdout


def test_offset_command(cli, scenario_server) -> None:
    result = runner.invoke(cli.app, ["ntp", "offset", *_target_args(scenario_server)])
    assert result.exit_code == 0
    assert "offset=-5.000ms" in result.stdout
    assert "rtt=110.000ms" in result.stdout


def test_query_timeout_exits_non_zero(cli, fake_ntp_server) -> None:
    server = fake_ntp_server(lambda _request: None)
    host, port = server.address
    result = runner.invoke(cli.app, ["ntp", "query", "--host", host, "--port", str(port), "--timeout", "0.05"])
    assert result.exit_code == 1
    assert "failed" in result.stdout


def test_check_command(cli, scenario_server, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from ntpquery import settings

    monkeypatch.setattr(settings, "CONFIG_FILE", tmp_path / "missing.yaml")
    ok = runner.invoke(cli.app, ["ntp", "check", *_target_args(scenario_server), "--max-offset-ms", "10"])
    assert ok.exit_code == 0
    assert "OK" in ok.stdout


def test_check_command_fails_on_timeout(cli, fake_ntp_server, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from ntpquery import settings

    monkeypatch.setattr(settings, "CONFIG_FILE", tmp_path / "missing.yaml")
    server = fake_ntp_server(lambda _request: None)
    host, port = server.address
    result = runner.invoke(cli.app, ["ntp", "check", "--host", host, "--port", str(port), "--timeout", "0.05"])
    assert result.exit_code == 1
    assert "FAIL" in result.stdout


def test_callback_installs_project_logging(cli, scenario_server) -> None:
    result = runner.invoke(cli.app, ["ntp", "offset", *_target_args(scenario_server)])
    assert result.exit_code == 0
    assert cli.logging_calls == ["setup_logging"]


@pytest.mark.parametrize("command", ["query", "offset", "check"])
def test_zero_timeout_is_rejected(cli, fake_ntp_server, monkeypatch: pytest.MonkeyPatch, tmp_path, command: str) -> None:
    from ntpquery import settings

    monkeypatch.setattr(settings, "CONFIG_FILE", tmp_path / "missing.yaml")
    server = fake_ntp_server()
    host, port = server.address
    result = runner.invoke(cli.app, ["ntp", command, "--host", host, "--port", str(port), "--timeout", "0"])
    assert result.exit_code == 1
    assert "Timeout must be at least" in result.stdout
    assert server.requests == []


def test_check_command_reports_short_reply(cli, fake_ntp_server, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from ntpquery import settings

    monkeypatch.setattr(settings, "CONFIG_FILE", tmp_path / "missing.yaml")
    server = fake_ntp_server(lambda _request: bytes(20))
    host, port = server.address
    result = runner.invoke(cli.app, ["ntp", "check", "--host", host, "--port", str(port), "--timeout", "2"])
    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "FAIL" in result.stdout
    assert "at least 48 bytes" in result.stdout
