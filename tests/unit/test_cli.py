"""Tests for alarm2mqtt._cli — command-line interface.

Test Techniques Used:
    - Specification-based Testing: CLI flag parsing and defaults
    - State-based Testing: settings/dry_run propagation
    - Error Condition Testing: invalid flag values, config errors
    - Behavioural Testing: exit codes and output text
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from alarm2mqtt._app import App
from alarm2mqtt._cli import EXIT_CONFIG_ERROR, EXIT_OK, EXIT_RUNTIME_ERROR, build_cli
from alarm2mqtt._errors import ConfigurationError

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every CLI test where no config.json or .env exists."""
    monkeypatch.chdir(tmp_path)
    for name in ("ALARM2MQTT_MQTT__HOST", "ALARM2MQTT_LOGGING__LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app() -> App:
    return App(name="testbridge", version="1.0.0", description="Test bridge")


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _capture(store: dict[str, Any]):
    async def capture(*, settings=None, **_kwargs: Any) -> None:  # noqa: ANN001
        store["settings"] = settings

    return capture


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------


class TestVersionAndHelp:
    """Technique: Specification-based Testing."""

    def test_version(self, app: App, runner: CliRunner) -> None:
        result = runner.invoke(build_cli(app), ["--version"])
        assert result.exit_code == EXIT_OK
        assert "testbridge v1.0.0" in result.output

    def test_help_lists_options(self, app: App, runner: CliRunner) -> None:
        result = runner.invoke(build_cli(app), ["--help"])
        assert result.exit_code == EXIT_OK
        assert "Test bridge" in result.output
        for option in ("--version", "--dry-run", "--log-level", "--log-format", "--config"):
            assert option in result.output


class TestDryRunFlag:
    """Technique: State-based Testing."""

    def test_dry_run_sets_flag(self, app: App, runner: CliRunner) -> None:
        with patch.object(app, "_run_async", new_callable=AsyncMock) as mock_run:
            result = runner.invoke(build_cli(app), ["--dry-run"])
        assert result.exit_code == EXIT_OK
        assert app._dry_run is True
        mock_run.assert_awaited_once()

    def test_default_is_false(self, app: App, runner: CliRunner) -> None:
        with patch.object(app, "_run_async", new_callable=AsyncMock):
            result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_OK
        assert app._dry_run is False


class TestConfigFile:
    """Technique: State-based Testing."""

    def test_config_file_loaded(self, app: App, runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "bridge.json"
        config.write_text(json.dumps({"discovery": {"node_id": "house"}}))
        store: dict[str, Any] = {}
        with patch.object(app, "_run_async", side_effect=_capture(store)):
            result = runner.invoke(build_cli(app), ["--config", str(config)])
        assert result.exit_code == EXIT_OK
        assert store["settings"].discovery.node_id == "house"

    def test_default_config_json_in_cwd(self, app: App, runner: CliRunner) -> None:
        Path("config.json").write_text(json.dumps({"panel": {"socket_mode": "proxy"}}))
        store: dict[str, Any] = {}
        with patch.object(app, "_run_async", side_effect=_capture(store)):
            result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_OK
        assert store["settings"].panel.socket_mode == "proxy"

    def test_env_file(self, app: App, runner: CliRunner) -> None:
        Path("custom.env").write_text("ALARM2MQTT_MQTT__HOST=broker.test\n")
        store: dict[str, Any] = {}
        with patch.object(app, "_run_async", side_effect=_capture(store)):
            result = runner.invoke(build_cli(app), ["--env-file", "custom.env"])
        assert result.exit_code == EXIT_OK
        assert store["settings"].mqtt.host == "broker.test"


class TestLoggingOverrides:
    """Technique: State-based Testing + Error Condition Testing."""

    def test_log_level_override(self, app: App, runner: CliRunner) -> None:
        store: dict[str, Any] = {}
        with patch.object(app, "_run_async", side_effect=_capture(store)):
            result = runner.invoke(build_cli(app), ["--log-level", "debug"])
        assert result.exit_code == EXIT_OK
        assert store["settings"].logging.level == "DEBUG"

    def test_log_format_override(self, app: App, runner: CliRunner) -> None:
        store: dict[str, Any] = {}
        with patch.object(app, "_run_async", side_effect=_capture(store)):
            result = runner.invoke(build_cli(app), ["--log-format", "JSON"])
        assert result.exit_code == EXIT_OK
        assert store["settings"].logging.format == "json"

    def test_invalid_log_level(self, app: App, runner: CliRunner) -> None:
        result = runner.invoke(build_cli(app), ["--log-level", "LOUD"])
        assert result.exit_code != EXIT_OK

    def test_invalid_log_format(self, app: App, runner: CliRunner) -> None:
        result = runner.invoke(build_cli(app), ["--log-format", "yaml"])
        assert result.exit_code != EXIT_OK


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class TestExitCodes:
    """Technique: Behavioural Testing."""

    def test_constants(self) -> None:
        assert (EXIT_OK, EXIT_CONFIG_ERROR, EXIT_RUNTIME_ERROR) == (0, 1, 3)

    def test_invalid_settings_exit_one(self, app: App, runner: CliRunner) -> None:
        Path("config.json").write_text(json.dumps({"mqtt": {"port": 0}}))
        result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid configuration in config.json" in result.output
        assert "port" in result.output

    def test_malformed_json_exits_one(self, app: App, runner: CliRunner) -> None:
        Path("config.json").write_text("{broken")
        result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid configuration in config.json" in result.output

    def test_configuration_error_exits_one(self, app: App, runner: CliRunner) -> None:
        async def no_adapter(**_kwargs: object) -> None:
            msg = "No panel adapter configured"
            raise ConfigurationError(msg)

        with patch.object(app, "_run_async", side_effect=no_adapter):
            result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_CONFIG_ERROR

    def test_runtime_error_exits_three(self, app: App, runner: CliRunner) -> None:
        async def boom(**_kwargs: object) -> None:
            msg = "kaboom"
            raise RuntimeError(msg)

        with patch.object(app, "_run_async", side_effect=boom):
            result = runner.invoke(build_cli(app), [])
        assert result.exit_code == EXIT_RUNTIME_ERROR
