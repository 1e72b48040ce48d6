"""Tests for alarm2mqtt._settings — configuration loading and resolution.

Test Techniques Used:
    - Specification-based Testing: defaults of every settings section
    - Boundary Value Analysis: port, qos and timeout limits
    - Layered Resolution: builtin < default < label, field by field
    - Environment Isolation: monkeypatched env vars, tmp_path files
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from alarm2mqtt._settings import (
    BUILTIN_PARTITION,
    BUILTIN_SYSTEM_OUTPUT,
    BUILTIN_USER_OUTPUT,
    BUILTIN_ZONE,
    MqttSettings,
    PanelSettings,
    PartitionConfig,
    Settings,
    ZoneConfig,
    resolve_entity_config,
)
from alarm2mqtt.testing import make_settings

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Model defaults.

    Technique: Specification-based Testing.
    """

    def test_mqtt_defaults(self) -> None:
        settings = make_settings()
        assert settings.mqtt.host == "localhost"
        assert settings.mqtt.port == 1883
        assert settings.mqtt.qos == 1
        assert settings.mqtt.password is None

    def test_panel_timing_defaults(self) -> None:
        panel = make_settings().panel
        assert panel.heartbeat_timeout_direct == 30.0
        assert panel.heartbeat_timeout_proxy == 120.0
        assert panel.arm_retry_timeout == 30.0
        assert panel.socket_mode == "direct"
        assert panel.adapter is None

    def test_discovery_defaults(self) -> None:
        discovery = make_settings().discovery
        assert discovery.node_id == "alarm-panel"
        assert discovery.prefix == "homeassistant"
        assert discovery.include_node_id is False

    def test_entity_sections_default_empty(self) -> None:
        settings = make_settings()
        assert settings.partitions == {}
        assert settings.zones == {}
        assert settings.user_outputs == {}
        assert settings.system_outputs == {}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    """Field constraints.

    Technique: Boundary Value Analysis.
    """

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_out_of_range_rejected(self, port: int) -> None:
        with pytest.raises(ValidationError):
            MqttSettings(port=port)

    def test_qos_above_two_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MqttSettings(qos=3)

    def test_zero_retry_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PanelSettings(arm_retry_timeout=0)

    def test_unknown_native_variant_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(
                partitions={"default": {"arming_modes": {"armed_night": "armed_night"}}},
            )

    def test_password_is_secret(self) -> None:
        settings = MqttSettings(password="hunter2")
        assert "hunter2" not in repr(settings)
        assert settings.password is not None
        assert settings.password.get_secret_value() == "hunter2"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolveEntityConfig:
    """Two-level configuration resolution.

    Technique: Layered Resolution — label over default over builtin.
    """

    def test_unknown_label_resolves_to_builtin(self) -> None:
        resolved = resolve_entity_config(BUILTIN_ZONE, {}, "Kitchen")
        assert resolved.device_class == "motion"
        assert resolved.off_delay == 0
        assert resolved.bypass_exclude_entry_exit is True

    def test_default_overrides_builtin(self) -> None:
        section = {"default": ZoneConfig(device_class="door")}
        resolved = resolve_entity_config(BUILTIN_ZONE, section, "Kitchen")
        assert resolved.device_class == "door"
        assert resolved.off_delay == 0

    def test_label_overrides_default_field_by_field(self) -> None:
        section = {
            "default": ZoneConfig(device_class="door", off_delay=30),
            "Kitchen": ZoneConfig(name="Kitchen Window"),
        }
        resolved = resolve_entity_config(BUILTIN_ZONE, section, "Kitchen")
        assert resolved.name == "Kitchen Window"
        assert resolved.device_class == "door"
        assert resolved.off_delay == 30

    def test_nested_arming_modes_merge(self) -> None:
        section = {
            "Garage": PartitionConfig.model_validate(
                {"arming_modes": {"armed_night": "armed_group_B"}},
            ),
        }
        resolved = resolve_entity_config(BUILTIN_PARTITION, section, "Garage")
        assert resolved.arming_modes.armed_night == "armed_group_B"
        assert resolved.arming_modes.armed_away == "armed_away"
        assert resolved.arming_modes.armed_home == "armed_home"

    def test_resolution_does_not_mutate_inputs(self) -> None:
        section = {"default": ZoneConfig(device_class="door")}
        resolve_entity_config(BUILTIN_ZONE, section, "Kitchen")
        assert BUILTIN_ZONE.device_class == "motion"
        assert section["default"].off_delay is None

    def test_output_builtins_differ(self) -> None:
        assert resolve_entity_config(BUILTIN_USER_OUTPUT, {}, "x").device_class == ""
        assert resolve_entity_config(BUILTIN_SYSTEM_OUTPUT, {}, "x").device_class == "running"


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class TestSources:
    """Environment and JSON file loading.

    Technique: Environment Isolation.
    """

    def test_env_var_with_nested_delimiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALARM2MQTT_MQTT__HOST", "broker.test")
        monkeypatch.setenv("ALARM2MQTT_DISCOVERY__NODE_ID", "house")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.mqtt.host == "broker.test"
        assert settings.discovery.node_id == "house"

    def test_from_file_reads_json(self, tmp_path: Path) -> None:
        config = tmp_path / "config.json"
        config.write_text(
            json.dumps(
                {
                    "panel": {"socket_mode": "proxy"},
                    "zones": {"default": {"off_delay": 15}},
                },
            ),
        )
        settings = Settings.from_file(config, env_file=None)
        assert settings.panel.socket_mode == "proxy"
        assert settings.zones["default"].off_delay == 15

    def test_file_overrides_environment(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("ALARM2MQTT_MQTT__HOST", "from-env")
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"mqtt": {"host": "from-file"}}))
        settings = Settings.from_file(config, env_file=None)
        assert settings.mqtt.host == "from-file"

    def test_missing_file_falls_back_to_environment(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("ALARM2MQTT_MQTT__PORT", "1884")
        settings = Settings.from_file(tmp_path / "absent.json", env_file=None)
        assert settings.mqtt.port == 1884

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        config = tmp_path / "config.json"
        config.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            Settings.from_file(config, env_file=None)
