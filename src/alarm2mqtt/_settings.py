"""Application configuration via pydantic-settings.

Configuration is loaded from environment variables, an optional ``.env``
file and an optional JSON configuration file.  Nested models use ``__``
as the delimiter in env var names, e.g. ``ALARM2MQTT_MQTT__HOST=broker``.

The schema covers:

* **MQTT** — broker connection.
* **Logging** — level, format, optional file sink, rotation.
* **Panel** — device transport adapter and link timing.
* **Discovery** — topic root and discovery namespace.
* **Entities** — label-keyed partition, zone and output overrides.

Entity sections are dictionaries keyed by the label the panel reports
for the entity.  The special key ``default`` holds the base record;
:func:`resolve_entity_config` layers a label's record over it field by
field.

All durations are in **seconds**.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    Field,
    SecretStr,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

NativeVariant = Literal[
    "armed_away",
    "armed_home",
    "armed_group_A",
    "armed_group_B",
    "armed_group_C",
    "armed_group_D",
]
"""Arm-state flags the panel can report for a partition."""

DEFAULT_KEY = "default"

# -------------------------------------------------------------------
# Infrastructure sub-models
# -------------------------------------------------------------------


class MqttSettings(BaseModel):
    """MQTT broker connection configuration.

    Environment variables (with ``__`` nesting)::

        ALARM2MQTT_MQTT__HOST=broker.local
        ALARM2MQTT_MQTT__PORT=1883
        ALARM2MQTT_MQTT__USERNAME=user
        ALARM2MQTT_MQTT__PASSWORD=secret
    """

    host: str = Field(
        default="localhost",
        description="MQTT broker hostname or IP address.",
    )
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=1883,
        description="MQTT broker port.",
    )
    username: str | None = Field(
        default=None,
        description="MQTT authentication username (optional).",
    )
    password: SecretStr | None = Field(
        default=None,
        description="MQTT authentication password (optional).",
    )
    client_id: str = Field(
        default="",
        description=(
            "MQTT client identifier. When empty, the app generates "
            "'alarm2mqtt-{hex8}' at startup."
        ),
    )
    qos: Annotated[int, Field(ge=0, le=2)] = Field(
        default=1,
        description="QoS used for publications and subscriptions.",
    )
    reconnect_interval: Annotated[float, Field(gt=0)] = Field(
        default=5.0,
        description="Seconds to wait before reconnecting after connection loss.",
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    When ``file`` is set, logs are also written to a rotating file
    (size-based rotation, ``backup_count`` generations kept).  When
    ``None``, logs go to stderr only.

    ``colorize`` only affects the ``"text"`` format; JSON lines are
    never coloured.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description=(
            "Log output format. 'json' emits structured JSON lines for "
            "container environments; 'text' emits human-readable lines."
        ),
    )
    colorize: bool = Field(
        default=False,
        description="Colour the level name in text output.",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Maximum log file size in megabytes before rotation.",
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


class PanelSettings(BaseModel):
    """Device transport selection and link timing."""

    adapter: str | None = Field(
        default=None,
        description=(
            "Panel transport in 'module.path:ClassName' form.  The class "
            "is instantiated with the ``options`` mapping as keyword "
            "arguments and must satisfy PanelPort."
        ),
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments forwarded to the panel adapter.",
    )
    socket_mode: Literal["direct", "proxy"] = Field(
        default="direct",
        description="Whether the panel link is direct or relayed through a proxy.",
    )
    heartbeat_timeout_direct: Annotated[float, Field(gt=0)] = Field(
        default=30.0,
        description="Seconds without a panel clock signal before 'offline' (direct).",
    )
    heartbeat_timeout_proxy: Annotated[float, Field(gt=0)] = Field(
        default=120.0,
        description="Seconds without a panel clock signal before 'offline' (proxy).",
    )
    arm_retry_timeout: Annotated[float, Field(gt=0)] = Field(
        default=30.0,
        description="Seconds an arm request waits for a not-ready partition.",
    )


class DiscoverySettings(BaseModel):
    """Topic root and automation-platform discovery namespace."""

    node_id: str = Field(
        default="alarm-panel",
        min_length=1,
        description="Root segment of every bridge topic ('{node_id}/alarm/...').",
    )
    prefix: str = Field(
        default="homeassistant",
        min_length=1,
        description="Discovery namespace root.",
    )
    include_node_id: bool = Field(
        default=False,
        description="Prefix discovery object ids with the entity label.",
    )


# -------------------------------------------------------------------
# Entity sub-models: every field optional so layers can be merged
# -------------------------------------------------------------------


class ArmingModesConfig(BaseModel):
    """Canonical arm request → native panel variant."""

    armed_away: NativeVariant | None = None
    armed_home: NativeVariant | None = None
    armed_night: NativeVariant | None = None
    armed_vacation: NativeVariant | None = None
    armed_custom_bypass: NativeVariant | None = None


class PartitionConfig(BaseModel):
    name: str | None = None
    name_prefix: str | None = None
    arming_modes: ArmingModesConfig = Field(default_factory=ArmingModesConfig)


class ZoneConfig(BaseModel):
    name: str | None = None
    name_prefix: str | None = None
    device_class: str | None = None
    off_delay: Annotated[int, Field(ge=0)] | None = None
    bypass_exclude_entry_exit: bool | None = None


class OutputConfig(BaseModel):
    name: str | None = None
    name_prefix: str | None = None
    device_class: str | None = None


BUILTIN_PARTITION = PartitionConfig(
    name_prefix="",
    arming_modes=ArmingModesConfig(
        armed_away="armed_away",
        armed_home="armed_home",
        armed_night="armed_home",
        armed_vacation="armed_away",
        armed_custom_bypass="armed_home",
    ),
)
BUILTIN_ZONE = ZoneConfig(
    name_prefix="",
    device_class="motion",
    off_delay=0,
    bypass_exclude_entry_exit=True,
)
BUILTIN_USER_OUTPUT = OutputConfig(name_prefix="", device_class="")
BUILTIN_SYSTEM_OUTPUT = OutputConfig(name_prefix="", device_class="running")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_entity_config[M: BaseModel](
    builtin: M,
    section: dict[str, M],
    label: str,
) -> M:
    """Resolve the effective configuration for the entity *label*.

    Layers, lowest priority first: *builtin*, ``section["default"]``,
    ``section[label]``.  Only fields explicitly set to a non-``None``
    value in a layer override the layers below it, so a label record
    naming just ``name`` keeps every other default.

    Pure and total: an unknown label simply resolves to the defaults.
    """
    merged = builtin.model_dump(exclude_none=True)
    for key in (DEFAULT_KEY, label):
        layer = section.get(key)
        if layer is not None:
            merged = _deep_merge(merged, layer.model_dump(exclude_none=True))
    return type(builtin).model_validate(merged)


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for alarm2mqtt.

    Loaded from ``ALARM2MQTT_``-prefixed environment variables with the
    nested delimiter ``__`` and an optional ``.env`` file in the working
    directory.

    Example ``.env``::

        ALARM2MQTT_MQTT__HOST=broker.local
        ALARM2MQTT_PANEL__ADAPTER=mypanel.transport:LanPanel
        ALARM2MQTT_LOGGING__LEVEL=DEBUG
        ALARM2MQTT_DISCOVERY__NODE_ID=house-alarm

    Entity overrides are easier to express in a JSON file, see
    :meth:`from_file`.
    """

    model_config = SettingsConfigDict(
        env_prefix="ALARM2MQTT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mqtt: MqttSettings = Field(
        default_factory=MqttSettings,
        description="MQTT broker connection settings.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
    panel: PanelSettings = Field(
        default_factory=PanelSettings,
        description="Panel transport settings.",
    )
    discovery: DiscoverySettings = Field(
        default_factory=DiscoverySettings,
        description="Topic root and discovery settings.",
    )
    partitions: dict[str, PartitionConfig] = Field(default_factory=dict)
    zones: dict[str, ZoneConfig] = Field(default_factory=dict)
    user_outputs: dict[str, OutputConfig] = Field(default_factory=dict)
    system_outputs: dict[str, OutputConfig] = Field(default_factory=dict)

    @classmethod
    def from_file(
        cls,
        path: str | Path | None,
        *,
        env_file: str | None = ".env",
    ) -> Settings:
        """Build settings from a JSON file layered over the environment.

        Values in the file take precedence over environment variables.
        A ``None`` *path*, or a path that does not exist, yields plain
        environment-based settings.

        Raises:
            pydantic.ValidationError: If the merged values are invalid.
            json.JSONDecodeError: If the file is not valid JSON.
        """
        data: dict[str, Any] = {}
        if path is not None and Path(path).is_file():
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(_env_file=env_file, **data)  # type: ignore[call-arg]
