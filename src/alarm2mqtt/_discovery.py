"""Discovery descriptors for the automation platform.

One retained JSON document per exposed entity, published under
``{prefix}/{component}/{node_id}/{object_id}/config``.  Every descriptor
shares the bridge status topic as its availability topic and the same
``device`` block, so the platform groups all entities under one device
that goes unavailable together with the bridge.

Descriptors are rebuilt from the current :class:`EntitySelection` and
:class:`ArmingModeTable` on every discovery cycle; nothing here keeps
state between cycles.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from alarm2mqtt._arming import ArmingModeTable
from alarm2mqtt._model import EntitySelection, Output, PanelInfo, Partition, Zone
from alarm2mqtt._projection import OFF, ON
from alarm2mqtt._settings import (
    BUILTIN_PARTITION,
    BUILTIN_SYSTEM_OUTPUT,
    BUILTIN_USER_OUTPUT,
    BUILTIN_ZONE,
    OutputConfig,
    PartitionConfig,
    Settings,
    ZoneConfig,
    resolve_entity_config,
)
from alarm2mqtt._topics import Topics


@dataclass(frozen=True, slots=True)
class Descriptor:
    """A discovery document and the topic it is published on."""

    topic: str
    payload: dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(self.payload)

    @property
    def name(self) -> str:
        return str(self.payload.get("name", ""))


def entity_name(
    config: PartitionConfig | ZoneConfig | OutputConfig,
    label: str,
    suffix: str = "",
) -> str:
    """``name_prefix + (name or label) + suffix``."""
    return f"{config.name_prefix or ''}{config.name or label}{suffix}"


class DiscoveryBuilder:
    """Builds every descriptor for one bridge instance.

    Args:
        topics: Topic layout of this bridge.
        settings: Source of the per-label entity sections.
        info: Panel identity for the ``device`` block.
        qos: QoS advertised to the platform for commands and states.
    """

    def __init__(
        self,
        topics: Topics,
        settings: Settings,
        info: PanelInfo,
        *,
        qos: int = 1,
    ) -> None:
        self._topics = topics
        self._settings = settings
        self._info = info
        self._qos = qos

    @property
    def device(self) -> dict[str, str]:
        info = self._info
        model = f"{info.model}/{info.type}" if info.type else info.model
        return {
            "manufacturer": info.manufacturer,
            "model": model,
            "name": info.model,
            "sw_version": info.firmware,
            "identifiers": self._topics.node_id,
        }

    def build(self, selection: EntitySelection, table: ArmingModeTable) -> list[Descriptor]:
        descriptors = self.bridge_descriptors()
        for partition in selection.partitions:
            descriptors.append(self.partition(partition, table))
            descriptors.append(self.partition_not_ready(partition))
        for zone in selection.zones:
            descriptors.extend(self.zone(zone))
        for zone in selection.bypass_zones:
            descriptors.append(self.zone_bypass(zone))
        for zone in selection.battery_zones:
            descriptors.append(self.zone_battery(zone))
        for output in selection.toggle_outputs:
            descriptors.append(self.toggle_output(output))
        for output in selection.button_outputs:
            descriptors.append(self.button_output(output))
        for output in selection.system_outputs:
            descriptors.append(self.system_output(output))
        return descriptors

    # -- Bridge-wide ---------------------------------------------------------

    def bridge_descriptors(self) -> list[Descriptor]:
        t = self._topics
        node = t.node_id
        return [
            self._descriptor(
                "binary_sensor",
                "panelstatus",
                {
                    "name": f"{node} Panel connection status",
                    "unique_id": f"{node}-panelstatus",
                    "state_topic": t.panel_status,
                    "payload_on": "true",
                    "payload_off": "false",
                    "device_class": "connectivity",
                },
            ),
            self._descriptor(
                "binary_sensor",
                "proxystatus",
                {
                    "name": f"{node} Proxy connection status",
                    "unique_id": f"{node}-proxystatus",
                    "state_topic": t.proxy_status,
                    "payload_on": ON,
                    "payload_off": OFF,
                    "device_class": "connectivity",
                },
            ),
            self._descriptor(
                "sensor",
                "systemmessage",
                {
                    "name": f"{node} System message",
                    "unique_id": f"{node}-systemmessage",
                    "state_topic": t.system_message,
                    "icon": "mdi:message-alert-outline",
                },
            ),
            self._descriptor(
                "binary_sensor",
                "systembattery",
                {
                    "name": f"{node} System battery",
                    "unique_id": f"{node}-systembattery",
                    "state_topic": t.system_battery,
                    "payload_on": ON,
                    "payload_off": OFF,
                    "device_class": "battery",
                },
            ),
            self._republish_button("communications", "Restart communications"),
            self._republish_button("states", "Republish states"),
            self._republish_button("autodiscovery", "Republish autodiscovery"),
        ]

    def _republish_button(self, payload: str, title: str) -> Descriptor:
        node = self._topics.node_id
        object_id = title.lower().replace(" ", "-")
        return self._descriptor(
            "button",
            object_id,
            {
                "name": f"{node} {title}",
                "unique_id": f"{node}-{object_id}",
                "command_topic": self._topics.republish,
                "payload_press": payload,
                "icon": "mdi:restart",
            },
        )

    # -- Partitions ----------------------------------------------------------

    def partition(self, partition: Partition, table: ArmingModeTable) -> Descriptor:
        config = self._partition_config(partition.label)
        modes = table.for_partition(partition)
        return self._descriptor(
            "alarm_control_panel",
            self._topics.object_segment(partition.label, partition.id),
            {
                "name": entity_name(config, partition.label),
                "unique_id": f"{self._topics.node_id}-partition-{partition.id}",
                "state_topic": self._topics.partition(partition.id),
                "command_topic": self._topics.partition_command(partition.id),
                "supported_features": modes.supported_features,
                "code_arm_required": False,
            },
        )

    def partition_not_ready(self, partition: Partition) -> Descriptor:
        config = self._partition_config(partition.label)
        return self._descriptor(
            "binary_sensor",
            self._topics.object_segment(partition.label, partition.id, "-notready"),
            {
                "name": entity_name(config, partition.label, " Not Ready"),
                "unique_id": f"{self._topics.node_id}-partition-{partition.id}-notready",
                "state_topic": self._topics.partition_not_ready(partition.id),
                "payload_on": ON,
                "payload_off": OFF,
                "device_class": "problem",
            },
        )

    # -- Zones ---------------------------------------------------------------

    def zone(self, zone: Zone) -> list[Descriptor]:
        config = self._zone_config(zone.label)
        node = self._topics.node_id
        sensor: dict[str, Any] = {
            "name": entity_name(config, zone.label),
            "unique_id": f"{node}-zone-{zone.id}",
            "state_topic": self._topics.zone(zone.id),
            "json_attributes_topic": self._topics.zone_attributes(zone.id),
            "payload_on": ON,
            "payload_off": OFF,
            "device_class": config.device_class,
        }
        if config.off_delay:
            sensor["off_delay"] = config.off_delay
        alarm = {
            "name": entity_name(config, zone.label, " Alarm"),
            "unique_id": f"{node}-zone-alarm-{zone.id}",
            "state_topic": self._topics.zone(zone.id, "alarm/status"),
            "json_attributes_topic": self._topics.zone_attributes(zone.id),
            "payload_on": ON,
            "payload_off": OFF,
            "device_class": "problem",
        }
        return [
            self._descriptor(
                "binary_sensor",
                self._topics.object_segment(zone.label, zone.id),
                sensor,
            ),
            self._descriptor(
                "binary_sensor",
                self._topics.object_segment(zone.label, zone.id, "-alarm"),
                alarm,
            ),
        ]

    def zone_bypass(self, zone: Zone) -> Descriptor:
        config = self._zone_config(zone.label)
        return self._descriptor(
            "switch",
            self._topics.object_segment(zone.label, zone.id, "-bypass"),
            {
                "name": entity_name(config, zone.label, " Bypass"),
                "unique_id": f"{self._topics.node_id}-zone-{zone.id}-bypass",
                "state_topic": self._topics.zone_bypass(zone.id),
                "command_topic": self._topics.zone_bypass(zone.id, "set"),
                "payload_on": ON,
                "payload_off": OFF,
                "state_on": ON,
                "state_off": OFF,
                "icon": "mdi:toggle-switch-off",
            },
        )

    def zone_battery(self, zone: Zone) -> Descriptor:
        config = self._zone_config(zone.label)
        return self._descriptor(
            "binary_sensor",
            self._topics.object_segment(zone.label, zone.id, "_battery"),
            {
                "name": entity_name(config, zone.label, " Battery"),
                "unique_id": f"{self._topics.node_id}-zone-{zone.id}-battery",
                "state_topic": self._topics.zone(zone.id, "battery/status"),
                "json_attributes_topic": self._topics.zone_battery_attributes(zone.id),
                "payload_on": ON,
                "payload_off": OFF,
                "device_class": "battery",
            },
        )

    # -- Outputs -------------------------------------------------------------

    def toggle_output(self, output: Output) -> Descriptor:
        config = self._user_output_config(output.label)
        payload: dict[str, Any] = {
            "name": entity_name(config, output.label),
            "unique_id": f"{self._topics.node_id}-output-{output.id}",
            "state_topic": self._topics.output(output.id),
            "command_topic": self._topics.output_command(output.id),
            "payload_on": ON,
            "payload_off": OFF,
            "state_on": ON,
            "state_off": OFF,
            "icon": "mdi:toggle-switch-off",
        }
        if config.device_class:
            payload["device_class"] = config.device_class
        return self._descriptor(
            "switch",
            self._topics.object_segment(output.label, output.id, "-output"),
            payload,
        )

    def button_output(self, output: Output) -> Descriptor:
        config = self._user_output_config(output.label)
        return self._descriptor(
            "button",
            self._topics.object_segment(output.label, output.id, "-output"),
            {
                "name": entity_name(config, output.label),
                "unique_id": f"{self._topics.node_id}-output-{output.id}",
                "command_topic": self._topics.output_command(output.id),
                "payload_press": ON,
                "icon": "mdi:gesture-tap-button",
            },
        )

    def system_output(self, output: Output) -> Descriptor:
        config = resolve_entity_config(
            BUILTIN_SYSTEM_OUTPUT,
            self._settings.system_outputs,
            output.label,
        )
        payload: dict[str, Any] = {
            "name": entity_name(config, output.label),
            "unique_id": f"{self._topics.node_id}-systemoutput-{output.id}",
            "state_topic": self._topics.output(output.id),
            "payload_on": ON,
            "payload_off": OFF,
        }
        if config.device_class:
            payload["device_class"] = config.device_class
        return self._descriptor(
            "binary_sensor",
            self._topics.object_segment(output.label, output.id, "-output"),
            payload,
        )

    # -- Internal ------------------------------------------------------------

    def _partition_config(self, label: str) -> PartitionConfig:
        return resolve_entity_config(BUILTIN_PARTITION, self._settings.partitions, label)

    def _zone_config(self, label: str) -> ZoneConfig:
        return resolve_entity_config(BUILTIN_ZONE, self._settings.zones, label)

    def _user_output_config(self, label: str) -> OutputConfig:
        return resolve_entity_config(BUILTIN_USER_OUTPUT, self._settings.user_outputs, label)

    def _descriptor(
        self,
        component: str,
        object_id: str,
        fields: dict[str, Any],
    ) -> Descriptor:
        payload = {
            **fields,
            "availability": {"topic": self._topics.status},
            "device": self.device,
            "qos": self._qos,
        }
        return Descriptor(self._topics.discovery(component, object_id), payload)
