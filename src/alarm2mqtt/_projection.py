"""State projection: entity fields → external payload vocabulary.

Pure functions, no I/O.  Boolean projections use the strings ``"1"`` and
``"0"`` that the discovery descriptors declare as ``payload_on`` /
``payload_off``.
"""

from __future__ import annotations

import json

from alarm2mqtt._arming import DISARMED, TRIGGERED, ArmingModes, native_state
from alarm2mqtt._errors import MappingFault
from alarm2mqtt._model import Output, Partition, Zone

ON = "1"
OFF = "0"

OUTPUT_EVENTS_ON = frozenset({"Activated", "Pulsed"})
OUTPUT_EVENTS = frozenset({"Activated", "Deactivated", "Pulsed"})


def _flag(value: bool) -> str:
    return ON if value else OFF


def alarm_state(partition: Partition, modes: ArmingModes) -> str:
    """Canonical alarm state for *partition*.

    ``triggered`` wins over everything, then ``disarmed`` when no arm
    flag is set; otherwise the active native variant is reverse-mapped
    through *modes*.

    Raises:
        MappingFault: If the active variant has no canonical code.
    """
    if partition.alarm:
        return TRIGGERED
    native = native_state(partition)
    if native is None:
        return DISARMED
    code = modes.canonical_for(native)
    if code is None:
        raise MappingFault(partition.id, native)
    return code


def not_ready_state(partition: Partition) -> str:
    """``"1"`` while the partition is *not* ready to arm."""
    return _flag(not partition.ready)


def zone_open_state(zone: Zone) -> str:
    return _flag(zone.open)


def zone_battery_state(zone: Zone) -> str:
    return _flag(zone.low_battery)


def zone_bypass_state(zone: Zone) -> str:
    return _flag(zone.bypassed)


def zone_alarm_state(zone: Zone) -> str:
    """``"1"`` only when the zone is both in alarm and armed."""
    return _flag(zone.alarm and zone.armed)


def output_state(output: Output, event: str | None = None) -> tuple[str, str]:
    """Return ``(payload, text)`` for *output*.

    A transient *event* (``Activated``, ``Deactivated``, ``Pulsed``)
    takes precedence over the stored ``active`` flag for this one
    projection, covering the race where the event arrives before the
    panel updated the field.
    """
    if event in OUTPUT_EVENTS:
        return (ON if event in OUTPUT_EVENTS_ON else OFF), event
    if output.active:
        return ON, "Activated"
    return OFF, "Deactivated"


def zone_attributes(zone: Zone) -> str:
    """JSON attribute blob published beside the zone state."""
    return json.dumps(
        {
            "id": zone.id,
            "alarm": zone.alarm,
            "arm": zone.armed,
            "label": zone.label,
            "type": zone.type,
            "typeLabel": zone.type_label,
            "tech": zone.tech,
            "techLabel": zone.tech_label,
            "tamper": zone.tamper,
            "low_battery": zone.low_battery,
            "bypass": zone.bypassed,
        },
    )


def zone_battery_attributes(zone: Zone) -> str:
    return json.dumps(
        {
            "id": zone.id,
            "label": zone.label,
            "type": zone.type,
            "typeLabel": zone.type_label,
            "tech": zone.tech,
            "techLabel": zone.tech_label,
            "tamper": zone.tamper,
            "bypass": zone.bypassed,
        },
    )
