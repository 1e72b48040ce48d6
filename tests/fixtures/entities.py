"""Shared entity builders for tests.

Small factories producing panel entities with the flags a test cares
about and neutral defaults for everything else.
"""

from __future__ import annotations

from typing import Any

from alarm2mqtt._model import Output, Partition, Zone


def partition(partition_id: int = 1, label: str = "House", **flags: Any) -> Partition:
    return Partition(partition_id, label, **flags)


def zone(zone_id: int = 1, label: str = "Hallway", **flags: Any) -> Zone:
    flags.setdefault("tech", "B")
    flags.setdefault("type", 1)
    return Zone(zone_id, label, **flags)


def wireless_zone(zone_id: int = 7, label: str = "Patio Door", **flags: Any) -> Zone:
    return zone(zone_id, label, tech="W", tech_label="Wireless", **flags)


def output(output_id: int = 12, label: str = "Garden Lights", **flags: Any) -> Output:
    return Output(output_id, label, **flags)
