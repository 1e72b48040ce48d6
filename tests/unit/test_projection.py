"""Tests for alarm2mqtt._projection — entity state → payloads.

Test Techniques Used:
    - Decision Table: alarm state precedence
    - Specification-based Testing: boolean projections, attribute blobs
    - Error Condition Testing: unmapped native variant
    - Race Coverage: output event overrides stale flag
"""

from __future__ import annotations

import json

import pytest

from alarm2mqtt._arming import ArmingModes, ArmingModeTable
from alarm2mqtt._errors import MappingFault
from alarm2mqtt._projection import (
    OFF,
    ON,
    alarm_state,
    not_ready_state,
    output_state,
    zone_alarm_state,
    zone_attributes,
    zone_battery_attributes,
    zone_battery_state,
    zone_bypass_state,
    zone_open_state,
)
from alarm2mqtt._settings import PartitionConfig
from tests.fixtures.entities import output, partition, wireless_zone, zone


@pytest.fixture
def modes() -> ArmingModes:
    return ArmingModeTable().for_partition(partition())


class TestAlarmState:
    """Partition flags → canonical state.

    Technique: Decision Table.
    """

    def test_disarmed(self, modes: ArmingModes) -> None:
        assert alarm_state(partition(), modes) == "disarmed"

    def test_away(self, modes: ArmingModes) -> None:
        assert alarm_state(partition(armed_away=True), modes) == "armed_away"

    def test_home_stay(self, modes: ArmingModes) -> None:
        assert alarm_state(partition(home_stay=True), modes) == "armed_home"

    def test_alarm_beats_armed(self, modes: ArmingModes) -> None:
        assert alarm_state(partition(armed_away=True, alarm=True), modes) == "triggered"

    def test_alarm_while_disarmed(self, modes: ArmingModes) -> None:
        assert alarm_state(partition(alarm=True), modes) == "triggered"

    def test_unmapped_group_raises(self, modes: ArmingModes) -> None:
        with pytest.raises(MappingFault) as excinfo:
            alarm_state(partition(group_c=True), modes)
        assert excinfo.value.native == "armed_group_C"
        assert excinfo.value.partition_id == 1

    def test_mapped_group(self) -> None:
        table = ArmingModeTable(
            {
                "House": PartitionConfig.model_validate(
                    {"arming_modes": {"armed_night": "armed_group_A"}},
                ),
            },
        )
        modes = table.for_partition(partition())
        assert alarm_state(partition(group_a=True), modes) == "armed_night"


class TestFlags:
    """Boolean projections.

    Technique: Specification-based Testing.
    """

    def test_not_ready_inverts_ready(self) -> None:
        assert not_ready_state(partition(ready=True)) == OFF
        assert not_ready_state(partition(ready=False)) == ON

    def test_zone_flags(self) -> None:
        z = zone(open=True, low_battery=True, bypassed=False)
        assert zone_open_state(z) == ON
        assert zone_battery_state(z) == ON
        assert zone_bypass_state(z) == OFF

    @pytest.mark.parametrize(
        ("alarm", "armed", "expected"),
        [(True, True, ON), (True, False, OFF), (False, True, OFF), (False, False, OFF)],
    )
    def test_zone_alarm_needs_armed(self, alarm: bool, armed: bool, expected: str) -> None:
        assert zone_alarm_state(zone(alarm=alarm, armed=armed)) == expected


class TestOutputState:
    """Output payload and text.

    Technique: Race Coverage — event wins over the stored flag.
    """

    def test_from_flag(self) -> None:
        assert output_state(output(active=True)) == (ON, "Activated")
        assert output_state(output(active=False)) == (OFF, "Deactivated")

    def test_event_overrides_flag(self) -> None:
        assert output_state(output(active=False), "Activated") == (ON, "Activated")
        assert output_state(output(active=True), "Deactivated") == (OFF, "Deactivated")

    def test_pulsed_event_is_on(self) -> None:
        assert output_state(output(), "Pulsed") == (ON, "Pulsed")

    def test_unrelated_event_falls_back_to_flag(self) -> None:
        assert output_state(output(active=True), "Unknown") == (ON, "Activated")


class TestAttributes:
    def test_zone_attributes(self) -> None:
        z = wireless_zone(armed=True, low_battery=True)
        data = json.loads(zone_attributes(z))
        assert data["id"] == 7
        assert data["label"] == "Patio Door"
        assert data["tech"] == "W"
        assert data["techLabel"] == "Wireless"
        assert data["arm"] is True
        assert data["low_battery"] is True
        assert data["bypass"] is False

    def test_battery_attributes_omit_alarm(self) -> None:
        data = json.loads(zone_battery_attributes(wireless_zone()))
        assert "alarm" not in data
        assert data["tamper"] is False
