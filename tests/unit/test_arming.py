"""Tests for alarm2mqtt._arming — arming-mode table.

Test Techniques Used:
    - Specification-based Testing: built-in mapping, panel actions
    - Decision Table: native flag precedence
    - Priority Resolution: reverse lookup with ambiguous mappings
    - Log Capture: ambiguity reported when the table is built
"""

from __future__ import annotations

import logging

import pytest

from alarm2mqtt._arming import (
    ARMED_AWAY,
    ARMED_CUSTOM_BYPASS,
    ARMED_HOME,
    ARMED_NIGHT,
    ARMED_VACATION,
    COMMAND_PAYLOADS,
    ArmAction,
    ArmingModes,
    ArmingModeTable,
    action_for,
    native_state,
)
from alarm2mqtt._errors import ConfigurationError
from alarm2mqtt._settings import ArmingModesConfig, PartitionConfig
from tests.fixtures.entities import partition


def _modes(**overrides: str) -> ArmingModes:
    base = {
        "armed_away": "armed_away",
        "armed_home": "armed_home",
        "armed_night": "armed_group_A",
        "armed_vacation": "armed_group_B",
        "armed_custom_bypass": "armed_group_C",
    }
    base.update(overrides)
    return ArmingModes.from_config("House", ArmingModesConfig.model_validate(base))


# ---------------------------------------------------------------------------
# Native side
# ---------------------------------------------------------------------------


class TestActionFor:
    """Native variant → panel action.

    Technique: Specification-based Testing.
    """

    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            ("armed_away", ArmAction("arm_away")),
            ("armed_home", ArmAction("arm_home")),
            ("armed_group_A", ArmAction("arm_group", group="A")),
            ("armed_group_D", ArmAction("arm_group", group="D")),
        ],
    )
    def test_known_variants(self, native: str, expected: ArmAction) -> None:
        assert action_for(native) == expected

    @pytest.mark.parametrize("native", ["armed_group_E", "armed_night", ""])
    def test_unknown_variant_raises(self, native: str) -> None:
        with pytest.raises(ValueError, match="Unknown native arm variant"):
            action_for(native)


class TestNativeState:
    """Partition flags → active native variant.

    Technique: Decision Table — away beats home beats groups.
    """

    def test_nothing_armed(self) -> None:
        assert native_state(partition()) is None

    def test_away_wins(self) -> None:
        assert native_state(partition(armed_away=True, home_stay=True)) == "armed_away"

    def test_home_before_groups(self) -> None:
        assert native_state(partition(home_stay=True, group_a=True)) == "armed_home"

    def test_first_group_letter(self) -> None:
        assert native_state(partition(group_b=True, group_d=True)) == "armed_group_B"


# ---------------------------------------------------------------------------
# ArmingModes
# ---------------------------------------------------------------------------


class TestArmingModes:
    """Forward and reverse lookup.

    Technique: Priority Resolution.
    """

    def test_forward_lookup(self) -> None:
        modes = _modes()
        assert modes.native_for(ARMED_NIGHT) == "armed_group_A"

    def test_forward_lookup_rejects_non_arm_code(self) -> None:
        with pytest.raises(KeyError):
            _modes().native_for("disarmed")

    def test_reverse_lookup_bijective(self) -> None:
        modes = _modes()
        for code in (ARMED_AWAY, ARMED_HOME, ARMED_NIGHT, ARMED_VACATION, ARMED_CUSTOM_BYPASS):
            assert modes.canonical_for(modes.native_for(code)) == code

    def test_reverse_lookup_unmapped_variant(self) -> None:
        assert _modes().canonical_for("armed_group_D") is None

    def test_ambiguous_mapping_prefers_away(self) -> None:
        modes = _modes(armed_vacation="armed_away")
        assert modes.canonical_for("armed_away") == ARMED_AWAY

    def test_ambiguous_mapping_prefers_home_over_night(self) -> None:
        modes = _modes(armed_night="armed_home", armed_custom_bypass="armed_home")
        assert modes.canonical_for("armed_home") == ARMED_HOME
        assert modes.ambiguities() == {
            "armed_home": [ARMED_HOME, ARMED_NIGHT, ARMED_CUSTOM_BYPASS],
        }

    def test_ambiguity_logged_once_at_build(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="alarm2mqtt._arming"):
            _modes(armed_vacation="armed_away")
        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 1
        assert "armed_away, armed_vacation all map to armed_away" in messages[0]

    def test_missing_code_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="armed_night"):
            ArmingModes.from_config(
                "House",
                ArmingModesConfig(armed_away="armed_away", armed_home="armed_home"),
            )

    def test_supported_features_cover_all_codes(self) -> None:
        assert _modes().supported_features == [
            "arm_away",
            "arm_home",
            "arm_night",
            "arm_vacation",
            "arm_custom_bypass",
        ]

    def test_command_payloads(self) -> None:
        assert COMMAND_PAYLOADS["ARM_HOME"] == ARMED_HOME
        assert COMMAND_PAYLOADS["DISARM"] == "disarmed"
        assert "ARM" not in COMMAND_PAYLOADS


# ---------------------------------------------------------------------------
# ArmingModeTable
# ---------------------------------------------------------------------------


class TestArmingModeTable:
    """Per-label resolution and caching.

    Technique: Specification-based Testing.
    """

    def test_builtin_mapping(self) -> None:
        modes = ArmingModeTable().for_partition(partition())
        assert modes.native_for(ARMED_NIGHT) == "armed_home"
        assert modes.native_for(ARMED_VACATION) == "armed_away"
        assert modes.canonical_for("armed_home") == ARMED_HOME

    def test_label_override(self) -> None:
        table = ArmingModeTable(
            {
                "Garage": PartitionConfig.model_validate(
                    {"arming_modes": {"armed_night": "armed_group_A"}},
                ),
            },
        )
        garage = table.for_partition(partition(2, "Garage"))
        house = table.for_partition(partition(1, "House"))
        assert garage.native_for(ARMED_NIGHT) == "armed_group_A"
        assert house.native_for(ARMED_NIGHT) == "armed_home"

    def test_default_applies_to_every_label(self) -> None:
        table = ArmingModeTable(
            {
                "default": PartitionConfig.model_validate(
                    {"arming_modes": {"armed_home": "armed_group_B"}},
                ),
            },
        )
        assert table.for_partition(partition(5, "Shed")).native_for(ARMED_HOME) == (
            "armed_group_B"
        )

    def test_cached_per_label(self) -> None:
        table = ArmingModeTable()
        assert table.for_partition(partition(1)) is table.for_partition(partition(1))

    def test_rebuild_replaces_cache(self) -> None:
        table = ArmingModeTable()
        first = table.for_partition(partition(1))
        table.rebuild([partition(1)])
        assert table.for_partition(partition(1)) is not first
