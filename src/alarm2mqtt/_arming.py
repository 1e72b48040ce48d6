"""Arming-mode table: canonical arm codes ↔ native panel variants.

The automation platform speaks a fixed vocabulary (``armed_away``,
``armed_home``, ``armed_night``, ``armed_vacation``,
``armed_custom_bypass``); the panel only knows away, home-stay and the
four lettered groups.  Each partition label resolves its own mapping
(label override over ``default`` over the built-in table) once per
discovery cycle.

Reverse lookup (native → canonical) walks the canonical codes in the
fixed priority order of :data:`ARM_CODES`, so a configuration that maps
two codes to the same variant resolves to the earlier code.  Such
configurations are legal but logged once when the table is built.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from alarm2mqtt._errors import ConfigurationError
from alarm2mqtt._model import GROUP_LETTERS, Partition
from alarm2mqtt._settings import (
    BUILTIN_PARTITION,
    ArmingModesConfig,
    PartitionConfig,
    resolve_entity_config,
)

logger = logging.getLogger(__name__)

ARMED_AWAY = "armed_away"
ARMED_HOME = "armed_home"
ARMED_NIGHT = "armed_night"
ARMED_VACATION = "armed_vacation"
ARMED_CUSTOM_BYPASS = "armed_custom_bypass"
DISARMED = "disarmed"
TRIGGERED = "triggered"
ARMING = "arming"

ARM_CODES: tuple[str, ...] = (
    ARMED_AWAY,
    ARMED_HOME,
    ARMED_NIGHT,
    ARMED_VACATION,
    ARMED_CUSTOM_BYPASS,
)
"""Canonical arm codes in reverse-lookup priority order."""

COMMAND_PAYLOADS: dict[str, str] = {
    "DISARM": DISARMED,
    "ARM_AWAY": ARMED_AWAY,
    "ARM_HOME": ARMED_HOME,
    "ARM_NIGHT": ARMED_NIGHT,
    "ARM_VACATION": ARMED_VACATION,
    "ARM_CUSTOM_BYPASS": ARMED_CUSTOM_BYPASS,
}
"""Inbound partition command payload → canonical code."""

# Supported-feature names the automation platform expects per arm code
_FEATURES: dict[str, str] = {
    ARMED_AWAY: "arm_away",
    ARMED_HOME: "arm_home",
    ARMED_NIGHT: "arm_night",
    ARMED_VACATION: "arm_vacation",
    ARMED_CUSTOM_BYPASS: "arm_custom_bypass",
}


@dataclass(frozen=True, slots=True)
class ArmAction:
    """Panel action that realises a native variant.

    ``method`` names a :class:`~alarm2mqtt._panel.PanelPort` coroutine;
    ``group`` is the group letter for ``arm_group``.
    """

    method: str
    group: str | None = None


def action_for(native: str) -> ArmAction:
    """Return the panel action for a native variant.

    Raises:
        ValueError: If *native* is not a known variant.
    """
    if native == ARMED_AWAY:
        return ArmAction("arm_away")
    if native == ARMED_HOME:
        return ArmAction("arm_home")
    prefix = "armed_group_"
    if native.startswith(prefix) and native[len(prefix) :] in GROUP_LETTERS:
        return ArmAction("arm_group", group=native[len(prefix) :])
    msg = f"Unknown native arm variant '{native}'"
    raise ValueError(msg)


def native_state(partition: Partition) -> str | None:
    """Return the native variant currently active on *partition*.

    Flags are checked away, home-stay, then groups A–D.  ``None`` means
    no arm flag is set.
    """
    if partition.armed_away:
        return ARMED_AWAY
    if partition.home_stay:
        return ARMED_HOME
    for letter in GROUP_LETTERS:
        if partition.group_armed(letter):
            return f"armed_group_{letter}"
    return None


@dataclass(frozen=True, slots=True)
class ArmingModes:
    """Resolved mapping for one partition label."""

    label: str
    modes: Mapping[str, str]

    @classmethod
    def from_config(cls, label: str, config: ArmingModesConfig) -> ArmingModes:
        """Build and validate a mapping.

        Raises:
            ConfigurationError: If any canonical arm code is left unmapped.
        """
        modes = {code: getattr(config, code) for code in ARM_CODES}
        missing = [code for code, native in modes.items() if native is None]
        if missing:
            msg = f"Partition '{label}' has no arming mode for {', '.join(missing)}"
            raise ConfigurationError(msg)
        instance = cls(label=label, modes=modes)
        for native, codes in instance.ambiguities().items():
            logger.info(
                "Partition '%s': %s all map to %s; state '%s' is reported",
                label,
                ", ".join(codes),
                native,
                codes[0],
            )
        return instance

    def native_for(self, code: str) -> str:
        """Native variant for canonical *code*.

        Raises:
            KeyError: If *code* is not an arm code.
        """
        return self.modes[code]

    def canonical_for(self, native: str) -> str | None:
        """Canonical code for *native*, by :data:`ARM_CODES` priority."""
        for code in ARM_CODES:
            if self.modes[code] == native:
                return code
        return None

    def ambiguities(self) -> dict[str, list[str]]:
        """Native variants targeted by more than one canonical code."""
        grouped: dict[str, list[str]] = {}
        for code in ARM_CODES:
            grouped.setdefault(self.modes[code], []).append(code)
        return {native: codes for native, codes in grouped.items() if len(codes) > 1}

    @property
    def supported_features(self) -> list[str]:
        return [_FEATURES[code] for code in ARM_CODES]


@dataclass
class ArmingModeTable:
    """Per-label cache of resolved :class:`ArmingModes`.

    Rebuilt on every discovery cycle via :meth:`rebuild` so that the
    descriptors and the state projection agree on the same mapping.
    """

    section: dict[str, PartitionConfig] = field(default_factory=dict)
    _cache: dict[str, ArmingModes] = field(default_factory=dict, init=False)

    def rebuild(self, partitions: Iterable[Partition]) -> None:
        self._cache.clear()
        for partition in partitions:
            self.for_partition(partition)

    def for_partition(self, partition: Partition) -> ArmingModes:
        cached = self._cache.get(partition.label)
        if cached is None:
            resolved = resolve_entity_config(
                BUILTIN_PARTITION,
                self.section,
                partition.label,
            )
            cached = ArmingModes.from_config(partition.label, resolved.arming_modes)
            self._cache[partition.label] = cached
        return cached
