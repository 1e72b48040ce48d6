"""Entity registry — partitions, zones and outputs as the panel reports them.

The panel transport owns these objects and mutates their flags in place
when the panel signals a change.  The bridge only reads them: output
toggles go through the panel and come back as events, the bridge never
writes ``Output.active`` itself.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

ENTRY_EXIT_ZONE_TYPE = 3
WIRELESS_TECH = "W"
GROUP_LETTERS = ("A", "B", "C", "D")


@dataclass
class Partition:
    """An independently armable group of zones."""

    id: int
    label: str
    armed_away: bool = False
    home_stay: bool = False
    group_a: bool = False
    group_b: bool = False
    group_c: bool = False
    group_d: bool = False
    alarm: bool = False
    ready: bool = True
    exists: bool = True

    def group_armed(self, letter: str) -> bool:
        """Whether arming group *letter* (``"A"``–``"D"``) is active."""
        return bool(getattr(self, f"group_{letter.lower()}"))


@dataclass
class Zone:
    """A single sensor input."""

    id: int
    label: str
    tech: str = ""
    tech_label: str = ""
    type: int = 0
    type_label: str = ""
    open: bool = False
    armed: bool = False
    alarm: bool = False
    tamper: bool = False
    low_battery: bool = False
    bypassed: bool = False
    not_used: bool = False

    @property
    def wireless(self) -> bool:
        return self.tech == WIRELESS_TECH


@dataclass
class Output:
    """A panel-controlled relay.

    Pulsed outputs behave as stateless buttons, the others as switches.
    """

    id: int
    label: str
    user_usable: bool = True
    pulsed: bool = False
    active: bool = False


@dataclass
class SystemStatus:
    """Device-wide health."""

    low_battery: bool = False
    message: str = ""


@dataclass(frozen=True, slots=True)
class PanelInfo:
    """Static panel identity used in discovery descriptors."""

    manufacturer: str = ""
    model: str = "unknown"
    type: str = ""
    firmware: str = ""


class EntityRegistry[T: (Partition, Zone, Output)]:
    """Read-only, id-indexed view of one entity kind.

    Iteration and :attr:`values` follow ascending id order.
    """

    def __init__(self, entities: Iterable[T] = ()) -> None:
        self._entities: dict[int, T] = {e.id: e for e in entities}

    def by_id(self, entity_id: int | str) -> T:
        """Return the entity with *entity_id*.

        Raises:
            KeyError: If the panel never reported that id.
        """
        key = int(entity_id)
        try:
            return self._entities[key]
        except KeyError:
            msg = f"Unknown id {key}"
            raise KeyError(msg) from None

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    @property
    def values(self) -> list[T]:
        return [self._entities[k] for k in sorted(self._entities)]

    def __iter__(self) -> Iterator[T]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self._entities)


# ---------------------------------------------------------------------------
# Active-entity selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EntitySelection:
    """Which entities the bridge exposes.

    Built once per discovery cycle from the registries so that discovery,
    state publication and command subscriptions agree on the same set.
    """

    partitions: list[Partition] = field(default_factory=list)
    zones: list[Zone] = field(default_factory=list)
    bypass_zones: list[Zone] = field(default_factory=list)
    battery_zones: list[Zone] = field(default_factory=list)
    toggle_outputs: list[Output] = field(default_factory=list)
    button_outputs: list[Output] = field(default_factory=list)
    system_outputs: list[Output] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        partitions: EntityRegistry[Partition],
        zones: EntityRegistry[Zone],
        outputs: EntityRegistry[Output],
        *,
        exclude_entry_exit: bool = True,
    ) -> EntitySelection:
        active_zones = [z for z in zones if not z.not_used]
        return cls(
            partitions=[p for p in partitions if p.exists],
            zones=active_zones,
            bypass_zones=[
                z
                for z in active_zones
                if not (exclude_entry_exit and z.type == ENTRY_EXIT_ZONE_TYPE)
            ],
            battery_zones=[z for z in active_zones if z.wireless],
            toggle_outputs=[o for o in outputs if o.user_usable and not o.pulsed],
            button_outputs=[o for o in outputs if o.user_usable and o.pulsed],
            system_outputs=[o for o in outputs if not o.user_usable and o.label],
        )
