"""Canonical topic layout and inbound command parsing.

Every bridge topic lives under ``{node_id}/alarm``::

    {root}/status                     ← bridge online/offline (retained, LWT)
    {root}/panelstatus                ← panel link health
    {root}/proxystatus                ← relay (proxy) link health
    {root}/systemmessage              ← last device-wide status message
    {root}/systembattery              ← panel battery low/ok
    {root}/republish                  ← control: states|autodiscovery|communications
    {root}/partition/{id}/status      ← alarm state
    {root}/partition/{id}-notready/status
    {root}/partition/{id}/set         ← command (subscribed)
    {root}/zone/{id}                  ← zone attributes (JSON)
    {root}/zone/{id}/status           ← open/closed
    {root}/zone/{id}/battery          ← battery attributes (JSON)
    {root}/zone/{id}/battery/status
    {root}/zone/{id}/alarm/status
    {root}/zone/{id}-bypass/status
    {root}/zone/{id}-bypass/set       ← command (subscribed)
    {root}/output/{id}/status
    {root}/output/{id}/trigger        ← command (subscribed)

Topics are pure functions of (root, kind, id, suffix): no timestamps or
nonces, so repeated calls are byte-identical.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from alarm2mqtt._settings import DiscoverySettings


class CommandKind(StrEnum):
    PARTITION = "partition"
    ZONE_BYPASS = "zone-bypass"
    OUTPUT = "output"


@dataclass(frozen=True, slots=True)
class Command:
    """A parsed inbound command topic."""

    kind: CommandKind
    entity_id: int


# (segment, id suffix, action) for the three command patterns
_COMMAND_PATTERNS: tuple[tuple[str, str, str, CommandKind], ...] = (
    ("partition", "", "set", CommandKind.PARTITION),
    ("zone", "-bypass", "set", CommandKind.ZONE_BYPASS),
    ("output", "", "trigger", CommandKind.OUTPUT),
)


class Topics:
    """Builds and parses bridge topics.

    Args:
        node_id: Root segment, e.g. ``"alarm-panel"``.
        discovery_prefix: Discovery namespace root, e.g. ``"homeassistant"``.
        include_node_id: When True, discovery object ids are prefixed with
            the entity label (spaces replaced by dashes) as an extra
            path segment.
    """

    def __init__(
        self,
        *,
        node_id: str,
        discovery_prefix: str = "homeassistant",
        include_node_id: bool = False,
    ) -> None:
        self._node_id = node_id
        self._root = f"{node_id}/alarm"
        self._discovery_prefix = discovery_prefix
        self._include_node_id = include_node_id

    @classmethod
    def from_settings(cls, settings: DiscoverySettings) -> Topics:
        return cls(
            node_id=settings.node_id,
            discovery_prefix=settings.prefix,
            include_node_id=settings.include_node_id,
        )

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def root(self) -> str:
        return self._root

    # -- Bridge-wide ---------------------------------------------------------

    @property
    def status(self) -> str:
        return f"{self._root}/status"

    @property
    def panel_status(self) -> str:
        return f"{self._root}/panelstatus"

    @property
    def proxy_status(self) -> str:
        return f"{self._root}/proxystatus"

    @property
    def system_message(self) -> str:
        return f"{self._root}/systemmessage"

    @property
    def system_battery(self) -> str:
        return f"{self._root}/systembattery"

    @property
    def republish(self) -> str:
        return f"{self._root}/republish"

    @property
    def platform_status(self) -> str:
        """Birth/last-will topic of the automation platform."""
        return f"{self._discovery_prefix}/status"

    # -- Entities ------------------------------------------------------------

    def partition(self, partition_id: int, suffix: str = "status") -> str:
        return f"{self._root}/partition/{partition_id}/{suffix}"

    def partition_not_ready(self, partition_id: int) -> str:
        return f"{self._root}/partition/{partition_id}-notready/status"

    def partition_command(self, partition_id: int) -> str:
        return self.partition(partition_id, "set")

    def zone_attributes(self, zone_id: int) -> str:
        return f"{self._root}/zone/{zone_id}"

    def zone(self, zone_id: int, suffix: str = "status") -> str:
        return f"{self._root}/zone/{zone_id}/{suffix}"

    def zone_battery_attributes(self, zone_id: int) -> str:
        return f"{self._root}/zone/{zone_id}/battery"

    def zone_bypass(self, zone_id: int, suffix: str = "status") -> str:
        return f"{self._root}/zone/{zone_id}-bypass/{suffix}"

    def output(self, output_id: int, suffix: str = "status") -> str:
        return f"{self._root}/output/{output_id}/{suffix}"

    def output_command(self, output_id: int) -> str:
        return self.output(output_id, "trigger")

    # -- Discovery -----------------------------------------------------------

    def object_segment(self, label: str, entity_id: int, suffix: str = "") -> str:
        """Discovery object id for an entity.

        ``{id}{suffix}``, or ``{label-with-dashes}/{id}{suffix}`` when
        ``include_node_id`` is set.
        """
        segment = f"{entity_id}{suffix}"
        if self._include_node_id:
            return f"{label.replace(' ', '-')}/{segment}"
        return segment

    def discovery(self, component: str, object_id: str) -> str:
        return f"{self._discovery_prefix}/{component}/{self._node_id}/{object_id}/config"

    # -- Parsing -------------------------------------------------------------

    def parse_command(self, topic: str) -> Command | None:
        """Parse an inbound command topic.

        Recognises ``{root}/partition/{id}/set``,
        ``{root}/zone/{id}-bypass/set`` and ``{root}/output/{id}/trigger``.

        Returns:
            The parsed :class:`Command`, or ``None`` for any other topic
            (including malformed ids).
        """
        prefix = self._root + "/"
        if not topic.startswith(prefix):
            return None
        parts = topic[len(prefix) :].split("/")
        if len(parts) != 3:  # noqa: PLR2004
            return None
        segment, id_part, action = parts
        for expected_segment, id_suffix, expected_action, kind in _COMMAND_PATTERNS:
            if segment != expected_segment or action != expected_action:
                continue
            if id_suffix:
                if not id_part.endswith(id_suffix):
                    continue
                id_part = id_part[: -len(id_suffix)]
            if not id_part.isdigit():
                return None
            return Command(kind=kind, entity_id=int(id_part))
        return None

    @property
    def control_subscriptions(self) -> list[str]:
        """Control topics subscribed alongside the per-entity command topics."""
        return [self.platform_status, self.republish]
