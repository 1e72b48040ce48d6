"""Bridge input events.

The bridge consumes a single ordered stream of these value objects,
merged from three sources:

- the panel transport (link lifecycle, clock, faults, entity changes),
- the MQTT client (link lifecycle, inbound messages),
- the scheduler (timer expiry).

Each event type is handled by exactly one transition method in
:class:`~alarm2mqtt._bridge.Bridge`.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Panel link
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PanelLinkUp:
    """Panel finished initialisation and entity registries are populated."""


@dataclass(frozen=True, slots=True)
class PanelLinkDown:
    """Panel socket disconnected."""


@dataclass(frozen=True, slots=True)
class PanelCommReady:
    """Panel communications ready again after a socket-level reconnect."""


@dataclass(frozen=True, slots=True)
class PanelClock:
    """Periodic panel keepalive."""


@dataclass(frozen=True, slots=True)
class ProxyLinkChanged:
    """Relay (proxy) side of the panel link connected or disconnected."""

    connected: bool


@dataclass(frozen=True, slots=True)
class PanelFault:
    """Transport error signal, classified by the reconnection supervisor."""

    category: str
    detail: str


# ---------------------------------------------------------------------------
# Panel entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PartitionChanged:
    partition_id: int
    event: str


@dataclass(frozen=True, slots=True)
class ZoneChanged:
    zone_id: int
    event: str


@dataclass(frozen=True, slots=True)
class OutputChanged:
    output_id: int
    event: str


@dataclass(frozen=True, slots=True)
class SystemChanged:
    event: str


# ---------------------------------------------------------------------------
# MQTT
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BusLinkUp:
    """MQTT client (re)connected to the broker."""


@dataclass(frozen=True, slots=True)
class BusLinkDown:
    """MQTT client lost the broker."""


@dataclass(frozen=True, slots=True)
class InboundMessage:
    topic: str
    payload: str


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TimerFired:
    """A keyed scheduler deadline elapsed."""

    key: str


type PanelEvent = (
    PanelLinkUp
    | PanelLinkDown
    | PanelCommReady
    | PanelClock
    | ProxyLinkChanged
    | PanelFault
    | PartitionChanged
    | ZoneChanged
    | OutputChanged
    | SystemChanged
)
type BridgeEvent = PanelEvent | BusLinkUp | BusLinkDown | InboundMessage | TimerFired
