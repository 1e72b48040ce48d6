"""Panel port and in-memory adapter.

Provides :class:`PanelPort` (Protocol), the contract the bridge expects
from a device transport, and :class:`MockPanel`, an in-memory
implementation used by the test suite and by ``--dry-run``.

The transport exposes two listener sets:

- **entity listeners** receive link-up, clock and entity change events;
  the bridge installs its listener once per process lifetime.
- **socket listeners** receive socket-scoped signals (disconnect,
  communications ready, proxy link, errors); they are torn down and
  reattached whenever the transport reports a new socket.

Real transports (TCP framing, encryption, checksums) are out of scope
for this package and are plugged in via ``panel.adapter``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable
from typing import Any, Literal, Protocol, runtime_checkable

from alarm2mqtt._events import (
    OutputChanged,
    PanelClock,
    PanelCommReady,
    PanelEvent,
    PanelFault,
    PanelLinkDown,
    PanelLinkUp,
    PartitionChanged,
    ProxyLinkChanged,
    ZoneChanged,
)
from alarm2mqtt._model import (
    EntityRegistry,
    Output,
    PanelInfo,
    Partition,
    SystemStatus,
    Zone,
)

logger = logging.getLogger(__name__)

PanelListener = Callable[[PanelEvent], None]

SOCKET_EVENTS: tuple[type, ...] = (
    PanelLinkDown,
    PanelCommReady,
    ProxyLinkChanged,
    PanelFault,
)
"""Event types delivered to socket listeners rather than entity listeners."""

# ---------------------------------------------------------------------------
# Port (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class PanelPort(Protocol):
    """Contract between the bridge and a panel transport.

    Action coroutines return ``True`` when the panel acknowledged the
    command.  The resulting state change arrives later as an event.
    """

    @property
    def partitions(self) -> EntityRegistry[Partition]: ...

    @property
    def zones(self) -> EntityRegistry[Zone]: ...

    @property
    def outputs(self) -> EntityRegistry[Output]: ...

    @property
    def system(self) -> SystemStatus: ...

    @property
    def info(self) -> PanelInfo: ...

    @property
    def socket_mode(self) -> Literal["direct", "proxy"]: ...

    @property
    def proxy_connected(self) -> bool: ...

    async def connect(self) -> None:
        """Open the link.

        May raise.  The bridge then reports the panel down and waits for
        the adapter to emit ``PanelLinkUp`` once it reconnects.
        """
        ...

    async def disconnect(self) -> None: ...

    async def reconnect(self) -> None: ...

    async def disarm(self, partition_id: int) -> bool: ...

    async def arm_home(self, partition_id: int) -> bool: ...

    async def arm_away(self, partition_id: int) -> bool: ...

    async def arm_group(self, partition_id: int, group: str) -> bool: ...

    async def toggle_bypass(self, zone_id: int) -> bool: ...

    async def toggle_output(self, output_id: int) -> bool: ...

    def add_listener(self, listener: PanelListener) -> None: ...

    def remove_listener(self, listener: PanelListener) -> None: ...

    def add_socket_listener(self, listener: PanelListener) -> None: ...

    def remove_socket_listener(self, listener: PanelListener) -> None: ...


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class MockPanel:
    """In-memory panel that records actions and emits events on demand.

    With ``simulate=True`` the panel applies every acknowledged action to
    its own registry and emits the matching change event, which makes it
    a self-contained stand-in for ``--dry-run``.  Tests usually leave it
    off and drive events explicitly via :meth:`emit`.

    Args:
        partitions: Initial partitions.
        zones: Initial zones.
        outputs: Initial outputs.
        socket_mode: ``"direct"`` or ``"proxy"``.
        simulate: Apply actions to the registry and emit events.
        clock_interval: When set, emit :class:`PanelClock` periodically
            while connected.
    """

    def __init__(
        self,
        partitions: Iterable[Partition] = (),
        zones: Iterable[Zone] = (),
        outputs: Iterable[Output] = (),
        *,
        socket_mode: Literal["direct", "proxy"] = "direct",
        info: PanelInfo | None = None,
        simulate: bool = False,
        clock_interval: float | None = None,
        **_options: Any,
    ) -> None:
        self._partitions = EntityRegistry(partitions)
        self._zones = EntityRegistry(zones)
        self._outputs = EntityRegistry(outputs)
        self._system = SystemStatus()
        self._info = info if info is not None else PanelInfo(model="MockPanel")
        self._socket_mode: Literal["direct", "proxy"] = socket_mode
        self._simulate = simulate
        self._clock_interval = clock_interval
        self._clock_task: asyncio.Task[None] | None = None
        self._listeners: list[PanelListener] = []
        self._socket_listeners: list[PanelListener] = []
        self.proxy_connected = False
        self.connected = False
        self.actions: list[tuple[Any, ...]] = []
        self.results: dict[str, bool] = {}

    @classmethod
    def demo(cls, **kwargs: Any) -> MockPanel:
        """A small simulated installation for dry runs."""
        kwargs.setdefault("simulate", True)
        kwargs.setdefault("clock_interval", 10.0)
        return cls(
            partitions=[Partition(1, "House"), Partition(2, "Garage")],
            zones=[
                Zone(1, "Front Door", tech="B", tech_label="Wired", type=3),
                Zone(2, "Hallway", tech="B", tech_label="Wired", type=1),
                Zone(3, "Kitchen Window", tech="W", tech_label="Wireless", type=1),
            ],
            outputs=[
                Output(1, "Garden Lights"),
                Output(2, "Gate", pulsed=True),
                Output(3, "Siren", user_usable=False),
            ],
            **kwargs,
        )

    # -- PanelPort properties -----------------------------------------------

    @property
    def partitions(self) -> EntityRegistry[Partition]:
        return self._partitions

    @property
    def zones(self) -> EntityRegistry[Zone]:
        return self._zones

    @property
    def outputs(self) -> EntityRegistry[Output]:
        return self._outputs

    @property
    def system(self) -> SystemStatus:
        return self._system

    @property
    def info(self) -> PanelInfo:
        return self._info

    @property
    def socket_mode(self) -> Literal["direct", "proxy"]:
        return self._socket_mode

    # -- Lifecycle ----------------------------------------------------------

    async def connect(self) -> None:
        self.connected = True
        self.emit(PanelLinkUp())
        if self._clock_interval is not None and self._clock_task is None:
            self._clock_task = asyncio.create_task(self._clock_loop(self._clock_interval))

    async def disconnect(self) -> None:
        if self._clock_task is not None:
            self._clock_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._clock_task
            self._clock_task = None
        if self.connected:
            self.connected = False
            self.emit(PanelLinkDown())

    async def reconnect(self) -> None:
        self.actions.append(("reconnect",))
        await self.disconnect()
        await self.connect()

    async def _clock_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.emit(PanelClock())

    # -- Actions ------------------------------------------------------------

    async def disarm(self, partition_id: int) -> bool:
        return self._act("disarm", partition_id)

    async def arm_home(self, partition_id: int) -> bool:
        return self._act("arm_home", partition_id)

    async def arm_away(self, partition_id: int) -> bool:
        return self._act("arm_away", partition_id)

    async def arm_group(self, partition_id: int, group: str) -> bool:
        return self._act("arm_group", partition_id, group)

    async def toggle_bypass(self, zone_id: int) -> bool:
        return self._act("toggle_bypass", zone_id)

    async def toggle_output(self, output_id: int) -> bool:
        return self._act("toggle_output", output_id)

    def _act(self, name: str, *args: Any) -> bool:
        self.actions.append((name, *args))
        ok = self.results.get(name, True)
        if ok and self._simulate:
            self._apply(name, *args)
        return ok

    def _apply(self, name: str, *args: Any) -> None:
        if name in {"disarm", "arm_home", "arm_away", "arm_group"}:
            partition = self._partitions.by_id(args[0])
            partition.armed_away = name == "arm_away"
            partition.home_stay = name == "arm_home"
            for letter in "ABCD":
                armed = name == "arm_group" and args[1] == letter
                setattr(partition, f"group_{letter.lower()}", armed)
            event = {
                "disarm": "Disarmed",
                "arm_home": "HomeStay",
                "arm_away": "Armed",
                "arm_group": "GroupArmed",
            }[name]
            self.emit(PartitionChanged(partition.id, event))
        elif name == "toggle_bypass":
            zone = self._zones.by_id(args[0])
            zone.bypassed = not zone.bypassed
            self.emit(ZoneChanged(zone.id, "Bypassed" if zone.bypassed else "UnBypassed"))
        elif name == "toggle_output":
            output = self._outputs.by_id(args[0])
            if output.pulsed:
                self.emit(OutputChanged(output.id, "Pulsed"))
            else:
                output.active = not output.active
                self.emit(
                    OutputChanged(output.id, "Activated" if output.active else "Deactivated"),
                )

    # -- Listeners ----------------------------------------------------------

    def add_listener(self, listener: PanelListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PanelListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def add_socket_listener(self, listener: PanelListener) -> None:
        self._socket_listeners.append(listener)

    def remove_socket_listener(self, listener: PanelListener) -> None:
        with contextlib.suppress(ValueError):
            self._socket_listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def socket_listener_count(self) -> int:
        return len(self._socket_listeners)

    # -- Test helpers -------------------------------------------------------

    def emit(self, event: PanelEvent) -> None:
        """Deliver *event* to the listener set it belongs to."""
        if isinstance(event, ProxyLinkChanged):
            self.proxy_connected = event.connected
        targets = (
            self._socket_listeners
            if isinstance(event, SOCKET_EVENTS)
            else self._listeners
        )
        for listener in list(targets):
            listener(event)
