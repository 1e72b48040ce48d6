"""Transport error classification and reconnection supervision.

The panel transport reconnects on its own; the bridge only has to react
to what it reports.  :func:`classify` maps an error signal to a
:class:`Reaction`; :class:`ReconnectSupervisor` carries it out.

Rules:

- *new socket being connected* → tear down and reattach the socket
  listener set, once per signal, so handlers never accumulate across
  automatic reconnects
- host unreachable / connection reset → mark the panel link down and
  flag a reconnect as desired (the transport performs it)
- anything else → logged, ignored
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from alarm2mqtt._errors import TransportFault

logger = logging.getLogger(__name__)

NEW_SOCKET_MARKERS = ("newsocket", "new socket")
LINK_DOWN_CODES = ("EHOSTUNREACH", "ECONNRESET")


@dataclass(frozen=True, slots=True)
class Reaction:
    mark_link_down: bool = False
    teardown_listeners: bool = False
    schedule_reconnect: bool = False

    @property
    def ignored(self) -> bool:
        return not (
            self.mark_link_down or self.teardown_listeners or self.schedule_reconnect
        )


IGNORE = Reaction()


def classify(category: str, detail: str) -> Reaction:
    """Decide how to react to a transport error signal."""
    text = f"{category} {detail}"
    lowered = text.lower()
    if any(marker in lowered for marker in NEW_SOCKET_MARKERS):
        return Reaction(teardown_listeners=True)
    if any(code in text.upper() for code in LINK_DOWN_CODES):
        return Reaction(mark_link_down=True, schedule_reconnect=True)
    return IGNORE


class ReconnectSupervisor:
    """Applies :class:`Reaction`s to the panel and the bridge.

    Args:
        detach: Removes the bridge's socket listener from the panel.
        attach: Installs the bridge's socket listener on the panel.
        link_down: Called when the panel link must be treated as down.
    """

    def __init__(
        self,
        *,
        detach: Callable[[], None],
        attach: Callable[[], None],
        link_down: Callable[[], None],
    ) -> None:
        self._detach = detach
        self._attach = attach
        self._link_down = link_down
        self.reconnect_desired = False
        self.reattach_count = 0

    def handle(self, fault: TransportFault) -> Reaction:
        reaction = classify(fault.category, fault.detail)
        if reaction.ignored:
            logger.warning("Unhandled panel error ignored: %s", fault)
            return reaction
        logger.warning("Panel error: %s", fault)
        if reaction.teardown_listeners:
            self._detach()
            self._attach()
            self.reattach_count += 1
            logger.info("New panel socket, socket listeners reattached")
        if reaction.mark_link_down:
            self._link_down()
        if reaction.schedule_reconnect:
            self.reconnect_desired = True
            logger.info("Waiting for the panel transport to reconnect")
        return reaction

    def link_restored(self) -> None:
        if self.reconnect_desired:
            logger.info("Panel link restored")
        self.reconnect_desired = False
