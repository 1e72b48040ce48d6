"""Connection-readiness gate for the two independently flapping links.

The bridge is only useful while both the panel link and the MQTT link
are up.  :class:`ReadinessGate` folds the four link callbacks into one
of four transitions the bridge acts on:

=================  ============================================
``FIRST_READY``    both links up for the first time: discovery,
                   initial states, online, subscriptions
``READY_AGAIN``    both links up again later: online only
``PANEL_LOST``     panel link went down: publish offline
``NONE``           nothing to do
=================  ============================================

``initialized`` and ``listeners_installed`` only ever flip from False
to True, so discovery and subscriptions happen exactly once per process
lifetime no matter how often the links toggle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)


class GateTransition(Enum):
    NONE = auto()
    FIRST_READY = auto()
    READY_AGAIN = auto()
    PANEL_LOST = auto()


@dataclass
class LinkReadiness:
    """Process-wide link state, owned by the bridge's event loop."""

    panel: bool = False
    bus: bool = False
    initialized: bool = False
    listeners_installed: bool = False

    @property
    def ready(self) -> bool:
        return self.panel and self.bus


class ReadinessGate:
    """Two-input gate with a fire-once first transition."""

    def __init__(self, state: LinkReadiness | None = None) -> None:
        self.state = state if state is not None else LinkReadiness()

    @property
    def ready(self) -> bool:
        return self.state.ready

    @property
    def listeners_installed(self) -> bool:
        return self.state.listeners_installed

    def panel_up(self) -> GateTransition:
        if self.state.panel:
            return GateTransition.NONE
        self.state.panel = True
        return self._on_link_up("Panel")

    def bus_up(self) -> GateTransition:
        if self.state.bus:
            return GateTransition.NONE
        self.state.bus = True
        return self._on_link_up("MQTT")

    def panel_down(self) -> GateTransition:
        """Panel link lost.

        Returns ``PANEL_LOST`` even when the panel was already marked
        down, so a repeated disconnect signal still refreshes the
        offline status.
        """
        self.state.panel = False
        logger.info("Panel link down")
        return GateTransition.PANEL_LOST

    def bus_down(self) -> GateTransition:
        self.state.bus = False
        logger.info("MQTT link down")
        return GateTransition.NONE

    def mark_initialized(self) -> None:
        self.state.initialized = True

    def mark_listeners_installed(self) -> None:
        self.state.listeners_installed = True

    def _on_link_up(self, which: str) -> GateTransition:
        if not self.state.panel:
            logger.info("%s link up, panel is not connected, waiting", which)
            return GateTransition.NONE
        if not self.state.bus:
            logger.info("%s link up, MQTT is not connected, waiting", which)
            return GateTransition.NONE
        logger.info("Panel and MQTT communications are ready")
        if not self.state.initialized:
            return GateTransition.FIRST_READY
        return GateTransition.READY_AGAIN
