"""Fault taxonomy for the panel-to-MQTT bridge.

Every fault the bridge can meet is handled where it is detected:

- :class:`TransportFault` — the panel link is unreachable, reset or its
  relay misbehaves.  Routed to the reconnection supervisor.
- :class:`CommandFault` — a panel action was rejected or failed.  The
  inbound command is dropped after logging.
- :class:`MappingFault` — a partition reports a native arm state that
  its arming-mode table does not map.  Logged as a defect; the state
  publish is omitted.
- :class:`ConfigurationError` — unusable settings detected at startup.

None of them propagate out of the event loop.  Link-health topics are
the only user-visible signal of a fault; there is no error topic.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all alarm2mqtt faults."""


class TransportFault(BridgeError):
    """Panel transport reported an error condition."""

    def __init__(self, category: str, detail: str) -> None:
        super().__init__(f"{category}: {detail}")
        self.category = category
        self.detail = detail


class CommandFault(BridgeError):
    """A panel action did not succeed.

    Args:
        action: Name of the panel action (e.g. ``"arm_home"``).
        target: Human-readable target, e.g. ``"partition 1"``.
        reason: Optional extra context.
    """

    def __init__(self, action: str, target: str, reason: str = "") -> None:
        message = f"{action} failed on {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.action = action
        self.target = target


class MappingFault(BridgeError):
    """A native arm state has no canonical counterpart."""

    def __init__(self, partition_id: int, native: str) -> None:
        super().__init__(
            f"Partition {partition_id} reports '{native}' which no arming "
            "mode maps to",
        )
        self.partition_id = partition_id
        self.native = native


class ConfigurationError(BridgeError):
    """Settings cannot be turned into a running bridge."""
