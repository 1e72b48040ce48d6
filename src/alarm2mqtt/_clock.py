"""Monotonic clock and keyed scheduler ports with asyncio adapters.

Provides :class:`ClockPort` and :class:`SchedulerPort` (Protocols) plus
:class:`SystemClock` and :class:`LoopScheduler` for production use.

The scheduler is the only delayed-execution primitive in the bridge.
Every deadline is identified by a string key; scheduling a key that is
already pending cancels and replaces the earlier deadline, so timers
never stack.

**Why monotonic?** ``time.monotonic()`` is immune to NTP adjustments and
manual system-clock changes, making it suitable for deadlines.  The
epoch is arbitrary — only *differences* between ``now()`` calls are
meaningful (PEP 418).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]
"""Synchronous callback invoked when a deadline elapses."""


@runtime_checkable
class ClockPort(Protocol):
    """Monotonic clock for timing measurements."""

    def now(self) -> float:
        """Return monotonic time in seconds."""
        ...


@runtime_checkable
class SchedulerPort(Protocol):
    """Keyed one-shot deadlines.

    Implementations must invoke callbacks on the event-loop thread and
    must never run two deadlines for the same key.
    """

    def now(self) -> float: ...

    def call_later(self, key: str, delay: float, callback: TimerCallback) -> None:
        """Run *callback* after *delay* seconds, replacing any pending *key*."""
        ...

    def cancel(self, key: str) -> bool:
        """Cancel the deadline for *key*.  Returns whether one was pending."""
        ...

    def pending(self, key: str) -> bool: ...


class SystemClock:
    """Production clock wrapping ``time.monotonic()``."""

    def now(self) -> float:
        """Return monotonic time in seconds."""
        return time.monotonic()


class LoopScheduler:
    """Scheduler backed by ``loop.call_later`` on the running event loop.

    Must be used from inside a running loop.
    """

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, key: str, delay: float, callback: TimerCallback) -> None:
        self.cancel(key)
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            self._handles.pop(key, None)
            try:
                callback()
            except Exception:
                logger.exception("Timer callback for '%s' failed", key)

        self._handles[key] = loop.call_later(delay, _fire)
        logger.debug("Scheduled '%s' in %.1fs", key, delay)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug("Cancelled '%s'", key)
        return True

    def pending(self, key: str) -> bool:
        return key in self._handles

    def cancel_all(self) -> None:
        """Cancel every pending deadline (used at shutdown)."""
        for key in list(self._handles):
            self.cancel(key)
