"""Arming retry state machine.

Arming a partition that is not ready fails on the panel.  Rather than
dropping the command, the bridge parks it for a bounded window and
resubmits it as soon as the partition reports ready.

States per partition: ``Idle`` (no entry) and ``AwaitingReady`` (an
:class:`ArmRetryRequest` is stored and its deadline is pending on the
scheduler under ``arm-retry:{id}``).

- ``request`` on a ready partition → ``FORWARD`` (bypasses the table)
- ``request`` on a not-ready, idle partition → ``DEFER`` (timer started)
- ``request`` while already awaiting → ``PENDING`` (no second timer)
- ``ready`` while awaiting → stored request returned, timer cancelled
- ``expire`` → stored request discarded, nothing resubmitted
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from alarm2mqtt._clock import SchedulerPort

logger = logging.getLogger(__name__)

TIMER_PREFIX = "arm-retry:"


class RetryDecision(Enum):
    FORWARD = auto()
    DEFER = auto()
    PENDING = auto()


@dataclass(frozen=True, slots=True)
class ArmRetryRequest:
    partition_id: int
    code: str
    deadline: float


def timer_key(partition_id: int) -> str:
    return f"{TIMER_PREFIX}{partition_id}"


def partition_for_timer(key: str) -> int | None:
    """Inverse of :func:`timer_key`; ``None`` for foreign keys."""
    if not key.startswith(TIMER_PREFIX):
        return None
    suffix = key[len(TIMER_PREFIX) :]
    return int(suffix) if suffix.isdigit() else None


class ArmRetryTable:
    """At most one outstanding arm request per partition.

    Args:
        scheduler: Keyed scheduler owning the deadlines.
        on_expiry: Called with the timer key when a deadline elapses;
            the bridge turns it into an event on its queue and calls
            :meth:`expire` from there.
        timeout: Seconds a request waits for the partition to be ready.
    """

    def __init__(
        self,
        scheduler: SchedulerPort,
        on_expiry: Callable[[str], None],
        *,
        timeout: float = 30.0,
    ) -> None:
        self._scheduler = scheduler
        self._on_expiry = on_expiry
        self._timeout = timeout
        self._requests: dict[int, ArmRetryRequest] = {}

    def request(self, partition_id: int, code: str, *, ready: bool) -> RetryDecision:
        if ready:
            return RetryDecision.FORWARD
        existing = self._requests.get(partition_id)
        if existing is not None:
            logger.info(
                "Partition %d already waiting to %s, ignoring %s",
                partition_id,
                existing.code,
                code,
            )
            return RetryDecision.PENDING
        key = timer_key(partition_id)
        self._requests[partition_id] = ArmRetryRequest(
            partition_id=partition_id,
            code=code,
            deadline=self._scheduler.now() + self._timeout,
        )
        self._scheduler.call_later(key, self._timeout, lambda: self._on_expiry(key))
        logger.info(
            "Partition %d not ready, waiting up to %.0fs to %s",
            partition_id,
            self._timeout,
            code,
        )
        return RetryDecision.DEFER

    def ready(self, partition_id: int) -> ArmRetryRequest | None:
        """Partition became ready: pop and return its pending request."""
        pending = self._requests.pop(partition_id, None)
        if pending is not None:
            self._scheduler.cancel(timer_key(partition_id))
        return pending

    def expire(self, partition_id: int) -> ArmRetryRequest | None:
        """Deadline elapsed: discard the pending request."""
        pending = self._requests.pop(partition_id, None)
        if pending is not None:
            logger.warning(
                "Partition %d did not become ready within %.0fs, %s abandoned",
                partition_id,
                self._timeout,
                pending.code,
            )
        return pending

    def pending(self, partition_id: int) -> ArmRetryRequest | None:
        return self._requests.get(partition_id)

    def __len__(self) -> int:
        return len(self._requests)
