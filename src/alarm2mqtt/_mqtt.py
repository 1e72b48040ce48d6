"""Broker side of the bridge.

:class:`MqttPort` is what the bridge publishes and subscribes through;
:class:`MqttLifecycle` adds the callbacks and start/stop hooks a full
client offers.  :class:`MqttClient` talks to a real broker through
aiomqtt, :class:`MockMqttClient` records everything in memory.

Notes:

- aiomqtt imported lazily inside MqttClient._connection_loop() so the
  mock works without aiomqtt installed
- Subscriptions tracked internally and restored on reconnect, so the
  bridge subscribes once per process lifetime
- Connection lifecycle surfaced through on_connect/on_disconnect
  callbacks; the bridge turns them into bus-link up/down events
- WillConfig describes the last will without importing aiomqtt
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from alarm2mqtt._settings import MqttSettings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

MessageCallback = Callable[[str, str], Awaitable[None]]
"""Async callback receiving (topic, payload) for each inbound message."""

LifecycleCallback = Callable[[], None]
"""Synchronous callback fired on broker connect or disconnect."""

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WillConfig:
    """Last-Will-and-Testament configuration.

    Abstracts ``aiomqtt.Will`` so that callers never depend on the
    aiomqtt package directly.
    """

    topic: str
    payload: str = "offline"
    qos: int = 1
    retain: bool = True


# ---------------------------------------------------------------------------
# Port (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class MqttPort(Protocol):
    """Port contract for MQTT publish/subscribe."""

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None: ...

    async def subscribe(self, topic: str, *, qos: int | None = None) -> None: ...


@runtime_checkable
class MqttLifecycle(Protocol):
    """Connection lifecycle hooks exposed by full clients."""

    def on_message(self, callback: MessageCallback) -> None: ...

    def on_connect(self, callback: LifecycleCallback) -> None: ...

    def on_disconnect(self, callback: LifecycleCallback) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


# ---------------------------------------------------------------------------
# Mock / test-double adapter
# ---------------------------------------------------------------------------


@dataclass
class MockMqttClient:
    """In-memory test double that records MQTT interactions.

    Records publishes and subscriptions for assertion.  Supports
    callback registration, simulated message delivery via ``deliver()``
    and simulated broker connection changes via ``connect()`` /
    ``disconnect()``.
    """

    published: list[tuple[str, str, bool, int]] = field(
        default_factory=list,
    )
    subscriptions: list[str] = field(default_factory=list)
    connected: bool = False
    _callbacks: list[MessageCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )
    _connect_callbacks: list[LifecycleCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )
    _disconnect_callbacks: list[LifecycleCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )

    # -- MqttPort methods --------------------------------------------------

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        """Record a publish call."""
        self.published.append((topic, payload, retain, qos))

    async def subscribe(self, topic: str, *, qos: int | None = None) -> None:  # noqa: ARG002
        """Record a subscribe call."""
        self.subscriptions.append(topic)

    # -- MqttLifecycle methods ----------------------------------------------

    def on_message(self, callback: MessageCallback) -> None:
        """Register an inbound-message callback."""
        self._callbacks.append(callback)

    def on_connect(self, callback: LifecycleCallback) -> None:
        self._connect_callbacks.append(callback)

    def on_disconnect(self, callback: LifecycleCallback) -> None:
        self._disconnect_callbacks.append(callback)

    async def start(self) -> None:
        """Simulate an immediate successful connection."""
        self.connect()

    async def stop(self) -> None:
        self.disconnect()

    # -- Test helpers -------------------------------------------------------

    def connect(self) -> None:
        """Simulate the broker connection coming up."""
        self.connected = True
        for cb in self._connect_callbacks:
            cb()

    def disconnect(self) -> None:
        """Simulate the broker connection dropping."""
        if not self.connected:
            return
        self.connected = False
        for cb in self._disconnect_callbacks:
            cb()

    async def deliver(self, topic: str, payload: str) -> None:
        """Simulate an inbound message by invoking all callbacks."""
        for cb in self._callbacks:
            await cb(topic, payload)

    @property
    def publish_count(self) -> int:
        """Number of recorded publishes."""
        return len(self.published)

    def reset(self) -> None:
        """Clear recorded publishes and subscriptions (callbacks stay)."""
        self.published.clear()
        self.subscriptions.clear()

    def get_messages_for(
        self,
        topic: str,
    ) -> list[tuple[str, bool, int]]:
        """Return ``(payload, retain, qos)`` tuples for *topic*."""
        return [
            (payload, retain, qos)
            for t, payload, retain, qos in self.published
            if t == topic
        ]

    def payloads_for(self, topic: str) -> list[str]:
        """Return just the payloads published to *topic*, in order."""
        return [payload for payload, _retain, _qos in self.get_messages_for(topic)]

# ---------------------------------------------------------------------------
# Real adapter
# ---------------------------------------------------------------------------


class MqttClient:
    """Broker link backed by *aiomqtt*.

    :meth:`start` spawns one background task that owns the connection:
    it connects, replays the tracked subscriptions, fires the connect
    callbacks and then pumps inbound messages until the session ends.
    A broken session fires the disconnect callbacks and is retried after
    ``settings.reconnect_interval`` seconds.
    """

    def __init__(self, settings: MqttSettings, will: WillConfig | None = None) -> None:
        self.settings = settings
        self.will = will
        self._callbacks: list[MessageCallback] = []
        self._connect_callbacks: list[LifecycleCallback] = []
        self._disconnect_callbacks: list[LifecycleCallback] = []
        self._subscriptions: dict[str, int] = {}
        self._client: Any = None
        self._listen_task: asyncio.Task[None] | None = None
        self._stopping = False

    def __repr__(self) -> str:
        return (
            f"MqttClient(host={self.settings.host!r}, port={self.settings.port}, "
            f"connected={self.is_connected})"
        )

    @property
    def is_connected(self) -> bool:
        """True while a broker session is established."""
        return self._client is not None

    # -- MqttPort ----------------------------------------------------------

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        """Send *payload* to *topic*.

        Raises:
            RuntimeError: No broker session is established.
        """
        client = self._client
        if client is None:
            msg = f"MqttClient is not connected, cannot publish to {topic}"
            raise RuntimeError(msg)
        await client.publish(topic, payload, retain=retain, qos=qos)
        logger.debug("MQTT publish %s retain=%s qos=%d", topic, retain, qos)

    async def subscribe(self, topic: str, *, qos: int | None = None) -> None:
        """Subscribe now if connected, and on every later session."""
        level = self.settings.qos if qos is None else qos
        self._subscriptions[topic] = level
        if self._client is not None:
            await self._client.subscribe(topic, qos=level)

    # -- MqttLifecycle -----------------------------------------------------

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)

    def on_connect(self, callback: LifecycleCallback) -> None:
        self._connect_callbacks.append(callback)

    def on_disconnect(self, callback: LifecycleCallback) -> None:
        self._disconnect_callbacks.append(callback)

    async def start(self) -> None:
        if self._listen_task is not None and not self._listen_task.done():
            logger.debug("MQTT connection task already running")
            return
        self._stopping = False
        self._listen_task = asyncio.create_task(
            self._connection_loop(),
            name="mqtt-connection",
        )

    async def stop(self) -> None:
        """Cancel the connection task.  Safe to call more than once."""
        self._stopping = True
        task, self._listen_task = self._listen_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._client = None

    # -- Connection task ---------------------------------------------------

    def _client_options(self, aiomqtt: Any) -> dict[str, Any]:
        secret = self.settings.password
        options: dict[str, Any] = {
            "hostname": self.settings.host,
            "port": self.settings.port,
            "username": self.settings.username,
            "password": secret.get_secret_value() if secret is not None else None,
            "identifier": self.settings.client_id or None,
            "will": None,
        }
        if self.will is not None:
            options["will"] = aiomqtt.Will(
                topic=self.will.topic,
                payload=self.will.payload,
                qos=self.will.qos,
                retain=self.will.retain,
            )
        return options

    async def _connection_loop(self) -> None:
        # Lazy import: MockMqttClient users never need aiomqtt.
        try:
            import aiomqtt  # noqa: PLC0415
        except ModuleNotFoundError as exc:
            msg = "aiomqtt is required to use MqttClient"
            raise RuntimeError(msg) from exc

        while not self._stopping:
            try:
                async with aiomqtt.Client(**self._client_options(aiomqtt)) as client:
                    await self._session(client)
            except asyncio.CancelledError:
                raise
            except aiomqtt.MqttError as exc:
                logger.warning(
                    "MQTT broker %s:%d unavailable (%s), retrying in %.1fs",
                    self.settings.host,
                    self.settings.port,
                    exc,
                    self.settings.reconnect_interval,
                )
                await asyncio.sleep(self.settings.reconnect_interval)
            except Exception:
                logger.exception(
                    "MQTT session failed, reconnecting in %.1fs",
                    self.settings.reconnect_interval,
                )
                await asyncio.sleep(self.settings.reconnect_interval)

    async def _session(self, client: Any) -> None:
        """Run one broker session until it ends or the task is cancelled."""
        for topic, qos in list(self._subscriptions.items()):
            await client.subscribe(topic, qos=qos)
        self._client = client
        logger.info("MQTT connected to %s:%d", self.settings.host, self.settings.port)
        self._notify(self._connect_callbacks)
        try:
            async for message in client.messages:
                await self._dispatch(message)
        finally:
            self._client = None
            self._notify(self._disconnect_callbacks)

    @staticmethod
    def _notify(callbacks: list[LifecycleCallback]) -> None:
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("MQTT lifecycle callback failed")

    async def _dispatch(self, message: Any) -> None:
        """Decode *message* and hand it to every message callback."""
        topic = str(message.topic)
        raw = message.payload
        if raw is None:
            logger.debug("Ignoring empty message on %s", topic)
            return
        if isinstance(raw, (bytes, bytearray)):
            try:
                payload = raw.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Dropping non UTF-8 message on %s", topic)
                return
        else:
            payload = str(raw)
        for callback in self._callbacks:
            try:
                await callback(topic, payload)
            except Exception:
                logger.exception("Message callback failed for %s", topic)
