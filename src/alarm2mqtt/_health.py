"""Bridge availability and link-health reporting.

Publishes the bridge's own online/offline status and the health of the
panel link, the relay (proxy) link and the panel itself over MQTT, with
LWT (Last Will and Testament) integration for crash detection.

Topic layout::

    {root}/status          ← "online" / "offline" (retained, LWT)
    {root}/panelstatus     ← "true" / "false"
    {root}/proxystatus     ← "1" / "0"
    {root}/systemmessage   ← last device-wide status message
    {root}/systembattery   ← "1" when the panel battery is low

Dead-man's switch:

- Every panel clock signal republishes ``"online"`` and re-arms the
  ``heartbeat`` deadline on the scheduler.
- When the deadline elapses without a clock signal the bridge publishes
  ``"offline"``.  The timeout depends on the socket mode (relayed links
  see slower clocks).

LWT integration:

- The broker publishes ``"offline"`` to ``{root}/status`` if the client
  disconnects unexpectedly.
- :func:`build_will_config` creates the matching :class:`WillConfig`.

Publication behaviour:

- **Retained** — status topics are last-known state.
- **Fire-and-forget** — publication failures are logged, never propagated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from alarm2mqtt._clock import SchedulerPort
from alarm2mqtt._mqtt import MqttPort, WillConfig
from alarm2mqtt._settings import PanelSettings
from alarm2mqtt._topics import Topics

logger = logging.getLogger(__name__)

HEARTBEAT_KEY = "heartbeat"
ONLINE = "online"
OFFLINE = "offline"

# ---------------------------------------------------------------------------
# Convenience builders
# ---------------------------------------------------------------------------


def build_will_config(topics: Topics) -> WillConfig:
    """Create a :class:`WillConfig` targeting the bridge status topic.

    Pass this to :class:`~alarm2mqtt._mqtt.MqttClient` so the broker
    publishes ``"offline"`` (QoS 1, retained) on unexpected disconnection.
    """
    return WillConfig(topic=topics.status, payload=OFFLINE, qos=1, retain=True)


def heartbeat_timeout(
    settings: PanelSettings,
    socket_mode: Literal["direct", "proxy"],
) -> float:
    """Seconds without a panel clock signal before the bridge goes offline."""
    if socket_mode == "proxy":
        return settings.heartbeat_timeout_proxy
    return settings.heartbeat_timeout_direct


def proxy_status(socket_mode: str, connected: bool) -> str:
    """``"1"`` only for a relayed link whose relay side is connected."""
    return "1" if socket_mode == "proxy" and connected else "0"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class AvailabilityReporter:
    """Publishes bridge availability and link health to MQTT.

    Parameters
    ----------
    mqtt:
        MQTT port used for publishing.
    topics:
        Topic layout of this bridge.
    scheduler:
        Owner of the ``heartbeat`` deadline.
    on_expiry:
        Called with :data:`HEARTBEAT_KEY` when the deadline elapses; the
        bridge turns it into an event on its queue.
    timeout:
        Heartbeat timeout in seconds.
    qos:
        QoS for every status publication.
    """

    mqtt: MqttPort
    topics: Topics
    scheduler: SchedulerPort
    on_expiry: Callable[[str], None]
    timeout: float = 30.0
    qos: int = 1
    online: bool | None = None

    async def publish_online(self) -> None:
        """Publish ``"online"`` and re-arm the dead-man's switch."""
        await self._safe_publish(self.topics.status, ONLINE)
        self.online = True
        self.scheduler.call_later(
            HEARTBEAT_KEY,
            self.timeout,
            lambda: self.on_expiry(HEARTBEAT_KEY),
        )
        logger.debug("[Panel => MQTT] Published alarm online")

    async def publish_offline(self) -> None:
        """Publish ``"offline"`` and stop the dead-man's switch."""
        self.scheduler.cancel(HEARTBEAT_KEY)
        await self._safe_publish(self.topics.status, OFFLINE)
        self.online = False
        logger.debug("[Panel => MQTT] Published alarm offline")

    def stop_heartbeat(self) -> None:
        """Cancel the deadline without publishing anything."""
        self.scheduler.cancel(HEARTBEAT_KEY)

    async def heartbeat_lost(self) -> None:
        """The deadline elapsed: the panel has gone silent."""
        logger.warning(
            "No panel clock signal for %.0fs, marking the bridge offline",
            self.timeout,
        )
        await self._safe_publish(self.topics.status, OFFLINE)
        self.online = False

    async def publish_panel_status(self, up: bool) -> None:
        payload = "true" if up else "false"
        await self._safe_publish(self.topics.panel_status, payload)
        logger.debug("[Panel => MQTT] Published panel connection status %s", payload)

    async def publish_proxy_status(self, socket_mode: str, connected: bool) -> None:
        payload = proxy_status(socket_mode, connected)
        await self._safe_publish(self.topics.proxy_status, payload)
        logger.debug("[Panel => MQTT] Published proxy connection status %s", payload)

    async def publish_system_message(self, message: str) -> None:
        await self._safe_publish(self.topics.system_message, message)
        logger.debug("[Panel => MQTT] Published system message %r", message)

    async def publish_system_battery(self, low_battery: bool) -> None:
        payload = "1" if low_battery else "0"
        await self._safe_publish(self.topics.system_battery, payload)
        logger.debug("[Panel => MQTT] Published system battery %s", payload)

    async def _safe_publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = True,
    ) -> None:
        """Publish to MQTT, swallowing any exceptions."""
        try:
            await self.mqtt.publish(topic, payload, retain=retain, qos=self.qos)
        except Exception:
            logger.exception("Failed to publish status to %s", topic)
