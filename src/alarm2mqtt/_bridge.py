"""The bridge: one ordered event queue, one transition per event type.

Panel callbacks, MQTT callbacks and scheduler expiries never act
directly.  They :meth:`Bridge.post` an event from :mod:`alarm2mqtt._events`
and a single consumer task (:meth:`Bridge.run`) applies them strictly in
arrival order.  All mutable bridge state (readiness gate, retry table,
arming-mode cache) is owned by that consumer, so no locking is needed.

Panel actions (arm, toggle, ...) are started as tracked background tasks
and never awaited inside a transition: the resulting state change
arrives later as an ordinary panel event.

Direction of every log line is tagged ``[Panel => MQTT]`` for outbound
publications and ``[MQTT => Panel]`` for inbound commands.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from alarm2mqtt._arming import (
    ARMING,
    COMMAND_PAYLOADS,
    DISARMED,
    ArmingModeTable,
    action_for,
)
from alarm2mqtt._clock import SchedulerPort
from alarm2mqtt._discovery import DiscoveryBuilder
from alarm2mqtt._errors import CommandFault, MappingFault, TransportFault
from alarm2mqtt._events import (
    BridgeEvent,
    BusLinkDown,
    BusLinkUp,
    InboundMessage,
    OutputChanged,
    PanelClock,
    PanelCommReady,
    PanelFault,
    PanelLinkDown,
    PanelLinkUp,
    PartitionChanged,
    ProxyLinkChanged,
    SystemChanged,
    TimerFired,
    ZoneChanged,
)
from alarm2mqtt._gate import GateTransition, ReadinessGate
from alarm2mqtt._health import HEARTBEAT_KEY, AvailabilityReporter, heartbeat_timeout
from alarm2mqtt._model import EntitySelection, Output, Partition, Zone
from alarm2mqtt._mqtt import MqttLifecycle, MqttPort
from alarm2mqtt._panel import PanelPort
from alarm2mqtt._projection import (
    alarm_state,
    not_ready_state,
    output_state,
    zone_alarm_state,
    zone_attributes,
    zone_battery_attributes,
    zone_battery_state,
    zone_bypass_state,
    zone_open_state,
)
from alarm2mqtt._retry import ArmRetryTable, RetryDecision, partition_for_timer
from alarm2mqtt._settings import BUILTIN_ZONE, Settings, resolve_entity_config
from alarm2mqtt._supervisor import ReconnectSupervisor
from alarm2mqtt._topics import CommandKind, Topics

logger = logging.getLogger(__name__)

PARTITION_STATE_EVENTS = frozenset(
    {
        "Armed",
        "Disarmed",
        "HomeStay",
        "HomeDisarmed",
        "Alarm",
        "StandBy",
        "GroupArmed",
        "GroupDisarmed",
    },
)
PARTITION_READY_EVENTS = frozenset({"Ready", "NotReady"})
OUTPUT_EVENTS = frozenset({"Activated", "Deactivated", "Pulsed"})
SYSTEM_BATTERY_EVENTS = frozenset({"LowBattery", "BatteryOK"})

REPUBLISH_STATES = "states"
REPUBLISH_DISCOVERY = "autodiscovery"
REPUBLISH_COMMUNICATIONS = "communications"


class Bridge:
    """Connects one panel to one MQTT broker.

    Args:
        panel: Panel transport.
        mqtt: Publisher/subscriber for the broker.
        settings: Application settings.
        scheduler: Owner of the heartbeat and arm-retry deadlines.
    """

    def __init__(
        self,
        *,
        panel: PanelPort,
        mqtt: MqttPort,
        settings: Settings,
        scheduler: SchedulerPort,
    ) -> None:
        self._panel = panel
        self._mqtt = mqtt
        self._settings = settings
        self._scheduler = scheduler
        self._qos = settings.mqtt.qos
        self.topics = Topics.from_settings(settings.discovery)
        self.gate = ReadinessGate()
        self.arming = ArmingModeTable(settings.partitions)
        self.retry = ArmRetryTable(
            scheduler,
            self._on_timer,
            timeout=settings.panel.arm_retry_timeout,
        )
        self.reporter = AvailabilityReporter(
            mqtt=mqtt,
            topics=self.topics,
            scheduler=scheduler,
            on_expiry=self._on_timer,
            timeout=heartbeat_timeout(settings.panel, panel.socket_mode),
            qos=self._qos,
        )
        self.supervisor = ReconnectSupervisor(
            detach=lambda: panel.remove_socket_listener(self.post),
            attach=lambda: panel.add_socket_listener(self.post),
            link_down=lambda: self.post(PanelLinkDown()),
        )
        self.selection = EntitySelection()
        self._queue: asyncio.Queue[BridgeEvent] = asyncio.Queue()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._handlers: dict[type, Callable[[Any], Awaitable[None]]] = {
            PanelLinkUp: self._on_panel_link_up,
            PanelLinkDown: self._on_panel_link_down,
            PanelCommReady: self._on_panel_comm_ready,
            PanelClock: self._on_panel_clock,
            ProxyLinkChanged: self._on_proxy_link,
            PanelFault: self._on_panel_fault,
            PartitionChanged: self._on_partition_changed,
            ZoneChanged: self._on_zone_changed,
            OutputChanged: self._on_output_changed,
            SystemChanged: self._on_system_changed,
            BusLinkUp: self._on_bus_link_up,
            BusLinkDown: self._on_bus_link_down,
            InboundMessage: self._on_inbound,
            TimerFired: self._on_timer_fired,
        }

    # -- Wiring --------------------------------------------------------------

    def bind(self, bus: MqttLifecycle) -> None:
        """Install the bridge's callbacks on the panel and the MQTT client.

        Called once, before either link is started.  Every callback only
        posts an event; none of them touches bridge state.
        """
        self._panel.add_listener(self.post)
        self._panel.add_socket_listener(self.post)
        bus.on_connect(lambda: self.post(BusLinkUp()))
        bus.on_disconnect(lambda: self.post(BusLinkDown()))
        bus.on_message(self._on_bus_message)

    def post(self, event: BridgeEvent) -> None:
        """Enqueue *event*.  Must be called on the event-loop thread."""
        self._queue.put_nowait(event)

    async def _on_bus_message(self, topic: str, payload: str) -> None:
        self.post(InboundMessage(topic, payload))

    def _on_timer(self, key: str) -> None:
        self.post(TimerFired(key))

    # -- Consumer ------------------------------------------------------------

    async def run(self) -> None:
        """Consume events until cancelled."""
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            finally:
                self._queue.task_done()

    async def handle(self, event: BridgeEvent) -> None:
        """Apply one event.  Errors are logged, never raised."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler for event %r", event)
            return
        try:
            await handler(event)
        except Exception:
            logger.exception("Error while handling %r", event)

    async def drain(self) -> None:
        """Process queued events and wait for panel actions to settle.

        Repeats until the queue is empty and no action task is running,
        so events posted by completed actions are handled too.
        """
        while True:
            while not self._queue.empty():
                event = self._queue.get_nowait()
                try:
                    await self.handle(event)
                finally:
                    self._queue.task_done()
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def shutdown(self) -> None:
        """Publish ``offline`` and cancel outstanding panel actions."""
        if self.gate.state.bus:
            await self.reporter.publish_offline()
        else:
            self.reporter.stop_heartbeat()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # -- Link transitions ----------------------------------------------------

    async def _on_panel_link_up(self, _event: PanelLinkUp) -> None:
        self.supervisor.link_restored()
        await self._apply(self.gate.panel_up())

    async def _on_panel_link_down(self, _event: PanelLinkDown) -> None:
        await self._apply(self.gate.panel_down())

    async def _on_panel_comm_ready(self, _event: PanelCommReady) -> None:
        self.supervisor.link_restored()
        if self.gate.state.bus:
            await self.reporter.publish_panel_status(True)
        await self._apply(self.gate.panel_up())

    async def _on_bus_link_up(self, _event: BusLinkUp) -> None:
        await self._apply(self.gate.bus_up())

    async def _on_bus_link_down(self, _event: BusLinkDown) -> None:
        await self._apply(self.gate.bus_down())

    async def _apply(self, transition: GateTransition) -> None:
        match transition:
            case GateTransition.FIRST_READY:
                logger.info("Publishing discovery info")
                await self.publish_discovery()
                await self.reporter.publish_online()
                await self._install_listeners()
                self.gate.mark_initialized()
                await self.publish_states()
                logger.info("Initialization completed")
            case GateTransition.READY_AGAIN:
                await self.reporter.publish_online()
            case GateTransition.PANEL_LOST:
                if self.gate.state.bus:
                    await self.reporter.publish_offline()
                    await self.reporter.publish_panel_status(False)
                else:
                    self.reporter.stop_heartbeat()
            case GateTransition.NONE:
                pass

    async def _install_listeners(self) -> None:
        if self.gate.listeners_installed:
            logger.info("Listeners already installed, skipping listeners registration")
            return
        logger.info("Subscribing to command topics")
        topics = [self.topics.partition_command(p.id) for p in self.selection.partitions]
        topics += [self.topics.zone_bypass(z.id, "set") for z in self.selection.bypass_zones]
        topics += [
            self.topics.output_command(o.id)
            for o in (*self.selection.toggle_outputs, *self.selection.button_outputs)
        ]
        topics.append(self.topics.republish)
        for topic in topics:
            await self._safe_subscribe(topic)
        await self._safe_subscribe(self.topics.platform_status, qos=0)
        self.gate.mark_listeners_installed()

    # -- Panel signals -------------------------------------------------------

    async def _on_panel_clock(self, _event: PanelClock) -> None:
        if self.gate.listeners_installed and self.gate.ready:
            await self.reporter.publish_online()

    async def _on_proxy_link(self, event: ProxyLinkChanged) -> None:
        if self.gate.ready:
            await self.reporter.publish_proxy_status(self._panel.socket_mode, event.connected)

    async def _on_panel_fault(self, event: PanelFault) -> None:
        self.supervisor.handle(TransportFault(event.category, event.detail))

    async def _on_timer_fired(self, event: TimerFired) -> None:
        # A pending key means the deadline was re-armed after this expiry was queued.
        if self._scheduler.pending(event.key):
            logger.debug("Ignoring superseded expiry of '%s'", event.key)
            return
        if event.key == HEARTBEAT_KEY:
            if self.gate.state.bus:
                await self.reporter.heartbeat_lost()
            return
        partition_id = partition_for_timer(event.key)
        if partition_id is None:
            logger.warning("Unknown timer '%s' fired", event.key)
            return
        self.retry.expire(partition_id)

    # -- Entity events -------------------------------------------------------

    def _accepting_entity_events(self) -> bool:
        return self.gate.listeners_installed and self.gate.ready

    async def _on_partition_changed(self, event: PartitionChanged) -> None:
        if not self._accepting_entity_events():
            return
        partition = self._panel.partitions.by_id(event.partition_id)
        if event.event in PARTITION_STATE_EVENTS:
            await self._publish_partition(partition)
        elif event.event in PARTITION_READY_EVENTS:
            await self._publish_not_ready(partition)
            if event.event == "Ready":
                pending = self.retry.ready(partition.id)
                if pending is not None:
                    logger.info(
                        "[MQTT => Panel] Partition %d is ready, resubmitting %s",
                        partition.id,
                        pending.code,
                    )
                    self._arm(partition, pending.code)

    async def _on_zone_changed(self, event: ZoneChanged) -> None:
        if not self._accepting_entity_events():
            return
        zone = self._panel.zones.by_id(event.zone_id)
        match event.event:
            case "Open" | "Closed":
                await self._publish_zone(zone, attributes=False)
            case "Bypassed" | "UnBypassed":
                await self._publish_zone_bypass(zone)
                await self._publish_zone(zone, attributes=True)
            case "LowBattery" | "BatteryOK":
                await self._publish_zone_attributes(zone)
                await self._publish_zone_battery(zone, attributes=True)
            case "Alarm" | "StandBy":
                await self._publish_zone_attributes(zone)
                await self._publish_zone_alarm(zone)
            case "Tamper" | "TamperRestored":
                await self._publish_zone_attributes(zone)
            case _:
                logger.debug("Ignoring zone %d event %s", zone.id, event.event)

    async def _on_output_changed(self, event: OutputChanged) -> None:
        if not self._accepting_entity_events():
            return
        if event.event in OUTPUT_EVENTS:
            await self._publish_output(self._panel.outputs.by_id(event.output_id), event.event)

    async def _on_system_changed(self, event: SystemChanged) -> None:
        if not self._accepting_entity_events():
            return
        if event.event in SYSTEM_BATTERY_EVENTS:
            await self.reporter.publish_system_battery(event.event == "LowBattery")
        await self.reporter.publish_system_message(event.event)

    # -- Inbound messages ----------------------------------------------------

    async def _on_inbound(self, event: InboundMessage) -> None:
        topic, payload = event.topic, event.payload.strip()
        if topic == self.topics.platform_status:
            await self._on_platform_status(payload)
            return
        if topic == self.topics.republish:
            await self._on_republish(payload)
            return
        command = self.topics.parse_command(topic)
        if command is None:
            logger.debug("Ignoring message on %s", topic)
            return
        try:
            match command.kind:
                case CommandKind.PARTITION:
                    await self._partition_command(command.entity_id, payload)
                case CommandKind.ZONE_BYPASS:
                    self._bypass_command(command.entity_id, payload)
                case CommandKind.OUTPUT:
                    self._output_command(command.entity_id, payload)
        except KeyError as exc:
            logger.warning("[MQTT => Panel] Command on %s dropped: %s", topic, exc.args[0])

    async def _on_platform_status(self, payload: str) -> None:
        if payload != "online":
            logger.info("Home automation platform has gone offline")
            return
        logger.info("Home automation platform is online")
        if not self.gate.state.initialized:
            logger.info("Bridge not initialized yet, states follow initialization")
            return
        await self.publish_states()

    async def _on_republish(self, payload: str) -> None:
        logger.info("[MQTT => Panel] Republish request: %s", payload)
        if payload == REPUBLISH_STATES:
            if self.gate.ready:
                await self.publish_states()
        elif payload == REPUBLISH_DISCOVERY:
            if self.gate.ready:
                await self.publish_discovery()
        elif payload == REPUBLISH_COMMUNICATIONS:
            self._spawn("reconnect", "panel link", self._panel.reconnect())
        else:
            logger.warning("Unknown republish request '%s'", payload)

    async def _partition_command(self, partition_id: int, payload: str) -> None:
        code = COMMAND_PAYLOADS.get(payload)
        if code is None:
            logger.warning(
                "[MQTT => Panel] Unknown command %s on partition %d",
                payload,
                partition_id,
            )
            return
        partition = self._panel.partitions.by_id(partition_id)
        logger.info(
            "[MQTT => Panel] Received change state command %s on partition %d",
            payload,
            partition.id,
        )
        if code == DISARMED:
            self._spawn("disarm", f"partition {partition.id}", self._panel.disarm(partition.id))
            deferred = self.retry.pending(partition.id)
            if deferred is not None:
                logger.warning(
                    "[MQTT => Panel] Disarm on partition %d leaves the deferred %s in place; "
                    "it is still sent once the partition is ready",
                    partition.id,
                    deferred.code,
                )
            return
        decision = self.retry.request(partition.id, code, ready=partition.ready)
        if decision is RetryDecision.FORWARD:
            self._arm(partition, code)
        elif decision is RetryDecision.DEFER:
            await self._publish(self.topics.partition(partition.id), ARMING, retain=True)
            logger.info("[Panel => MQTT] Published alarm status arming on partition %d", partition.id)

    def _bypass_command(self, zone_id: int, payload: str) -> None:
        zone = self._panel.zones.by_id(zone_id)
        bypass = payload == "1"
        logger.info("[MQTT => Panel] Received bypass command %s for zone %d", bypass, zone.id)
        if bypass == zone.bypassed:
            logger.info("[MQTT => Panel] Zone %d is already in the desired bypass state", zone.id)
            return
        self._spawn("toggle_bypass", f"zone {zone.id}", self._panel.toggle_bypass(zone.id))

    def _output_command(self, output_id: int, payload: str) -> None:
        output = self._panel.outputs.by_id(output_id)
        logger.info("[MQTT => Panel] Received trigger command %s for output %d", payload, output.id)
        current, _text = output_state(output)
        if payload == current and not output.pulsed:
            logger.info("[MQTT => Panel] Output %d is already in the desired state", output.id)
            return
        self._spawn("toggle_output", f"output {output.id}", self._panel.toggle_output(output.id))

    def _arm(self, partition: Partition, code: str) -> None:
        native = self.arming.for_partition(partition).native_for(code)
        action = action_for(native)
        target = f"partition {partition.id}"
        if action.group is None:
            call = getattr(self._panel, action.method)(partition.id)
        else:
            call = self._panel.arm_group(partition.id, action.group)
        self._spawn(action.method, target, call)

    # -- Panel actions -------------------------------------------------------

    def _spawn(
        self,
        action: str,
        target: str,
        call: Coroutine[Any, Any, Any],
    ) -> None:
        task = asyncio.create_task(self._run_action(action, target, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run_action(
        action: str,
        target: str,
        call: Coroutine[Any, Any, Any],
    ) -> bool:
        try:
            result = await call
        except Exception as exc:
            logger.exception("[MQTT => Panel] %s", CommandFault(action, target, str(exc)))
            return False
        if result is False:
            logger.error("[MQTT => Panel] %s", CommandFault(action, target, "rejected"))
            return False
        logger.info("[MQTT => Panel] %s command sent on %s", action, target)
        return True

    # -- Publication ---------------------------------------------------------

    async def publish_discovery(self) -> None:
        """Rebuild the entity selection and publish every descriptor."""
        zone_default = resolve_entity_config(BUILTIN_ZONE, self._settings.zones, "default")
        self.selection = EntitySelection.build(
            self._panel.partitions,
            self._panel.zones,
            self._panel.outputs,
            exclude_entry_exit=bool(zone_default.bypass_exclude_entry_exit),
        )
        self.arming.rebuild(self.selection.partitions)
        builder = DiscoveryBuilder(
            self.topics,
            self._settings,
            self._panel.info,
            qos=self._qos,
        )
        for descriptor in builder.build(self.selection, self.arming):
            await self._publish(descriptor.topic, descriptor.to_json(), retain=True)
            logger.info("[Panel => MQTT][Discovery] Published %s", descriptor.name)

    async def publish_states(self) -> None:
        """Publish the current state of every exposed entity."""
        logger.info("Publishing partitions, zones and outputs states")
        for partition in self.selection.partitions:
            await self._publish_partition(partition)
            await self._publish_not_ready(partition)
        for zone in self.selection.zones:
            await self._publish_zone(zone, attributes=True)
            await self._publish_zone_alarm(zone)
        for zone in self.selection.bypass_zones:
            await self._publish_zone_bypass(zone)
        for zone in self.selection.battery_zones:
            await self._publish_zone_battery(zone, attributes=True)
        for output in (
            *self.selection.toggle_outputs,
            *self.selection.button_outputs,
            *self.selection.system_outputs,
        ):
            await self._publish_output(output)
        await self.reporter.publish_proxy_status(
            self._panel.socket_mode,
            self._panel.proxy_connected,
        )
        await self.reporter.publish_panel_status(self.gate.state.panel)
        await self.reporter.publish_system_battery(self._panel.system.low_battery)
        if self._panel.system.message:
            await self.reporter.publish_system_message(self._panel.system.message)
        logger.info("Finished publishing states")

    async def _publish_partition(self, partition: Partition) -> None:
        try:
            state = alarm_state(partition, self.arming.for_partition(partition))
        except MappingFault as fault:
            logger.error("Arming-mode mapping defect, state not published: %s", fault)
            return
        await self._publish(self.topics.partition(partition.id), state, retain=True)
        logger.info("[Panel => MQTT] Published alarm status %s on partition %d", state, partition.id)

    async def _publish_not_ready(self, partition: Partition) -> None:
        state = not_ready_state(partition)
        await self._publish(self.topics.partition_not_ready(partition.id), state, retain=True)
        logger.debug("[Panel => MQTT] Published not-ready %s on partition %d", state, partition.id)

    async def _publish_zone_attributes(self, zone: Zone) -> None:
        await self._publish(self.topics.zone_attributes(zone.id), zone_attributes(zone), retain=True)

    async def _publish_zone(self, zone: Zone, *, attributes: bool) -> None:
        if attributes:
            await self._publish_zone_attributes(zone)
        state = zone_open_state(zone)
        await self._publish(self.topics.zone(zone.id), state, retain=False)
        logger.debug("[Panel => MQTT] Published zone status %s on zone %s", state, zone.label)

    async def _publish_zone_battery(self, zone: Zone, *, attributes: bool) -> None:
        if attributes:
            await self._publish(
                self.topics.zone_battery_attributes(zone.id),
                zone_battery_attributes(zone),
                retain=True,
            )
        state = zone_battery_state(zone)
        await self._publish(self.topics.zone(zone.id, "battery/status"), state, retain=False)
        logger.debug("[Panel => MQTT] Published zone battery %s on zone %s", state, zone.label)

    async def _publish_zone_alarm(self, zone: Zone) -> None:
        state = zone_alarm_state(zone)
        await self._publish(self.topics.zone(zone.id, "alarm/status"), state, retain=False)
        logger.debug("[Panel => MQTT] Published zone alarm %s on zone %s", state, zone.label)

    async def _publish_zone_bypass(self, zone: Zone) -> None:
        state = zone_bypass_state(zone)
        await self._publish(self.topics.zone_bypass(zone.id), state, retain=False)
        logger.debug("[Panel => MQTT] Published zone bypass %s on zone %s", state, zone.label)

    async def _publish_output(self, output: Output, event: str | None = None) -> None:
        payload, text = output_state(output, event)
        await self._publish(self.topics.output(output.id), payload, retain=False)
        logger.debug("[Panel => MQTT] Published output status %s on output %s", text, output.label)

    async def _publish(self, topic: str, payload: str, *, retain: bool) -> None:
        """Fire-and-forget publish: failures are logged, never raised."""
        try:
            await self._mqtt.publish(topic, payload, retain=retain, qos=self._qos)
        except Exception:
            logger.exception("[Panel => MQTT] Failed to publish to %s", topic)

    async def _safe_subscribe(self, topic: str, *, qos: int | None = None) -> None:
        try:
            await self._mqtt.subscribe(topic, qos=qos)
        except Exception:
            logger.exception("Failed to subscribe to %s", topic)
        else:
            logger.info("Subscribed to %s", topic)
