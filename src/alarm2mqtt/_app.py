"""Application composition root.

:class:`App` wires settings, logging, the MQTT client, the panel
adapter, the scheduler and the :class:`~alarm2mqtt._bridge.Bridge`, then
runs until SIGTERM/SIGINT.

Typical usage::

    from alarm2mqtt import App

    App(version="1.0.0").run()

Orchestration order:

1. Bootstrap (settings, logging, panel adapter, MQTT client with LWT).
2. Build the bridge and bind its callbacks to both links.
3. Start the event consumer, connect MQTT, connect the panel (a failed
   first panel connection is reported, not fatal).
4. Block until shutdown, then publish ``offline`` and stop both links.
"""

from __future__ import annotations

import asyncio
import contextlib
import importlib
import logging
import signal
import uuid
from typing import Any

from alarm2mqtt._bridge import Bridge
from alarm2mqtt._clock import LoopScheduler, SchedulerPort
from alarm2mqtt._errors import ConfigurationError, TransportFault
from alarm2mqtt._events import PanelLinkDown
from alarm2mqtt._health import build_will_config
from alarm2mqtt._logging import configure_logging
from alarm2mqtt._mqtt import MqttClient, MqttLifecycle, MqttPort
from alarm2mqtt._panel import MockPanel, PanelPort
from alarm2mqtt._settings import Settings
from alarm2mqtt._topics import Topics

logger = logging.getLogger(__name__)


def _import_string(dotted_path: str) -> Any:
    """Import an object from a ``module.path:ClassName`` string.

    Raises:
        ImportError: If the module cannot be found.
        AttributeError: If the name doesn't exist in the module.
        ValueError: If the path doesn't contain exactly one ``:``.
    """
    parts = dotted_path.split(":")
    if len(parts) != 2:  # noqa: PLR2004
        msg = f"Expected 'module.path:ClassName', got {dotted_path!r}"
        raise ValueError(msg)

    module_path, class_name = parts
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


class App:
    """Runs one bridge between a panel and an MQTT broker.

    Args:
        name: Application name (log correlation, generated client ids).
        version: Application version string.
        description: One-line description shown by ``--help``.
        dry_run: Replace the configured panel adapter with a simulated
            :class:`~alarm2mqtt._panel.MockPanel`.
    """

    def __init__(
        self,
        *,
        name: str = "alarm2mqtt",
        version: str = "0.0.0",
        description: str = "Security panel to MQTT bridge",
        dry_run: bool = False,
    ) -> None:
        self._name = name
        self._version = version
        self._description = description
        self._dry_run = dry_run

    # --- Lifecycle ---------------------------------------------------------

    def run(
        self,
        *,
        settings: Settings | None = None,
        mqtt: MqttPort | None = None,
        panel: PanelPort | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        """Start the application (blocking, synchronous entrypoint).

        All parameters are optional and intended for programmatic or
        test use.
        """
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(
                self._run_async(
                    settings=settings,
                    mqtt=mqtt,
                    panel=panel,
                    shutdown_event=shutdown_event,
                ),
            )

    def cli(self) -> None:
        """Start the application with CLI argument parsing."""
        from alarm2mqtt._cli import build_cli  # noqa: PLC0415

        cli = build_cli(self)
        cli(standalone_mode=True)

    async def _run_async(
        self,
        *,
        settings: Settings | None = None,
        mqtt: MqttPort | None = None,
        panel: PanelPort | None = None,
        shutdown_event: asyncio.Event | None = None,
        scheduler: SchedulerPort | None = None,
    ) -> None:
        """Async orchestration.

        Args:
            settings: Override settings (skip env and file loading).
            mqtt: Override MQTT client (inject a mock for tests).
            panel: Override panel adapter (inject a mock for tests).
            shutdown_event: Override shutdown event (skip signal handlers).
            scheduler: Override scheduler (inject a fake for tests).

        Raises:
            ConfigurationError: If no usable panel adapter is configured.
        """
        # --- Phase 1: Bootstrap ---
        resolved_settings = settings if settings is not None else Settings.from_file(None)
        configure_logging(
            resolved_settings.logging,
            service=self._name,
            version=self._version,
        )
        logger.info("Starting %s v%s", self._name, self._version)

        resolved_panel = panel if panel is not None else self._create_panel(resolved_settings)
        topics = Topics.from_settings(resolved_settings.discovery)
        resolved_mqtt = self._create_mqtt(mqtt, resolved_settings, topics)
        resolved_scheduler = scheduler if scheduler is not None else LoopScheduler()

        # --- Phase 2: Wiring ---
        bridge = Bridge(
            panel=resolved_panel,
            mqtt=resolved_mqtt,
            settings=resolved_settings,
            scheduler=resolved_scheduler,
        )
        if isinstance(resolved_mqtt, MqttLifecycle):
            bridge.bind(resolved_mqtt)
        shutdown_event = self._install_signal_handlers(shutdown_event)

        # --- Phase 3: Run ---
        consumer = asyncio.create_task(bridge.run(), name="bridge-events")
        try:
            if isinstance(resolved_mqtt, MqttLifecycle):
                await resolved_mqtt.start()
            await self._connect_panel(resolved_panel, bridge)
            await shutdown_event.wait()
        finally:
            # --- Phase 4: Tear down ---
            logger.info("Shutting down")
            await bridge.shutdown()
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            if isinstance(resolved_scheduler, LoopScheduler):
                resolved_scheduler.cancel_all()
            try:
                await resolved_panel.disconnect()
            except Exception:
                logger.exception("Error while disconnecting from the panel")
            if isinstance(resolved_mqtt, MqttLifecycle):
                await resolved_mqtt.stop()

        logger.info("Shutdown complete")

    # --- _run_async helpers ------------------------------------------------

    async def _connect_panel(self, panel: PanelPort, bridge: Bridge) -> None:
        """First panel connection.  A failure leaves the bridge running.

        The panel is reported down and reconnecting is left to the
        adapter, so the broker side keeps serving availability.
        """
        try:
            await panel.connect()
        except Exception as exc:
            fault = TransportFault("connect", str(exc) or type(exc).__name__)
            logger.error("Panel connection failed (%s), waiting for the adapter to reconnect", fault)
            bridge.post(PanelLinkDown())

    def _create_panel(self, settings: Settings) -> PanelPort:
        """Instantiate the configured panel adapter.

        In dry-run mode a simulated :class:`MockPanel` replaces it.
        """
        if self._dry_run:
            logger.info("Dry-run mode: using a simulated panel")
            return MockPanel.demo(socket_mode=settings.panel.socket_mode)
        if settings.panel.adapter is None:
            msg = "No panel adapter configured (set panel.adapter or use --dry-run)"
            raise ConfigurationError(msg)
        try:
            factory = _import_string(settings.panel.adapter)
        except (ImportError, AttributeError, ValueError) as exc:
            msg = f"Cannot load panel adapter {settings.panel.adapter!r}: {exc}"
            raise ConfigurationError(msg) from exc
        options = {"socket_mode": settings.panel.socket_mode, **settings.panel.options}
        instance = factory(**options)
        if not isinstance(instance, PanelPort):
            msg = f"Panel adapter {settings.panel.adapter!r} does not implement PanelPort"
            raise ConfigurationError(msg)
        return instance

    def _create_mqtt(
        self,
        mqtt: MqttPort | None,
        settings: Settings,
        topics: Topics,
    ) -> MqttPort:
        """Create the MQTT client, or return the injected one.

        When no explicit ``client_id`` is configured, generates one
        from the app name and a short random suffix.
        """
        if mqtt is not None:
            return mqtt
        mqtt_settings = settings.mqtt
        if not mqtt_settings.client_id:
            generated_id = f"{self._name}-{uuid.uuid4().hex[:8]}"
            mqtt_settings = mqtt_settings.model_copy(
                update={"client_id": generated_id},
            )
        return MqttClient(settings=mqtt_settings, will=build_will_config(topics))

    def _install_signal_handlers(
        self,
        shutdown_event: asyncio.Event | None,
    ) -> asyncio.Event:
        """Install SIGTERM/SIGINT handlers. Returns the shutdown event."""
        if shutdown_event is not None:
            return shutdown_event
        event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, event.set)
        return event
