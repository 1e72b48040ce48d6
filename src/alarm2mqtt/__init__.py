"""alarm2mqtt.

Bridges a security alarm panel (partitions, zones, outputs) to an MQTT
broker with automation-platform discovery.
"""

from importlib.metadata import PackageNotFoundError, version

from alarm2mqtt._app import App
from alarm2mqtt._arming import ArmingModes, ArmingModeTable
from alarm2mqtt._bridge import Bridge
from alarm2mqtt._clock import ClockPort, LoopScheduler, SchedulerPort, SystemClock
from alarm2mqtt._errors import (
    BridgeError,
    CommandFault,
    ConfigurationError,
    MappingFault,
    TransportFault,
)
from alarm2mqtt._health import AvailabilityReporter, build_will_config
from alarm2mqtt._logging import JsonFormatter, configure_logging
from alarm2mqtt._model import (
    EntityRegistry,
    Output,
    PanelInfo,
    Partition,
    SystemStatus,
    Zone,
)
from alarm2mqtt._mqtt import (
    MessageCallback,
    MockMqttClient,
    MqttClient,
    MqttLifecycle,
    MqttPort,
    WillConfig,
)
from alarm2mqtt._panel import MockPanel, PanelPort
from alarm2mqtt._settings import (
    DiscoverySettings,
    LoggingSettings,
    MqttSettings,
    PanelSettings,
    Settings,
)
from alarm2mqtt._topics import Topics

try:
    __version__ = version("alarm2mqtt")
except PackageNotFoundError:
    # Editable installs without metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # App
    "App",
    "Bridge",
    # Arming
    "ArmingModeTable",
    "ArmingModes",
    # Clock
    "ClockPort",
    "LoopScheduler",
    "SchedulerPort",
    "SystemClock",
    # Errors
    "BridgeError",
    "CommandFault",
    "ConfigurationError",
    "MappingFault",
    "TransportFault",
    # Health
    "AvailabilityReporter",
    "build_will_config",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Model
    "EntityRegistry",
    "Output",
    "PanelInfo",
    "Partition",
    "SystemStatus",
    "Zone",
    # MQTT
    "MessageCallback",
    "MockMqttClient",
    "MqttClient",
    "MqttLifecycle",
    "MqttPort",
    "WillConfig",
    # Panel
    "MockPanel",
    "PanelPort",
    # Settings
    "DiscoverySettings",
    "LoggingSettings",
    "MqttSettings",
    "PanelSettings",
    "Settings",
    # Topics
    "Topics",
]
