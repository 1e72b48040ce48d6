"""Public test-support utilities for alarm2mqtt.

Re-exports test doubles and factories so that test suites can import
everything from a single ``alarm2mqtt.testing`` namespace.

Provided symbols:

- :class:`BridgeHarness` — bridge wired to in-memory doubles.
- :class:`FakeScheduler` — deterministic clock and keyed scheduler.
- :class:`MockMqttClient` — in-memory MQTT double that records calls.
- :class:`MockPanel` — in-memory panel that records actions.
- :func:`make_settings` — ``Settings`` without ``.env`` or environment.
"""

from alarm2mqtt._mqtt import MockMqttClient
from alarm2mqtt._panel import MockPanel
from alarm2mqtt.testing._clock import FakeScheduler
from alarm2mqtt.testing._harness import BridgeHarness
from alarm2mqtt.testing._settings import make_settings

__all__ = [
    "BridgeHarness",
    "FakeScheduler",
    "MockMqttClient",
    "MockPanel",
    "make_settings",
]
