"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import Iterator

import pytest

# The alarm2mqtt testing plugin is registered via a ``pytest11`` entry
# point for external consumers.  Our own suite disables it
# (``-p no:alarm2mqtt``) and loads it here instead, so the import chain
# is measured by coverage.
pytest_plugins = ["alarm2mqtt.testing._plugin"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (full app lifecycle)"
    )


@pytest.fixture
def _restore_root_logger() -> Iterator[None]:
    """Save and restore root logger handlers and level.

    Ensures tests that call ``configure_logging()`` (directly or via the
    app lifecycle) don't leak state across subsequent tests.
    """
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    quiet = logging.getLogger("aiomqtt")
    quiet_level = quiet.level
    yield
    for h in root.handlers:
        if h not in original_handlers:
            h.close()
    root.handlers = original_handlers
    root.setLevel(original_level)
    quiet.setLevel(quiet_level)
