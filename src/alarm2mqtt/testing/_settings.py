"""Test factory for Settings.

Provides :func:`make_settings` — creates
:class:`~alarm2mqtt._settings.Settings` instances without depending on
``.env`` files or real environment variables.
"""

from __future__ import annotations

from typing import Any

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from alarm2mqtt._settings import Settings


class _IsolatedSettings(Settings):
    """Settings subclass that ignores all ambient configuration sources."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],  # noqa: ARG003
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def make_settings(**overrides: Any) -> Settings:
    """Create a ``Settings`` instance from model defaults plus *overrides*.

    Ignores ``os.environ``, ``.env`` files and secret directories, so
    tests are deterministic regardless of the host environment.

    Example::

        settings = make_settings(zones={"default": {"off_delay": 30}})
        assert settings.discovery.node_id == "alarm-panel"
    """
    return _IsolatedSettings(_env_file=None, **overrides)  # type: ignore[call-arg]
