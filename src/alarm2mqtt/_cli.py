"""Command-line interface (Typer-based).

:func:`build_cli` wraps an :class:`~alarm2mqtt._app.App` in a single
Typer command; :func:`main` is the ``alarm2mqtt`` console script.

Settings are resolved from the JSON file named by ``--config`` layered
over environment variables and the ``--env-file``; ``--log-level`` and
``--log-format`` then patch the logging section.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
from typing import TYPE_CHECKING, Annotated, Any, get_args

import typer
from pydantic import ValidationError

from alarm2mqtt._errors import ConfigurationError
from alarm2mqtt._settings import LoggingSettings, Settings

if TYPE_CHECKING:
    from alarm2mqtt._app import App

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3

DEFAULT_CONFIG_FILE = "config.json"

LOG_LEVELS: tuple[str, ...] = get_args(LoggingSettings.model_fields["level"].annotation)
LOG_FORMATS: tuple[str, ...] = get_args(LoggingSettings.model_fields["format"].annotation)


def _checked(value: str | None, allowed: tuple[str, ...], option: str) -> str | None:
    """Normalise *value* to the case used in *allowed*, or reject it."""
    if value is None:
        return None
    for choice in allowed:
        if value.casefold() == choice.casefold():
            return choice
    raise typer.BadParameter(
        f"{value!r} is not one of {', '.join(allowed)}",
        param_hint=f"'{option}'",
    )


def _load_settings(config: str, env_file: str, logging_overrides: dict[str, Any]) -> Settings:
    try:
        settings = Settings.from_file(config, env_file=env_file)
    except (ValidationError, json.JSONDecodeError) as exc:
        typer.echo(f"Invalid configuration in {config}: {exc}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc
    if logging_overrides:
        settings.logging = settings.logging.model_copy(update=logging_overrides)
    return settings


def build_cli(app: App) -> typer.Typer:
    """Return a Typer app whose only command runs *app*."""
    cli = typer.Typer(help=f"{app._name} v{app._version}: {app._description}")

    @cli.callback(invoke_without_command=True)
    def main(
        show_version: Annotated[
            bool | None,
            typer.Option("--version", is_eager=True, help="Show version and exit."),
        ] = None,
        dry_run: Annotated[
            bool,
            typer.Option("--dry-run", help="Use a simulated panel instead of the adapter."),
        ] = False,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help=f"One of {', '.join(LOG_LEVELS)}."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help=f"One of {', '.join(LOG_FORMATS)}."),
        ] = None,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
        config: Annotated[
            str,
            typer.Option("--config", help="Path to a JSON configuration file."),
        ] = DEFAULT_CONFIG_FILE,
    ) -> None:
        if show_version:
            typer.echo(f"{app._name} v{app._version}")
            raise typer.Exit()

        overrides: dict[str, Any] = {}
        if (level := _checked(log_level, LOG_LEVELS, "--log-level")) is not None:
            overrides["level"] = level
        if (fmt := _checked(log_format, LOG_FORMATS, "--log-format")) is not None:
            overrides["format"] = fmt

        app._dry_run = dry_run
        settings = _load_settings(config, env_file, overrides)

        try:
            with contextlib.suppress(KeyboardInterrupt):
                asyncio.run(app._run_async(settings=settings))
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            sys.exit(EXIT_CONFIG_ERROR)
        except Exception as exc:
            logger.error("Bridge stopped after an unrecoverable error: %s", exc)
            sys.exit(EXIT_RUNTIME_ERROR)

    return cli


def main() -> None:
    """Console entry point."""
    from alarm2mqtt import __version__  # noqa: PLC0415
    from alarm2mqtt._app import App  # noqa: PLC0415

    App(version=__version__).cli()
