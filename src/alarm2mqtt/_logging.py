"""Log formatters and logging configuration.

Two output formats are supported:

- ``text`` — human-readable lines, optionally with ANSI-coloured level
  names for interactive terminals.
- ``json`` — one JSON object per record (NDJSON) with ``service`` and
  ``version`` correlation fields, for container log drivers.

Message direction is part of the message text, not of the schema:
outbound publications log under ``[Panel => MQTT]``, inbound commands
under ``[MQTT => Panel]``, so both formats carry it.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Any

from alarm2mqtt._settings import LoggingSettings

_MEGABYTE = 1024 * 1024

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVEL_COLOURS = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1;31m",
}
_RESET = "\x1b[0m"

# Third-party loggers that are chatty at DEBUG
_QUIET_LOGGERS = ("aiomqtt",)


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields: ``timestamp`` (ISO 8601, UTC), ``level``, ``logger``,
    ``message``, ``service``, ``version`` (omitted when empty), plus
    ``exception`` / ``stack_info`` when present.

    Args:
        service: Application name included in every log line.
        version: Application version string.
    """

    def __init__(
        self,
        *,
        service: str = "",
        version: str = "",
    ) -> None:
        super().__init__()
        self._service = service
        self._version = version

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
        }

        if self._version:
            entry["version"] = self._version

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


class ColourFormatter(logging.Formatter):
    """Text formatter that wraps the level name in ANSI colour codes."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _LEVEL_COLOURS.get(record.levelno)
        if colour is None:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{colour}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def build_formatter(
    settings: LoggingSettings,
    *,
    service: str,
    version: str = "",
) -> logging.Formatter:
    if settings.format == "json":
        return JsonFormatter(service=service, version=version)
    if settings.colorize:
        return ColourFormatter(_TEXT_FORMAT)
    return logging.Formatter(_TEXT_FORMAT)


def configure_logging(
    settings: LoggingSettings,
    *,
    service: str,
    version: str = "",
) -> None:
    """Configure the root logger from settings.

    Replaces any handlers already on the root logger.  A stderr handler
    is always installed; a size-rotated file handler is added when
    ``settings.file`` is set.  Colour codes never reach the file.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(
        build_formatter(settings, service=service, version=version),
    )
    root.addHandler(stream_handler)

    if settings.file is not None:
        file_handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_file_size_mb * _MEGABYTE,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_settings = settings.model_copy(update={"colorize": False})
        file_handler.setFormatter(
            build_formatter(file_settings, service=service, version=version),
        )
        root.addHandler(file_handler)

    root.setLevel(settings.level)
    if settings.level != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
