"""Console logging for the engine, one line per event.

Each component logs under its own tag (Device, Graph, Smoother, Playback,
Config, Report, Scheduler, ...) and passes measured values as keyword fields:

    [INFO][Graph] Session built | left_hz=200.0 right_hz=208.0 session=3

Enum fields print by member name, so ``channel=left`` rather than ``channel=0``.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any

ENGINE_LOGGER = "hemisync"
DEFAULT_COMPONENT = "Engine"

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

_logger = logging.getLogger(ENGINE_LOGGER)
if not _logger.handlers:
    _console = logging.StreamHandler()
    _console.setFormatter(logging.Formatter("[%(levelname)s][%(component)s] %(message)s"))
    _logger.addHandler(_console)
    _logger.setLevel(logging.INFO)
    _logger.propagate = False


class _ComponentAdapter(logging.LoggerAdapter):
    """Moves the ``tag`` keyword into the record as ``component``."""

    def process(self, msg: Any, kwargs: dict[str, Any]):
        component = kwargs.pop("tag", DEFAULT_COMPONENT)
        kwargs.setdefault("extra", {})["component"] = component
        return msg, kwargs


_logger_adapter = _ComponentAdapter(_logger, {})


def _resolve_level(level: Any) -> int:
    name = str(level or "INFO").strip().upper()
    name = _LEVEL_ALIASES.get(name, name)
    value = getattr(logging, name, None)
    return value if isinstance(value, int) else logging.INFO


def _format_field(value: Any) -> str:
    if isinstance(value, Enum):
        return value.name.lower()
    return str(value)


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    if fields:
        extras = " ".join(f"{key}={_format_field(value)}" for key, value in fields.items())
        message = f"{message} | {extras}"
    _logger_adapter.log(_resolve_level(level), message, tag=tag)


def set_log_level(level: Any) -> None:
    """Set the engine log level by name. Unknown names and non-strings fall back to INFO."""
    _logger.setLevel(_resolve_level(level))


def get_log_level() -> str:
    return logging.getLevelName(_logger.level)
