"""
Logging for rangekeeper.

Each part of a run logs through its own *component* logger below
``rangekeeper``: ``rangekeeper.fetcher`` for registry fetches and retries,
``rangekeeper.peer`` for demotions, ``rangekeeper.managers.npm`` for the
npm adapter, and so on (see :data:`~rangekeeper.constants.LOG_COMPONENTS`).

The CLI installs a single stderr handler on ``rangekeeper`` with
:func:`setup_logging`. Individual components can be turned up or down
independently of ``-v``::

    RANGEKEEPER_LOG="fetcher=debug,http=warning" rangekeeper -v check

Library callers that never configure logging get a ``NullHandler``.
"""

from __future__ import annotations

import os
import logging
import threading
from typing import IO, Dict, Mapping, Optional

from rangekeeper.constants import (
    LOG_COMPONENTS,
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_LEVELS_ENV,
    LOG_VERBOSE_FORMAT,
)
from rangekeeper.exceptions import ConfigError

_ROOT = "rangekeeper"

_lock = threading.Lock()

# Component loggers whose level setup_logging changed, reset on the next call
_leveled: Dict[str, int] = {}


def component_of(name: str) -> str:
    """Return the component part of a logger name.

    ``rangekeeper.managers.npm`` → ``managers.npm``; the root logger and
    foreign loggers keep their full name.
    """
    if name.startswith(f"{_ROOT}."):
        return name[len(_ROOT) + 1 :]
    return name


class ComponentFormatter(logging.Formatter):
    """Formatter exposing ``%(component)s`` and coloring the level name."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        color: bool = False,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers see the record as it was emitted
        record = logging.makeLogRecord(record.__dict__)
        record.component = component_of(record.name)

        code = self.LEVEL_COLORS.get(record.levelname) if self.color else None
        if code:
            record.levelname = f"{code}{record.levelname}{self.RESET}"

        return super().format(record)


def _stream_wants_color(stream: IO[str]) -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except (OSError, ValueError):
        return False


def parse_component_levels(text: Optional[str]) -> Dict[str, int]:
    """Parse ``component=level`` pairs separated by commas.

    Args:
        text: Value such as ``"fetcher=debug, peer=info"``. Empty or
            ``None`` means no overrides.

    Returns:
        Component name → ``logging`` level.

    Raises:
        ConfigError: A pair is malformed, names an unknown component, or
            uses an unknown level name.
    """
    levels: Dict[str, int] = {}
    if not text:
        return levels

    for pair in text.split(","):
        pair = pair.strip()
        if not pair:
            continue

        component, sep, level_name = pair.partition("=")
        component = component.strip()
        level_name = level_name.strip().upper()

        if not sep or not component or not level_name:
            raise ConfigError(
                f"Expected component=level, got {pair!r}", option=LOG_LEVELS_ENV
            )
        if component not in LOG_COMPONENTS:
            raise ConfigError(
                f"Unknown log component {component!r}; expected one of "
                f"{', '.join(LOG_COMPONENTS)}",
                option=LOG_LEVELS_ENV,
            )

        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ConfigError(
                f"Unknown log level {level_name!r} for {component}",
                option=LOG_LEVELS_ENV,
            )
        levels[component] = level

    return levels


def _reset_component_levels() -> None:
    for component in _leveled:
        logging.getLogger(f"{_ROOT}.{component}").setLevel(logging.NOTSET)
    _leveled.clear()


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
    component_levels: Optional[Mapping[str, int]] = None,
) -> None:
    """Install the rangekeeper stderr handler.

    Calling it again replaces the handler and any earlier component levels.

    Args:
        level: Level of the ``rangekeeper`` logger.
        verbose: Use the timestamped format that names the component.
        stream: Output stream; defaults to ``sys.stderr``.
        component_levels: Component → level, applied on top of *level*
            (see :func:`parse_component_levels`).
    """
    with _lock:
        root_logger = logging.getLogger(_ROOT)
        root_logger.handlers.clear()
        root_logger.setLevel(level)
        root_logger.propagate = False

        handler = logging.StreamHandler(stream)
        handler.setFormatter(
            ComponentFormatter(
                LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
                datefmt=LOG_DATE_FORMAT,
                color=_stream_wants_color(handler.stream),
            )
        )
        root_logger.addHandler(handler)

        _reset_component_levels()
        for component, component_level in (component_levels or {}).items():
            logging.getLogger(f"{_ROOT}.{component}").setLevel(component_level)
            _leveled[component] = component_level


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Return the logger for *component* (``"fetcher"``, ``"managers.npm"``).

    Fully qualified ``rangekeeper.*`` names are accepted as they are.
    """
    if not component or component == _ROOT:
        logger = logging.getLogger(_ROOT)
    elif component.startswith(f"{_ROOT}."):
        logger = logging.getLogger(component)
    else:
        logger = logging.getLogger(f"{_ROOT}.{component}")

    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


def disable_logging() -> None:
    """Silence rangekeeper logging and drop component levels."""
    with _lock:
        root_logger = logging.getLogger(_ROOT)
        root_logger.handlers.clear()
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.NOTSET)
        _reset_component_levels()
