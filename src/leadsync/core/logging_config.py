"""Process-wide logging setup for leadsync.

`configure_logging` is called once by the composition root. Records up to
INFO go to stdout, warnings and errors to stderr, and every record carries
the id of the client session that emitted it, so interleaved poll loops and
channel callbacks of concurrent sessions stay distinguishable. Managers and
adapters never touch global logging; they only emit through `LoggingPort`.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Optional, TextIO

# Populated by ClientSession.__aenter__
session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "leadsync_session_id", default="-"
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s %(session_id)s: %(message)s"

# Third-party loggers that are chatty at INFO during reconnects
TRANSPORT_LOGGERS = ("socketio", "engineio", "aiohttp.access")


def coerce_level(level: int | str | None) -> int:
    """Numeric level for a name like "debug"; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    return logging.getLevelNamesMapping().get(str(level).strip().upper(), logging.INFO)


class _SessionIdFilter(logging.Filter):
    """Stamps each record with the current session id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = session_id_var.get()
        return True


class _LevelRangeFilter(logging.Filter):
    def __init__(self, low: int, high: int):
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno <= self.high


def _sink(stream: TextIO, low: int, high: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setLevel(low)
    handler.addFilter(_LevelRangeFilter(low, high))
    handler.addFilter(_SessionIdFilter())
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_transport: bool = True,
) -> None:
    """Install the stdout/stderr sinks on the root logger.

    Calling it again replaces the handlers instead of stacking them.
    `quiet_transport` raises the Socket.IO and aiohttp access loggers to
    WARNING.
    """
    numeric_level = coerce_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.addHandler(_sink(sys.stdout, logging.DEBUG, logging.INFO, formatter))
    root.addHandler(_sink(sys.stderr, logging.WARNING, logging.CRITICAL, formatter))

    if quiet_transport:
        for name in TRANSPORT_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("leadsync").debug(
        "Logging configured level=%s quiet_transport=%s",
        logging.getLevelName(numeric_level),
        quiet_transport,
    )
