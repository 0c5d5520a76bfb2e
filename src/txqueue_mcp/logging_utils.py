"""Logging setup for the transaction queue server.

stdout carries the MCP stdio protocol, so handlers only ever write to stderr
or to the configured log file. The configured level applies to this package's
loggers; third-party libraries (fastmcp and its transport stack) stay at
WARNING so their chatter does not drown queue events.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from txqueue_mcp.config import LoggingSettings, load_settings

PACKAGE_LOGGER = "txqueue_mcp"
_THIRD_PARTY_LEVEL = logging.WARNING

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logger = logging.getLogger(__name__)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install the stderr (and optional file) handlers and set levels.

    Safe to call repeatedly; FastMCP installs its own handlers on startup, so
    the server calls this again once the MCP server object exists.
    """
    if settings is None:
        settings = load_settings().logging

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream_handler]

    file_handler = _open_file_handler(settings.file, formatter)
    if file_handler is not None:
        handlers.append(file_handler)

    logging.basicConfig(level=_THIRD_PARTY_LEVEL, handlers=handlers, force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(_resolve_level(settings.level))


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if isinstance(level, int):
        return level
    _logger.warning("Unknown log level %r, using INFO", name)
    return logging.INFO


def _open_file_handler(path: str | None, formatter: logging.Formatter) -> logging.Handler | None:
    if not path:
        return None
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
    except OSError as exc:
        _logger.warning("Failed to open log file %s: %s", path, exc)
        return None
    handler.setFormatter(formatter)
    return handler
