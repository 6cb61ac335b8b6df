"""
tts-proxy Structured Logging.

Every log call names an event and attaches structured fields:

    log = get_logger("tts-proxy.upstream")
    info(log, "tts_completed", voice_id="abc", audio_bytes=48213, seconds=0.81)
    verbose(log, "upstream_request", operation="list_voices")

Records go to the console (colored when stdout is a TTY) and, when a
log directory is configured, to a rotating JSONL file. Each record carries
the request id of the HTTP request being served (see context.py).

Log Levels:
    1 = MINIMAL  - Startup, shutdown, errors only
    2 = NORMAL   - Request lifecycle (default)
    3 = VERBOSE  - Upstream calls, stream progress
    4 = DEBUG    - Payloads and internal state

Configuration:
    logging.level / log_dir / jsonl_file / rotate_* in settings.yaml,
    overridden by TTS_PROXY_LOG_LEVEL, TTS_PROXY_LOG_DIR,
    TTS_PROXY_JSONL_FILE, TTS_PROXY_LOG_ROTATE_BYTES and
    TTS_PROXY_LOG_ROTATE_BACKUP. TTS_PROXY_NO_COLOR=1 disables colors.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from . import formatters
from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter
from .levels import LEVEL_MAP, LogLevel, coerce_level

_TRACE = logging.DEBUG - 5
_DEFAULT_ROTATE_BYTES = 10 * 1024 * 1024
_DEFAULT_ROTATE_BACKUP = 5

# uvicorn installs its own handlers; these are re-parented onto ours
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error")


def _console_handler(level: LogLevel) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LEVEL_MAP.get(level, logging.INFO))
    handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _jsonl_handler(log_config: Dict[str, Any]) -> Optional[logging.Handler]:
    log_dir = log_config.get("log_dir")
    if not log_dir:
        return None
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        Path(log_dir) / str(log_config.get("jsonl_file", "tts-proxy.jsonl")),
        maxBytes=int(log_config.get("rotate_max_bytes", _DEFAULT_ROTATE_BYTES)),
        backupCount=int(log_config.get("rotate_backup_count", _DEFAULT_ROTATE_BACKUP)),
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(_TRACE)
    handler.setFormatter(JsonlFormatter())
    return handler


def _adopt_server_loggers() -> None:
    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = []
        server_logger.propagate = True
    # RequestContextMiddleware writes the access line
    logging.getLogger("uvicorn.access").disabled = True


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console (and optional JSONL) handlers on the root logger.

    Idempotent unless force=True; get_logger() calls this lazily.

    Args:
        level: Log level (1-4, level name, or LogLevel). Defaults to the
            configured level.
        force: Rebuild handlers even if already configured.
    """
    if is_configured() and not force:
        return

    formatters.USE_COLORS = formatters.supports_color()

    log_config = read_logging_config()
    set_log_config(log_config)
    current = coerce_level(level or log_config.get("level", LogLevel.NORMAL))
    set_level(current)

    root = logging.getLogger()
    root.setLevel(_TRACE)
    for handler in root.handlers:
        handler.close()
    root.handlers = [_console_handler(current)]
    file_handler = _jsonl_handler(log_config)
    if file_handler is not None:
        root.addHandler(file_handler)

    _adopt_server_loggers()
    set_configured(True)


def get_logger(name: str = "tts-proxy") -> logging.Logger:
    """Get a logger instance, configuring logging if needed."""
    configure_logging()
    return logging.getLogger(name)


def _emit(logger: logging.Logger, py_level: int, tag: str, numeric_level: int,
          event_name: str, fields: Dict[str, Any]) -> None:
    if numeric_level > get_level():
        return
    logger.log(
        py_level,
        event_name,
        extra={
            "tag": tag,
            "numeric_level": numeric_level,
            "request_id": get_request_id(),
            "event": fields.pop("event", None),
            "seconds": fields.pop("seconds", None),
            "extra_data": fields or None,
        },
    )


def info(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Request lifecycle event (NORMAL)."""
    _emit(logger, logging.INFO, "INFO", LogLevel.NORMAL, event_name, fields)


def success(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Completed operation (NORMAL)."""
    _emit(logger, logging.INFO, "SUCCESS", LogLevel.NORMAL, event_name, fields)


def warn(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Client error or degraded state (NORMAL)."""
    _emit(logger, logging.WARNING, "WARN", LogLevel.NORMAL, event_name, fields)


def error(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Server-side or provider failure (MINIMAL, always shown)."""
    _emit(logger, logging.ERROR, "ERROR", LogLevel.MINIMAL, event_name, fields)


def fail(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Failed request (MINIMAL, always shown)."""
    _emit(logger, logging.ERROR, "FAIL", LogLevel.MINIMAL, event_name, fields)


def verbose(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Upstream call detail (VERBOSE)."""
    _emit(logger, logging.DEBUG, "INFO", LogLevel.VERBOSE, event_name, fields)


def debug(logger: logging.Logger, event_name: str, **fields: Any) -> None:
    """Payloads and internal state (DEBUG)."""
    _emit(logger, _TRACE, "DEBUG", LogLevel.DEBUG, event_name, fields)


__all__ = [
    "LogLevel",
    "coerce_level",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "get_level_name",
    "get_log_config",
    "info",
    "success",
    "warn",
    "error",
    "fail",
    "verbose",
    "debug",
]
