"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so every log line emitted while
serving a request (including from inside a streaming generator) carries
the same id. Level and file settings are module-level state shared by
the whole process.

Environment Variables:
    - TTS_PROXY_LOG_LEVEL: Override log level (1-4 or name)
    - TTS_PROXY_LOG_DIR: Enable JSONL file output in this directory
    - TTS_PROXY_JSONL_FILE: JSONL filename (default tts-proxy.jsonl)
    - TTS_PROXY_LOG_ROTATE_BYTES: Max log file size
    - TTS_PROXY_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _int_env(name: str, cfg: Dict[str, Any], key: str) -> None:
    value = os.getenv(name)
    if not value:
        return
    try:
        cfg[key] = int(value)
    except ValueError:
        pass  # keep file/default value


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    Priority (highest first): TTS_PROXY_* variables, the logging section
    of the settings file, built-in defaults.

    Returns:
        Dictionary with level, log_dir, jsonl_file, rotate_max_bytes and
        rotate_backup_count keys where configured.
    """
    cfg: Dict[str, Any] = {}

    from tts_proxy.core.config import load_settings
    try:
        settings = load_settings()
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError, AttributeError):
        # Unreadable settings file: logging still comes up with defaults
        pass

    if os.getenv("TTS_PROXY_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_PROXY_LOG_LEVEL"]
    if os.getenv("TTS_PROXY_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_PROXY_LOG_DIR"]
    if os.getenv("TTS_PROXY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_PROXY_JSONL_FILE"]
    _int_env("TTS_PROXY_LOG_ROTATE_BYTES", cfg, "rotate_max_bytes")
    _int_env("TTS_PROXY_LOG_ROTATE_BACKUP", cfg, "rotate_backup_count")

    return cfg
