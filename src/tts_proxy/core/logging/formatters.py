"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line for the rotating log file
    ColoredConsoleFormatter: human-readable line for the terminal

Output Examples:
    JSONL (file):
        {"ts":"2026-01-15T14:30:05+03:00","level":2,"tag":"INFO","message":"tts_completed","request_id":"3f9c0d1e2a4b","extra":{"voice_id":"abc","audio_bytes":48213}}

    Console:
        14:30:05 [ INFO  ] (3f9c0d1e2a4b) tts_completed voice_id=abc audio_bytes=48213 0.812s

Console colors are off when stdout is not a TTY or when NO_COLOR or
TTS_PROXY_NO_COLOR=1 is set. USE_COLORS is re-evaluated by
configure_logging(); tests may flip it directly.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict

RESET = "\033[0m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
WHITE = "\033[37m"
GRAY = "\033[90m"

_TAG_COLORS = {
    "SUCCESS": "\033[92m",
    "FAIL": "\033[91m",
    "ERROR": "\033[91m",
    "WARN": "\033[93m",
    "INFO": "\033[96m",
    "DEBUG": GRAY,
}


def supports_color() -> bool:
    """True when the console handler should emit ANSI codes."""
    if os.getenv("TTS_PROXY_NO_COLOR", "0") == "1" or os.getenv("NO_COLOR"):
        return False
    # Windows terminals of interest all run through a TTY-aware host now
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


USE_COLORS = supports_color()


def _paint(text: str, color: str) -> str:
    return f"{color}{text}{RESET}" if USE_COLORS else text


def _status_color(status: int) -> str:
    if status >= 500:
        return RED
    if status >= 400:
        return YELLOW
    return GREEN


def _seconds_color(seconds: float) -> str:
    if seconds < 0.5:
        return GREEN
    return YELLOW if seconds < 2.0 else RED


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines for file output.

    Output Format:
        {
            "ts": "...",            # ISO timestamp with timezone
            "level": 2,             # Numeric level (1-4)
            "tag": "INFO",
            "message": "...",
            "request_id": "...",
            "event": "...",         # optional
            "seconds": 0.5,         # optional
            "extra": {...}          # optional
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        optional = {
            "event": getattr(record, "event", None),
            "seconds": getattr(record, "seconds", None),
            "extra": getattr(record, "extra_data", None),
        }
        payload.update({k: v for k, v in optional.items() if v not in (None, "", {})})
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    One console line per record:

        HH:MM:SS [ TAG   ] (rid) message event=... key=value 0.123s

    HTTP statuses are colored by class, audio byte counts are magenta
    (red when zero) and durations go green/yellow/red at 0.5s and 2s.
    """

    def format(self, record: logging.LogRecord) -> str:
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), DIM),
            _paint(f"[{tag:^7}]", _TAG_COLORS.get(tag.upper(), WHITE)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", DIM + CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", BLUE))

        for key, value in (getattr(record, "extra_data", None) or {}).items():
            parts.append(_paint(f"{key}={value}", self._field_color(key, value)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(_paint(f"{seconds:.3f}s", _seconds_color(seconds)))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key in ("status", "upstream_status") and isinstance(value, int):
            return _status_color(value)
        if key in ("audio_bytes", "total_bytes") and isinstance(value, int):
            return RED if value == 0 else MAGENTA
        if key == "error":
            return RED
        return DIM
