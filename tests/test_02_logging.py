"""
Tests for the logging package.

Tests cover:
- coerce_level() for ints, names and Python levels
- JSONL persistence through TTS_PROXY_LOG_DIR / TTS_PROXY_JSONL_FILE
- Console formatter output
"""
import json
import logging

from tts_proxy.core.logging import (
    ColoredConsoleFormatter,
    LogLevel,
    coerce_level,
    configure_logging,
    get_logger,
    info,
    set_request_id,
    verbose,
)


class TestCoerceLevel:
    """Tests for coerce_level()."""

    def test_numeric_levels(self):
        assert coerce_level(1) is LogLevel.MINIMAL
        assert coerce_level(4) is LogLevel.DEBUG

    def test_names(self):
        assert coerce_level("verbose") is LogLevel.VERBOSE
        assert coerce_level("warning") is LogLevel.MINIMAL
        assert coerce_level("3") is LogLevel.VERBOSE

    def test_python_levels(self):
        assert coerce_level(logging.ERROR) is LogLevel.MINIMAL
        assert coerce_level(logging.INFO) is LogLevel.NORMAL

    def test_unknown_falls_back(self):
        assert coerce_level("loud") is LogLevel.NORMAL
        assert coerce_level(None) is LogLevel.NORMAL
        assert coerce_level(True) is LogLevel.NORMAL


def _flush_handlers():
    for handler in logging.getLogger().handlers:
        if hasattr(handler, "flush"):
            handler.flush()


def test_logging_jsonl_persistence(monkeypatch, tmp_path):
    monkeypatch.setenv("TTS_PROXY_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("TTS_PROXY_JSONL_FILE", "test.jsonl")

    try:
        configure_logging(force=True)
        log = get_logger("test")
        set_request_id("rid-1")
        info(log, "hello", event="logging_test", foo="bar", seconds=0.25)
        _flush_handlers()

        log_path = tmp_path / "test.jsonl"
        assert log_path.exists()

        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "logging_test"
        assert payload["seconds"] == 0.25
        assert payload["extra"]["foo"] == "bar"
        assert payload["level"] == 2
    finally:
        set_request_id("-")
        monkeypatch.delenv("TTS_PROXY_LOG_DIR")
        monkeypatch.delenv("TTS_PROXY_JSONL_FILE")
        configure_logging(force=True)


def test_level_filters_verbose(monkeypatch, tmp_path):
    monkeypatch.setenv("TTS_PROXY_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("TTS_PROXY_JSONL_FILE", "level.jsonl")

    try:
        configure_logging(level=1, force=True)
        log = get_logger("test")
        verbose(log, "hidden_line")
        info(log, "also_hidden")
        _flush_handlers()

        log_path = tmp_path / "level.jsonl"
        text = log_path.read_text(encoding="utf-8") if log_path.exists() else ""
        assert "hidden_line" not in text
        assert "also_hidden" not in text
    finally:
        monkeypatch.delenv("TTS_PROXY_LOG_DIR")
        monkeypatch.delenv("TTS_PROXY_JSONL_FILE")
        configure_logging(force=True)


class TestConsoleFormatter:
    """Tests for ColoredConsoleFormatter."""

    def _record(self, **extra):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "tts_completed", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_fields_rendered(self, monkeypatch):
        from tts_proxy.core.logging import formatters
        monkeypatch.setattr(formatters, "USE_COLORS", False)

        record = self._record(tag="INFO", request_id="abc123", seconds=0.812,
                              extra_data={"voice_id": "v-1", "audio_bytes": 48213})
        line = ColoredConsoleFormatter().format(record)

        assert "(abc123)" in line
        assert "tts_completed" in line
        assert "voice_id=v-1" in line
        assert "audio_bytes=48213" in line
        assert line.endswith("0.812s")

    def test_no_request_id_outside_request(self, monkeypatch):
        from tts_proxy.core.logging import formatters
        monkeypatch.setattr(formatters, "USE_COLORS", False)

        line = ColoredConsoleFormatter().format(self._record(tag="INFO", request_id="-"))
        assert "(-)" not in line

    def test_status_colored_by_class(self, monkeypatch):
        from tts_proxy.core.logging import formatters
        monkeypatch.setattr(formatters, "USE_COLORS", True)

        line = ColoredConsoleFormatter().format(
            self._record(tag="WARN", request_id="-", extra_data={"status": 503, "audio_bytes": 0})
        )
        assert f"{formatters.RED}status=503{formatters.RESET}" in line
        assert f"{formatters.RED}audio_bytes=0{formatters.RESET}" in line

    def test_no_color_env(self, monkeypatch):
        from tts_proxy.core.logging import formatters
        monkeypatch.setenv("NO_COLOR", "1")
        assert formatters.supports_color() is False
