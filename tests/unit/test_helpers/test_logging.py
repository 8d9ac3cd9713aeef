"""
Unit tests for the logging helpers.
"""

import io
import json
import logging

import pytest

from vsnap.helpers.logging import (
    ColoredFormatter,
    StructuredFormatter,
    get_logger,
    log_manager,
)


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    log_manager.configure(level="WARNING")


@pytest.mark.unit
class TestGetLogger:
    def test_prefixes_vsnap(self):
        assert get_logger("cores.thing").name == "vsnap.cores.thing"

    def test_keeps_qualified_names(self):
        assert get_logger("vsnap.worker.archiver").name == "vsnap.worker.archiver"


@pytest.mark.unit
class TestStructuredFormatter:
    def test_includes_extra_fields(self):
        record = logging.LogRecord("vsnap.test", logging.INFO, __file__, 1, "Created volume", (), None)
        record.volume = "db1"
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "Created volume"
        assert entry["level"] == "INFO"
        assert entry["volume"] == "db1"


@pytest.mark.unit
class TestLogManager:
    def test_configure_writes_to_stream(self):
        stream = io.StringIO()
        log_manager.configure(level="INFO", stream=stream)
        get_logger("test").info("hello there")
        assert "hello there" in stream.getvalue()

    def test_level_filters_messages(self):
        stream = io.StringIO()
        log_manager.configure(level="ERROR", stream=stream)
        get_logger("test").warning("quiet")
        assert stream.getvalue() == ""

    def test_structured_console(self):
        stream = io.StringIO()
        log_manager.configure(level="INFO", stream=stream, structured=True)
        get_logger("test").info("json please", extra={"snapshot": "s1"})
        entry = json.loads(stream.getvalue().strip())
        assert entry["snapshot"] == "s1"

    def test_log_file_is_json(self, tmp_path):
        log_file = tmp_path / "logs" / "vsnap.log"
        log_manager.configure(level="INFO", stream=io.StringIO(), log_file=str(log_file))
        get_logger("test").info("to file", extra={"container": "w1"})
        for handler in logging.getLogger("vsnap").handlers:
            handler.flush()
        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["container"] == "w1"

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            log_manager.configure(level="NOPE")

    def test_colored_formatter_without_colors(self):
        record = logging.LogRecord("vsnap.test", logging.ERROR, __file__, 1, "boom", (), None)
        assert "\033[" not in ColoredFormatter(use_colors=False).format(record)
