"""Tests for logging setup."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import json
import logging

import pytest

from medguard.logging_config import StructuredFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg="Scan %s completed", args=("s1",), **extra):
    record = logging.LogRecord("medguard.test", logging.INFO, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_json_fields(self):
        data = json.loads(StructuredFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "medguard.test"
        assert data["message"] == "Scan s1 completed"
        assert data["line"] == 10
        assert "timestamp" in data

    def test_extra_fields_included(self):
        data = json.loads(StructuredFormatter().format(_record(alert={"alert_type": "HIGH_FILE_RISK"})))
        assert data["alert"] == {"alert_type": "HIGH_FILE_RISK"}

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(StructuredFormatter().format(record))
        assert "ValueError: bad" in data["exception"]


class TestConfigureLogging:
    def test_sets_level_and_single_handler(self):
        configure_logging("debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_json_format(self):
        configure_logging("INFO", json_format=True)
        assert isinstance(logging.getLogger().handlers[0].formatter, StructuredFormatter)

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_leaves_library_loggers_alone(self):
        configure_logging("DEBUG")
        assert logging.getLogger("urllib3").level == logging.NOTSET
