"""Tests for log formatting."""

import json
import logging

from marketplace.logging_config import HumanFormatter, JSONFormatter, setup_logging


def _record(msg="quote for %s rejected", args=("TEST-RFQ-0001",), **extra):
    record = logging.LogRecord("marketplace.quotes", logging.WARNING, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    def test_json_line(self):
        entry = json.loads(JSONFormatter().format(_record(request_number="TEST-RFQ-0001")))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "marketplace.quotes"
        assert entry["msg"] == "quote for TEST-RFQ-0001 rejected"
        assert entry["request_number"] == "TEST-RFQ-0001"

    def test_human_line(self):
        line = HumanFormatter().format(_record())
        assert "[W] marketplace.quotes: quote for TEST-RFQ-0001 rejected" in line


class TestSetupLogging:
    def test_level_and_single_handler(self):
        setup_logging("DEBUG", json_logs=True)
        setup_logging("ERROR", json_logs=True)
        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("werkzeug").level == logging.WARNING
