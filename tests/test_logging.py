# tests/test_logging.py
"""
Test structured logging.
"""

import json
import logging

from coldchain.logging import JsonLineFormatter, get_logger


class TestStructuredLogger:
    """Tests for bound context and JSON lines."""

    def test_bound_fields_on_every_record(self, caplog):
        log = get_logger("tests.transit").bind(uid="p1")
        with caplog.at_level(logging.INFO, logger="tests.transit"):
            log.info("package_picked_up", route="SLS004")
            log.info("package_delivered", route="SLS001")

        assert [r.getMessage() for r in caplog.records] == ["package_picked_up", "package_delivered"]
        assert all(r.fields["uid"] == "p1" for r in caplog.records)
        assert caplog.records[1].fields["route"] == "SLS001"

    def test_bind_does_not_change_parent(self, caplog):
        parent = get_logger("tests.parent")
        parent.bind(uid="p1")
        with caplog.at_level(logging.INFO, logger="tests.parent"):
            parent.info("transit_started")
        assert "uid" not in caplog.records[0].fields

    def test_json_line(self):
        record = logging.LogRecord("coldchain.api", logging.WARNING, __file__, 1, "package_request_failed", None, None)
        record.fields = {"status": 404}
        line = json.loads(JsonLineFormatter().format(record))

        assert line["event"] == "package_request_failed"
        assert line["level"] == "WARNING"
        assert line["status"] == 404
        assert line["ts"].endswith("Z")
        assert "at" not in line
