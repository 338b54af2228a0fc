import json
import logging

from app.core.logger import ColorFormatter, JSONFormatter, RequestContextFilter, new_request_id, request_id_var


def make_record(msg="📒 posted", level=logging.INFO):
    return logging.LogRecord("LedgerService", level, __file__, 1, msg, None, None)


def test_filter_stamps_current_request_id():
    token = request_id_var.set("-")
    try:
        new_request_id("req-42")
        record = make_record()

        assert RequestContextFilter().filter(record) is True
        assert record.request_id == "req-42"
    finally:
        request_id_var.reset(token)


def test_generated_request_id():
    token = request_id_var.set("-")
    try:
        rid = new_request_id()
        assert len(rid) == 12
        assert request_id_var.get() == rid
    finally:
        request_id_var.reset(token)


def test_json_formatter():
    record = make_record()
    record.request_id = "r1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["logger"] == "LedgerService"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "r1"
    assert payload["message"] == "📒 posted"


def test_color_formatter_without_request_context():
    line = ColorFormatter().format(make_record(level=logging.ERROR))

    assert "[-] LedgerService - ERROR - 📒 posted" in line
    assert line.startswith("\x1b[31;20m")
