import json
import logging
import sys

from procureflow.logging import JsonFormatter


def test_json_formatter_escapes_messages():
    record = logging.LogRecord(
        "procureflow.services.job_orders",
        logging.INFO,
        __file__,
        1,
        'Budget rejected: "insufficient funds"',
        None,
        None,
    )
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == 'Budget rejected: "insufficient funds"'
    assert payload["level"] == "INFO"
    assert payload["logger"] == "procureflow.services.job_orders"


def test_json_formatter_includes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("procureflow", logging.WARNING, __file__, 1, "failed", None, sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in payload["exc_info"]
