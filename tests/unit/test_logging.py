"""Unit tests for structured logging"""

import json
import logging

from charge_mgmt.config import settings
from charge_mgmt.infrastructure.observability.logging import ChargeJsonFormatter, setup_logging


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("charge_mgmt.test", logging.WARNING, __file__, 1, "Batch completed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_records_carry_service_metadata():
    formatter = ChargeJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    line = json.loads(formatter.format(make_record(request_id="req-7", batch_id="BATCH_1")))

    assert line["message"] == "Batch completed"
    assert line["level"] == "WARNING"
    assert line["service"] == settings.service_name
    assert line["version"] == settings.service_version
    assert line["request_id"] == "req-7"
    assert line["batch_id"] == "BATCH_1"
    assert line["timestamp"].endswith("+00:00")


def test_request_id_is_present_outside_requests():
    formatter = ChargeJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    line = json.loads(formatter.format(make_record()))

    assert "request_id" in line
    assert line["request_id"] is None


def test_setup_logging_routes_server_logs_through_root():
    access = logging.getLogger("uvicorn.access")
    access.addHandler(logging.NullHandler())
    access.propagate = False

    setup_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, ChargeJsonFormatter)
    assert access.handlers == []
    assert access.propagate is True

    setup_logging(settings.log_level)
