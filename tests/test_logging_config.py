import json
import logging

from gobus_booking_platform.utils.logging_config import (
    MASK,
    JSONFormatter,
    RequestIDFilter,
    SensitiveDataFilter,
    request_id_var,
)
from gobus_booking_platform.utils.auth import create_access_token


def make_record(msg, **extra):
    record = logging.LogRecord("gobus_booking_platform.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_id_comes_from_context():
    record = make_record("hello")
    token = request_id_var.set("req-42")
    try:
        RequestIDFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.request_id == "req-42"


def test_request_id_defaults_outside_requests():
    record = make_record("hello")
    RequestIDFilter().filter(record)

    assert record.request_id == "no-request-id"


def test_tokens_and_credentials_are_masked():
    token = create_access_token({"sub": "someone"})
    record = make_record(f"issued {token}", headers={"Authorization": "Bearer x", "Accept": "*/*"})

    SensitiveDataFilter().filter(record)

    assert token not in record.msg
    assert MASK in record.msg
    assert record.headers == {"Authorization": MASK, "Accept": "*/*"}


def test_json_formatter_keeps_extras():
    record = make_record("booked", request_id="req-1", event_type="booking_created")

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "booked"
    assert entry["request_id"] == "req-1"
    assert entry["level"] == "INFO"
    assert entry["extra"] == {"event_type": "booking_created"}
