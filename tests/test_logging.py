import json
import logging
import sys
from tms.core import request_id_var, set_request_context, user_id_var
from tms.core.logging_config import SecurityFilter, StructuredFormatter

def _record(msg, *args, exc_info=None, **extra):
    record = logging.LogRecord("tms.test", logging.INFO, __file__, 10, msg, args, exc_info)
    record.__dict__.update(extra)
    return record

def test_formatter_emits_json_with_request_context():
    req_token = request_id_var.set(None)
    user_token = user_id_var.set(None)
    try:
        set_request_context(request_id="req-1", user_id="user-1")
        entry = json.loads(StructuredFormatter().format(_record("hello %s", "world", extra_fields={"k": 1})))
    finally:
        request_id_var.reset(req_token)
        user_id_var.reset(user_token)

    assert entry["message"] == "hello world"
    assert entry["level"] == "INFO"
    assert entry["trace"] == {"request_id": "req-1", "user_id": "user-1"}
    assert entry["custom"] == {"k": 1}

def test_formatter_includes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        entry = json.loads(StructuredFormatter().format(_record("failed", exc_info=sys.exc_info())))
    assert entry["error"]["type"] == "ValueError"
    assert entry["error"]["message"] == "boom"

def test_security_filter_redacts_credentials():
    record = _record("auth header Bearer abc.def.ghi with password=hunter2")
    assert SecurityFilter().filter(record) is True
    message = record.getMessage()
    assert "abc.def.ghi" not in message
    assert "hunter2" not in message
    assert message.count("***REDACTED***") == 2
