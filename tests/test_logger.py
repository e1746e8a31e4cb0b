"""JSON log lines and the per-request context bound to them."""

import json
import logging

from app.utils.logger import JSONFormatter, bind_context, current_context, reset_context


def make_record(**extra):
    record = logging.LogRecord("dear23.test", logging.INFO, __file__, 10, "hello %s", ("there",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_bound_fields_appear_on_every_line_until_reset():
    formatter = JSONFormatter()
    token = bind_context(request_id="req-1", uid="alice", couple_id=None)
    try:
        line = json.loads(formatter.format(make_record(extra_data={"error_code": "CONFLICT"})))
    finally:
        reset_context(token)

    assert line["message"] == "hello there"
    assert line["request_id"] == "req-1"
    assert line["uid"] == "alice"
    assert "couple_id" not in line
    assert line["error_code"] == "CONFLICT"
    assert current_context() == {}
    assert "request_id" not in json.loads(formatter.format(make_record()))


def test_nested_binding_extends_the_outer_context():
    outer = bind_context(request_id="req-2")
    inner = bind_context(uid="bob")
    assert current_context() == {"request_id": "req-2", "uid": "bob"}
    reset_context(inner)
    assert current_context() == {"request_id": "req-2"}
    reset_context(outer)


def test_responses_carry_a_request_id(client):
    generated = client.get("/health")
    echoed = client.get("/health", headers={"X-Request-ID": "trace-42"})

    assert len(generated.headers["X-Request-ID"]) == 12
    assert echoed.headers["X-Request-ID"] == "trace-42"
