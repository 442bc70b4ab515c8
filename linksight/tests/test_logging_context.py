"""Tests for structured logging and request_id propagation."""

import json
import logging
from fastapi.testclient import TestClient

from linksight.main import app
from linksight.core.logging import JsonFormatter, log_event, request_id_ctx_var


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="linksight"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_request_id_in_error_response():
    client = TestClient(app)
    response = client.get("/api/premium/usage")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 401
    assert rid
    assert response.json()["error"]["request_id"] == rid


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("linksight", logging.INFO, __file__, 1, "[gate] DENY", (), None)
    record.request_id = "rid-1"
    record.action_type = "batch_analysis"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "[gate] DENY"
    assert payload["request_id"] == "rid-1"
    assert payload["action_type"] == "batch_analysis"


def test_log_event_uses_context_request_id(caplog):
    token = request_id_ctx_var.set("ctx-rid")
    try:
        with caplog.at_level(logging.INFO, logger="linksight"):
            log_event("info", "premium.check", user_id="u1", action_type="profile_analysis", note="x" * 600, count=3)
    finally:
        request_id_ctx_var.reset(token)

    record = next(r for r in caplog.records if r.getMessage() == "premium.check")
    assert record.request_id == "ctx-rid"
    assert record.user_id == "u1"
    assert record.note.endswith("...<truncated>")
    assert record.count == 3
