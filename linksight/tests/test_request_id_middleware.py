import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from linksight.main import app as linksight_app
from linksight.core.auth import create_access_token
from linksight.core.logging import get_request_id
from linksight.core.middleware.request_id import RequestIdMiddleware, accepted_request_id
from linksight.features.users.service import create_user


def _make_app():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/")
    async def root(request: Request):
        return {"state": request.state.request_id, "context": get_request_id()}

    return app


def test_generated_id_is_bound_to_state_and_context():
    resp = TestClient(_make_app()).get("/")
    rid = resp.headers.get("x-request-id")
    assert rid
    assert resp.json() == {"state": rid, "context": rid}


def test_safe_incoming_id_is_echoed():
    resp = TestClient(_make_app()).get("/", headers={"X-Request-Id": "edge-7f3a:01"})
    assert resp.headers.get("x-request-id") == "edge-7f3a:01"


def test_unsafe_incoming_id_is_replaced():
    assert accepted_request_id("a" * 129) != "a" * 129
    assert accepted_request_id("bad id\r\nx") != "bad id\r\nx"
    assert accepted_request_id("") != ""
    assert accepted_request_id(None)


def test_context_is_cleared_after_request():
    TestClient(_make_app()).get("/")
    assert get_request_id() is None


def test_completion_log_carries_authenticated_user(caplog):
    user = create_user(f"{uuid4().hex[:8]}@example.com")
    client = TestClient(linksight_app)
    with caplog.at_level(logging.INFO, logger="linksight"):
        client.get("/api/premium/usage", headers={"Authorization": f"Bearer {create_access_token(user.user_id)}"})

    done = [r for r in caplog.records if r.getMessage() == "request.complete"]
    assert done
    assert done[-1].user_id == user.user_id
    assert done[-1].status == 200
