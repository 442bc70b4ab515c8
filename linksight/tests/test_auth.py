"""Tests for bearer token verification."""

import jwt
import pytest
from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient

from linksight.main import app
from linksight.core.auth import create_access_token, verify_token
from linksight.core.config import settings
from linksight.core.errors import AuthError
from linksight.features.users.service import create_user


def test_token_round_trip():
    assert verify_token(create_access_token("user-1")) == "user-1"


def test_legacy_user_id_claim_accepted():
    token = jwt.encode({"userId": "legacy-user"}, settings.JWT_SECRET, algorithm="HS256")
    assert verify_token(token) == "legacy-user"


def test_expired_token_rejected():
    token = create_access_token("user-1", expires_in=timedelta(seconds=-5))
    with pytest.raises(AuthError) as excinfo:
        verify_token(token)
    assert excinfo.value.code == "token_expired"


def test_wrong_secret_rejected():
    token = jwt.encode({"sub": "user-1"}, "other-secret", algorithm="HS256")
    with pytest.raises(AuthError) as excinfo:
        verify_token(token)
    assert excinfo.value.code == "invalid_token"


def test_token_without_subject_rejected():
    token = jwt.encode({"role": "pro"}, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(AuthError):
        verify_token(token)


def test_missing_secret_is_503(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", None)
    with pytest.raises(AuthError) as excinfo:
        verify_token("anything")
    assert excinfo.value.status_code == 503


def test_garbage_bearer_is_401():
    client = TestClient(app)
    resp = client.get("/api/premium/usage", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "invalid_token"


def test_token_for_deleted_user_is_401():
    client = TestClient(app)
    token = create_access_token(f"user-{uuid4()}")
    resp = client.get("/api/premium/usage", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "user_not_found"


def test_valid_token_resolves_user():
    user = create_user(f"{uuid4().hex[:8]}@example.com")
    client = TestClient(app)
    resp = client.get("/api/premium/usage", headers={"Authorization": f"Bearer {create_access_token(user.user_id)}"})
    assert resp.status_code == 200
