"""
Tests for access token handling.

These tests verify that:
1. Session cookies and bearer tokens both resolve the calling member
2. Expired, tampered and subject-less tokens are rejected with a trace_id
3. Dev mode exposes the failure reason, production mode does not
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import matchlink.main as m
from matchlink.auth import deps as auth_deps
from matchlink.auth.deps import SESSION_COOKIE_NAME
from matchlink.auth.security import ALGORITHM, create_access_token


@pytest.fixture
def client(services, add_member):
    add_member("1", display_name="Asha")
    return TestClient(m.app)


class TestAccessTokens:
    """Token resolution for member routes."""

    def test_cookie_session_is_accepted(self, client):
        client.cookies.set(SESSION_COOKIE_NAME, create_access_token("1"))
        res = client.get("/connections/summary")
        assert res.status_code == 200

    def test_bearer_token_is_accepted(self, client):
        res = client.get("/connections/summary", headers={"Authorization": f"Bearer {create_access_token('1')}"})
        assert res.status_code == 200

    def test_malformed_header_is_rejected(self, client):
        res = client.get("/connections/summary", headers={"Authorization": "Token abc"})
        assert res.status_code == 401
        assert "trace_id" in res.json()["detail"]

    def test_expired_token_is_rejected(self, client):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "1", "iat": int((now - timedelta(hours=2)).timestamp()), "exp": int((now - timedelta(hours=1)).timestamp())},
            "test-secret",
            algorithm=ALGORITHM,
        )
        res = client.get("/connections/summary", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_token_without_subject_is_rejected(self, client):
        token = jwt.encode({"exp": int((datetime.now(timezone.utc) + timedelta(minutes=5)).timestamp())}, "test-secret", algorithm=ALGORITHM)
        res = client.get("/connections/summary", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_dev_mode_includes_reason(self, client, monkeypatch):
        monkeypatch.setattr(auth_deps, "DEV_MODE", True)
        res = client.get("/connections/summary", headers={"Authorization": f"Bearer {create_access_token('ghost')}"})
        assert res.status_code == 401
        assert res.json()["detail"]["reason"] == "member_not_found"

    def test_production_mode_hides_reason(self, client, monkeypatch):
        monkeypatch.setattr(auth_deps, "DEV_MODE", False)
        res = client.get("/connections/summary")
        assert res.status_code == 401
        assert "reason" not in res.json()["detail"]
