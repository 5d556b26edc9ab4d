# backend/tests/test_auth_flow.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from fastapi.testclient import TestClient

from pgstay.auth import hash_password, verify_password
from pgstay.config import settings
from pgstay.main import create_app


def _register(client: TestClient) -> dict:
    r = client.post(
        "/api/auth/register",
        json={"org_slug": "Green-PG", "org_name": "Green PG", "email": "Owner@Green.local", "password": "s3cret-pass"},
    )
    assert r.status_code == 200, r.text
    return r.json()


def test_password_hash_roundtrip():
    stored = hash_password("hunter22")
    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)
    assert not verify_password("hunter22", None)
    assert not verify_password("hunter22", "md5$abc")


def test_register_sets_session_cookie_and_me_works():
    client = TestClient(create_app())
    body = _register(client)
    assert body["principal"]["org_slug"] == "green-pg"
    assert body["principal"]["role"] == "owner"
    assert body["principal"]["plan_code"] == "starter"
    assert settings.jwt_cookie_name in client.cookies

    me = client.get("/api/auth/me", headers={"X-Org-Slug": "green-pg"})
    assert me.status_code == 200, me.text
    assert me.json()["email"] == "owner@green.local"

    # same email again
    r = client.post(
        "/api/auth/register",
        json={"org_slug": "other", "org_name": "Other", "email": "owner@green.local", "password": "s3cret-pass"},
    )
    assert r.status_code == 400


def test_login_with_bearer_token():
    client = TestClient(create_app())
    _register(client)
    client.cookies.clear()

    bad = client.post("/api/auth/login", json={"org_slug": "green-pg", "email": "owner@green.local", "password": "wrong-pass"})
    assert bad.status_code == 401

    r = client.post("/api/auth/login", json={"org_slug": "green-pg", "email": "owner@green.local", "password": "s3cret-pass"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    client.cookies.clear()

    me = client.get("/api/auth/me", headers={"X-Org-Slug": "green-pg", "Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "owner"


def test_expired_or_forged_tokens_are_401():
    client = TestClient(create_app())
    _register(client)
    client.cookies.clear()

    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    expired = jwt.encode({"sub": "1", "exp": past}, settings.jwt_secret, algorithm="HS256")
    r = client.get("/api/auth/me", headers={"X-Org-Slug": "green-pg", "Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"

    future = datetime.now(timezone.utc) + timedelta(minutes=5)
    forged = jwt.encode({"sub": "1", "exp": future}, "not-the-secret", algorithm="HS256")
    r = client.get("/api/auth/me", headers={"X-Org-Slug": "green-pg", "Authorization": f"Bearer {forged}"})
    assert r.status_code == 401
