import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SQLMODEL_CREATE_ALL", "1")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("CSRF_ENABLED", raising=False)
    from tabletop.security import ratelimit_dep

    ratelimit_dep._WINDOWS.clear()
    yield
    ratelimit_dep._WINDOWS.clear()


@pytest.fixture()
def client():
    from tabletop.db import init_db
    from tabletop.main import create_app

    init_db()
    return TestClient(create_app())


def test_csrf_header_required_when_enabled(client, monkeypatch):
    from tests.factories import auth_headers, create_user

    monkeypatch.setenv("CSRF_ENABLED", "1")
    alice = create_user("alice")

    missing = client.post("/api/sessions", json={"title": "Dragon Hunt"}, headers=auth_headers(alice))
    assert missing.status_code == 403
    assert missing.json()["message"] == "Missing CSRF token"

    headers = dict(auth_headers(alice), **{"X-CSRF-Token": "anything"})
    ok = client.post("/api/sessions", json={"title": "Dragon Hunt"}, headers=headers)
    assert ok.status_code == 201


def test_csrf_cookie_must_match_header(client, monkeypatch):
    from tests.factories import auth_headers, create_user

    monkeypatch.setenv("CSRF_ENABLED", "true")
    alice = create_user("alice")
    client.cookies.set("csrf_token", "expected")

    mismatch = dict(auth_headers(alice), **{"X-CSRF-Token": "other"})
    assert client.post("/api/sessions", json={"title": "x"}, headers=mismatch).status_code == 403

    match = dict(auth_headers(alice), **{"X-CSRF-Token": "expected"})
    assert client.post("/api/sessions", json={"title": "x"}, headers=match).status_code == 201


def test_csrf_guard_ignores_reads(client, monkeypatch):
    monkeypatch.setenv("CSRF_ENABLED", "1")
    assert client.get("/api/sessions").status_code == 200


def test_login_is_rate_limited(client, monkeypatch):
    from tests.factories import create_user

    monkeypatch.setenv("AUTH_RATE_LIMIT_COUNT", "2")
    monkeypatch.setenv("AUTH_RATE_LIMIT_WINDOW_SEC", "60")
    user = create_user("bob")
    body = {"email": user.email, "password": "wrong"}

    assert client.post("/api/users/login", json=body).status_code == 401
    assert client.post("/api/users/login", json=body).status_code == 401
    limited = client.post("/api/users/login", json=body)
    assert limited.status_code == 429
    assert limited.json()["success"] is False
    assert int(limited.headers["Retry-After"]) <= 60


def test_rate_limit_namespaces_are_independent(client, monkeypatch):
    monkeypatch.setenv("AUTH_RATE_LIMIT_COUNT", "1")
    login = {"email": "nobody@example.com", "password": "x"}

    assert client.post("/api/users/login", json=login).status_code == 401
    assert client.post("/api/users/login", json=login).status_code == 429
    register = client.post(
        "/api/users/register",
        json={"username": "carol", "email": "carol@example.com", "password": "hunter22"},
    )
    assert register.status_code == 201


def test_password_hashing_round_trip(monkeypatch):
    from tabletop.auth.passwords import hash_password, verify_password

    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret", "not-a-bcrypt-hash")


def test_expired_rate_limit_windows_are_evicted(client, monkeypatch):
    from tabletop.security import ratelimit_dep

    monkeypatch.setenv("AUTH_RATE_LIMIT_COUNT", "5")
    monkeypatch.setenv("AUTH_RATE_LIMIT_WINDOW_SEC", "60")
    stale = ("login", "203.0.113.7")
    ratelimit_dep._WINDOWS[stale] = (5, time.time() - 3600)

    client.post("/api/users/login", json={"email": "nobody@example.com", "password": "x"})

    assert stale not in ratelimit_dep._WINDOWS
    assert list(ratelimit_dep._WINDOWS) == [("login", "testclient")]


def test_expired_window_resets_own_count(client, monkeypatch):
    from tabletop.security import ratelimit_dep

    monkeypatch.setenv("AUTH_RATE_LIMIT_COUNT", "1")
    ratelimit_dep._WINDOWS[("login", "testclient")] = (9, time.time() - 3600)

    response = client.post("/api/users/login", json={"email": "nobody@example.com", "password": "x"})
    assert response.status_code == 401
    assert ratelimit_dep._WINDOWS[("login", "testclient")][0] == 1
