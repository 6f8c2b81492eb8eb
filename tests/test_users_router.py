from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SQLMODEL_CREATE_ALL", "1")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("AUTH_RATE_LIMIT_COUNT", "1000")
    from tabletop.security import ratelimit_dep

    ratelimit_dep._WINDOWS.clear()


@pytest.fixture()
def client():
    from tabletop.db import init_db
    from tabletop.main import create_app

    init_db()
    return TestClient(create_app())


def test_register_returns_user_and_token(client):
    response = client.post(
        "/api/users/register",
        json={"username": "alice", "email": "alice@example.com", "password": "hunter22"},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["user"]["username"] == "alice"
    assert "passwordHash" not in payload["user"]
    assert payload["token"]
    assert response.cookies.get("token") == payload["token"]


def test_register_requires_all_fields(client):
    response = client.post("/api/users/register", json={"username": "alice", "email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_register_duplicate_username_or_email_conflicts(client):
    body = {"username": "alice", "email": "alice@example.com", "password": "hunter22"}
    assert client.post("/api/users/register", json=body).status_code == 201

    same_name = dict(body, email="other@example.com")
    response = client.post("/api/users/register", json=same_name)
    assert response.status_code == 409

    same_email = dict(body, username="alice2")
    response = client.post("/api/users/register", json=same_email)
    assert response.status_code == 409


def test_login_and_cookie_authentication(client):
    from tests.factories import create_user

    user = create_user("bob", password="correct horse")

    bad = client.post("/api/users/login", json={"email": user.email, "password": "wrong"})
    assert bad.status_code == 401
    unknown = client.post("/api/users/login", json={"email": "nobody@example.com", "password": "x"})
    assert unknown.status_code == 401

    ok = client.post("/api/users/login", json={"email": user.email, "password": "correct horse"})
    assert ok.status_code == 200
    assert ok.json()["user"]["id"] == user.id

    # The login cookie alone authenticates follow-up requests.
    me = client.get(f"/api/users/{user.id}")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "bob"

    out = client.post("/api/users/logout")
    assert out.status_code == 200
    client.cookies.clear()
    assert client.get(f"/api/users/{user.id}").status_code == 401


def test_user_detail_is_self_or_system_admin(client):
    from tests.factories import add_participant, auth_headers, create_game_session, create_user

    alice = create_user("alice")
    bob = create_user("bob")
    keeper = create_user("keeper")
    game_session = create_game_session(alice)
    add_participant(game_session, keeper, role="admin")

    assert client.get(f"/api/users/{bob.id}", headers=auth_headers(alice)).status_code == 403
    assert client.get(f"/api/users/{bob.id}", headers=auth_headers(keeper)).status_code == 200

    detail = client.get(f"/api/users/{alice.id}", headers=auth_headers(alice)).json()["user"]
    assert [s["id"] for s in detail["gmSessions"]] == [game_session.id]
    assert detail["participations"][0]["role"] == "mj"


def test_missing_user_is_404_before_permission(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    assert client.get("/api/users/9999", headers=auth_headers(alice)).status_code == 404


def test_non_numeric_id_is_400(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    assert client.get("/api/users/abc", headers=auth_headers(alice)).status_code == 400


def test_list_users_requires_system_admin(client):
    from tests.factories import add_participant, auth_headers, create_game_session, create_user

    alice = create_user("alice")
    keeper = create_user("keeper")
    game_session = create_game_session(alice)
    add_participant(game_session, keeper, role="admin")

    assert client.get("/api/users", headers=auth_headers(alice)).status_code == 403
    response = client.get("/api/users", headers=auth_headers(keeper))
    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 2
    counts = {u["username"]: u["_count"] for u in payload["users"]}
    assert counts["alice"]["gmSessions"] == 1
    assert counts["keeper"]["participations"] == 1


def test_update_user_rehashes_password_and_checks_duplicates(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    create_user("bob")

    conflict = client.put(
        f"/api/users/{alice.id}",
        json={"username": "bob"},
        headers=auth_headers(alice),
    )
    assert conflict.status_code == 409

    response = client.put(
        f"/api/users/{alice.id}",
        json={"username": "alice-renamed", "password": "new-password"},
        headers=auth_headers(alice),
    )
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "alice-renamed"

    login = client.post("/api/users/login", json={"email": alice.email, "password": "new-password"})
    assert login.status_code == 200


def test_delete_user_cascades(client):
    from tabletop.db import get_session
    from tabletop.models import Character, DiceRoll, GameSession, SessionParticipant, User
    from tests.factories import (
        add_participant,
        auth_headers,
        create_character,
        create_dice_roll,
        create_game_session,
        create_user,
    )

    doomed = create_user("doomed")
    other = create_user("other")
    own_table = create_game_session(doomed, title="Doomed table")
    other_table = create_game_session(other, title="Other table")
    hero = create_character(doomed, game_session=other_table)
    add_participant(other_table, doomed, role="joueur", character=hero)
    visitor_hero = create_character(other, name="Visitor", game_session=own_table)
    add_participant(own_table, other, role="joueur", character=visitor_hero)
    create_dice_roll(other_table, doomed, character=hero)
    create_dice_roll(own_table, other)

    response = client.delete(f"/api/users/{doomed.id}", headers=auth_headers(doomed))
    assert response.status_code == 200

    with next(get_session()) as session:
        assert session.get(User, doomed.id) is None
        assert session.exec(select(SessionParticipant).where(SessionParticipant.user_id == doomed.id)).all() == []
        assert session.exec(select(DiceRoll).where(DiceRoll.user_id == doomed.id)).all() == []
        assert session.exec(select(Character).where(Character.user_id == doomed.id)).all() == []
        assert session.exec(select(GameSession).where(GameSession.gm_id == doomed.id)).all() == []
        # Rows of other users that pointed at the deleted session are cleaned too.
        assert session.exec(select(DiceRoll).where(DiceRoll.session_id == own_table.id)).all() == []
        assert session.get(Character, visitor_hero.id).session_id is None
        assert session.get(GameSession, other_table.id) is not None


def test_delete_other_user_is_forbidden(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    bob = create_user("bob")
    assert client.delete(f"/api/users/{bob.id}", headers=auth_headers(alice)).status_code == 403


@pytest.mark.parametrize("password", ["p" * 73, "é" * 37])
def test_register_rejects_password_over_bcrypt_limit(client, password):
    response = client.post(
        "/api/users/register",
        json={"username": "alice", "email": "alice@example.com", "password": password},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_register_accepts_password_at_bcrypt_limit(client):
    response = client.post(
        "/api/users/register",
        json={"username": "alice", "email": "alice@example.com", "password": "p" * 72},
    )
    assert response.status_code == 201
    login = client.post("/api/users/login", json={"email": "alice@example.com", "password": "p" * 72})
    assert login.status_code == 200


def test_update_rejects_password_over_bcrypt_limit(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    response = client.put(
        f"/api/users/{alice.id}",
        json={"password": "p" * 80},
        headers=auth_headers(alice),
    )
    assert response.status_code == 400


def test_login_with_overlong_password_is_rejected(client):
    from tests.factories import create_user

    user = create_user("bob")
    response = client.post("/api/users/login", json={"email": user.email, "password": "p" * 80})
    assert response.status_code == 401


@pytest.mark.parametrize("field", ["username", "email"])
def test_register_rejects_blank_identity(client, field):
    body = {"username": "alice", "email": "alice@example.com", "password": "hunter22"}
    body[field] = "   "
    response = client.post("/api/users/register", json=body)
    assert response.status_code == 400


def test_register_strips_identity_fields(client):
    response = client.post(
        "/api/users/register",
        json={"username": "  alice ", "email": " alice@example.com ", "password": "hunter22"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["username"] == "alice"
    assert response.json()["user"]["email"] == "alice@example.com"

    duplicate = client.post(
        "/api/users/register",
        json={"username": "alice", "email": "other@example.com", "password": "hunter22"},
    )
    assert duplicate.status_code == 409


@pytest.mark.parametrize("field", ["username", "email"])
def test_update_rejects_blank_identity(client, field):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    response = client.put(f"/api/users/{alice.id}", json={field: "  "}, headers=auth_headers(alice))
    assert response.status_code == 400
