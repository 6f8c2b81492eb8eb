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


@pytest.fixture()
def client():
    from tabletop.db import init_db
    from tabletop.main import create_app

    init_db()
    return TestClient(create_app())


CHARACTER_BODY = {
    "name": "Eldrin",
    "race": "Elfe",
    "class": "Rôdeur",
    "level": 3,
    "inventory": ["arc long"],
    "stats": {"dex": 17},
}


def test_create_character_uses_class_field(client):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    response = client.post("/api/characters", json=CHARACTER_BODY, headers=auth_headers(alice))
    assert response.status_code == 201
    character = response.json()["character"]
    assert character["class"] == "Rôdeur"
    assert character["userId"] == alice.id
    assert character["isAlive"] is True
    assert character["sessionId"] is None
    assert character["inventory"] == ["arc long"]


@pytest.mark.parametrize("missing", ["name", "race", "class", "level"])
def test_create_character_requires_core_fields(client, missing):
    from tests.factories import auth_headers, create_user

    alice = create_user("alice")
    body = {k: v for k, v in CHARACTER_BODY.items() if k != missing}
    response = client.post("/api/characters", json=body, headers=auth_headers(alice))
    assert response.status_code == 400


def test_list_characters_defaults_to_self_and_guards_others(client):
    from tests.factories import add_participant, auth_headers, create_character, create_game_session, create_user

    alice = create_user("alice")
    bob = create_user("bob")
    keeper = create_user("keeper")
    create_character(alice, name="A1")
    create_character(alice, name="A2")
    create_character(bob, name="B1")
    add_participant(create_game_session(bob), keeper, role="admin")

    own = client.get("/api/characters", headers=auth_headers(alice)).json()
    assert [c["name"] for c in own["characters"]] == ["A1", "A2"]

    assert client.get("/api/characters", params={"userId": bob.id}, headers=auth_headers(alice)).status_code == 403
    as_admin = client.get("/api/characters", params={"userId": alice.id}, headers=auth_headers(keeper))
    assert as_admin.status_code == 200
    assert as_admin.json()["count"] == 2


def test_gm_can_view_and_tweak_but_not_rename(client):
    from tests.factories import auth_headers, create_character, create_game_session, create_user

    gm = create_user("gm")
    player = create_user("player")
    game_session = create_game_session(gm)
    hero = create_character(player, game_session=game_session)

    view = client.get(f"/api/characters/{hero.id}", headers=auth_headers(gm))
    assert view.status_code == 200
    assert view.json()["character"]["session"]["id"] == game_session.id

    level_up = client.put(f"/api/characters/{hero.id}", json={"level": 4}, headers=auth_headers(gm))
    assert level_up.status_code == 200
    assert level_up.json()["character"]["level"] == 4

    rename = client.put(f"/api/characters/{hero.id}", json={"name": "Evil"}, headers=auth_headers(gm))
    assert rename.status_code == 403

    reclass = client.put(f"/api/characters/{hero.id}", json={"class": "Mage"}, headers=auth_headers(gm))
    assert reclass.status_code == 403


def test_owner_updates_identity_and_partial_fields(client):
    from tests.factories import auth_headers, create_character, create_user

    player = create_user("player")
    hero = create_character(player)

    response = client.put(
        f"/api/characters/{hero.id}",
        json={"name": "Eldrin the Bold", "class": "Paladin", "isAlive": False},
        headers=auth_headers(player),
    )
    assert response.status_code == 200
    character = response.json()["character"]
    assert character["name"] == "Eldrin the Bold"
    assert character["class"] == "Paladin"
    assert character["isAlive"] is False
    assert character["race"] == "Elfe"


def test_update_character_session_must_exist(client):
    from tests.factories import auth_headers, create_character, create_user

    player = create_user("player")
    hero = create_character(player)
    response = client.put(
        f"/api/characters/{hero.id}",
        json={"sessionId": 999},
        headers=auth_headers(player),
    )
    assert response.status_code == 404


def test_outsider_cannot_view_character(client):
    from tests.factories import auth_headers, create_character, create_user

    player = create_user("player")
    outsider = create_user("outsider")
    hero = create_character(player)
    assert client.get(f"/api/characters/{hero.id}", headers=auth_headers(outsider)).status_code == 403
    assert client.get("/api/characters/999", headers=auth_headers(outsider)).status_code == 404


def test_assign_session_upserts_participation(client):
    from tabletop.db import get_session
    from tabletop.models import SessionParticipant
    from tests.factories import add_participant, auth_headers, create_character, create_game_session, create_user

    gm = create_user("gm")
    player = create_user("player")
    game_session = create_game_session(gm)
    add_participant(game_session, player, role="joueur")
    hero = create_character(player)

    attach = client.put(
        f"/api/characters/{hero.id}/assign-session",
        json={"sessionId": game_session.id},
        headers=auth_headers(player),
    )
    assert attach.status_code == 200
    assert attach.json()["character"]["sessionId"] == game_session.id

    with next(get_session()) as session:
        rows = session.exec(
            select(SessionParticipant).where(
                SessionParticipant.session_id == game_session.id,
                SessionParticipant.user_id == player.id,
            )
        ).all()
    assert len(rows) == 1
    assert rows[0].character_id == hero.id
    assert rows[0].role == "joueur"

    detach = client.put(
        f"/api/characters/{hero.id}/assign-session",
        json={"sessionId": None},
        headers=auth_headers(player),
    )
    assert detach.status_code == 200
    assert detach.json()["character"]["sessionId"] is None


def test_assign_session_requires_membership_and_ownership(client):
    from tests.factories import auth_headers, create_character, create_game_session, create_user

    gm = create_user("gm")
    player = create_user("player")
    game_session = create_game_session(gm)
    hero = create_character(player)

    not_member = client.put(
        f"/api/characters/{hero.id}/assign-session",
        json={"sessionId": game_session.id},
        headers=auth_headers(player),
    )
    assert not_member.status_code == 403

    not_owner = client.put(
        f"/api/characters/{hero.id}/assign-session",
        json={"sessionId": game_session.id},
        headers=auth_headers(gm),
    )
    assert not_owner.status_code == 403

    missing = client.put(
        f"/api/characters/{hero.id}/assign-session",
        json={"sessionId": 999},
        headers=auth_headers(player),
    )
    assert missing.status_code == 404


def test_session_characters_listing(client):
    from tests.factories import add_participant, auth_headers, create_character, create_game_session, create_user

    gm = create_user("gm")
    player = create_user("player")
    outsider = create_user("outsider")
    game_session = create_game_session(gm)
    add_participant(game_session, player, role="joueur")
    create_character(player, game_session=game_session)

    listed = client.get(f"/api/characters/session/{game_session.id}", headers=auth_headers(player))
    assert listed.status_code == 200
    assert listed.json()["characters"][0]["user"]["username"] == "player"
    denied = client.get(f"/api/characters/session/{game_session.id}", headers=auth_headers(outsider))
    assert denied.status_code == 403


def test_delete_character_cascades(client):
    from tabletop.audit import list_audit_logs
    from tabletop.db import get_session
    from tabletop.models import Character, DiceRoll, SessionParticipant
    from tests.factories import (
        add_participant,
        auth_headers,
        create_character,
        create_dice_roll,
        create_game_session,
        create_user,
    )

    gm = create_user("gm")
    player = create_user("player")
    game_session = create_game_session(gm)
    hero = create_character(player, game_session=game_session)
    add_participant(game_session, player, role="joueur", character=hero)
    create_dice_roll(game_session, player, character=hero)

    assert client.delete(f"/api/characters/{hero.id}", headers=auth_headers(gm)).status_code == 403
    assert client.delete(f"/api/characters/{hero.id}", headers=auth_headers(player)).status_code == 200

    with next(get_session()) as session:
        assert session.get(Character, hero.id) is None
        assert session.exec(select(DiceRoll).where(DiceRoll.character_id == hero.id)).all() == []
        assert (
            session.exec(select(SessionParticipant).where(SessionParticipant.character_id == hero.id)).all()
            == []
        )
        logs = list_audit_logs(session, entity_type="character")
        assert [(log.entity_id, log.actor_user_id) for log in logs] == [(str(hero.id), player.id)]
