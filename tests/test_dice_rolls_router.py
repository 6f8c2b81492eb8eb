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
    monkeypatch.delenv("DICE_MAX_COUNT", raising=False)
    monkeypatch.delenv("DICE_MAX_SIDES", raising=False)
    monkeypatch.delenv("DICE_MAX_MODIFIER", raising=False)


@pytest.fixture()
def client():
    from tabletop.db import init_db
    from tabletop.main import create_app

    init_db()
    return TestClient(create_app())


@pytest.fixture()
def table():
    from tests.factories import add_participant, create_character, create_game_session, create_user

    gm = create_user("gm")
    player = create_user("player")
    outsider = create_user("outsider")
    game_session = create_game_session(gm)
    hero = create_character(player, game_session=game_session)
    add_participant(game_session, player, role="joueur", character=hero)
    return {"gm": gm, "player": player, "outsider": outsider, "session": game_session, "hero": hero}


def test_participant_rolls_with_own_character(client, table):
    from tests.factories import auth_headers

    response = client.post(
        "/api/dice-rolls",
        json={"expression": "2d6+3", "sessionId": table["session"].id, "characterId": table["hero"].id},
        headers=auth_headers(table["player"]),
    )
    assert response.status_code == 201
    roll = response.json()["diceRoll"]
    assert roll["expression"] == "2d6+3"
    assert len(roll["rolls"]) == 2
    assert roll["modifier"] == 3
    assert roll["result"] == sum(roll["rolls"]) + 3
    assert roll["user"] == {"id": table["player"].id, "username": "player"}
    assert roll["character"] == {"id": table["hero"].id, "name": "Eldrin"}


def test_outsider_cannot_roll(client, table):
    from tests.factories import auth_headers

    response = client.post(
        "/api/dice-rolls",
        json={"expression": "1d20", "sessionId": table["session"].id},
        headers=auth_headers(table["outsider"]),
    )
    assert response.status_code == 403


def test_roll_requires_authentication(client, table):
    response = client.post("/api/dice-rolls", json={"expression": "1d20", "sessionId": table["session"].id})
    assert response.status_code == 401


@pytest.mark.parametrize(
    "expression",
    [
        "abc",
        "d20",
        "0d6",
        "2d0",
        "1d6*2",
        "1d6+99999999999999999999",
        "1d99999999999999999999999",
    ],
)
def test_invalid_expression_is_400(client, table, expression):
    from tests.factories import auth_headers

    response = client.post(
        "/api/dice-rolls",
        json={"expression": expression, "sessionId": table["session"].id},
        headers=auth_headers(table["player"]),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_roll_with_foreign_character_is_404(client, table):
    from tests.factories import auth_headers

    response = client.post(
        "/api/dice-rolls",
        json={"expression": "1d20", "sessionId": table["session"].id, "characterId": table["hero"].id},
        headers=auth_headers(table["gm"]),
    )
    assert response.status_code == 404


def test_roll_in_missing_session_is_404(client, table):
    from tests.factories import auth_headers

    response = client.post(
        "/api/dice-rolls",
        json={"expression": "1d20", "sessionId": 999},
        headers=auth_headers(table["player"]),
    )
    assert response.status_code == 404


def test_history_is_newest_first_and_limited(client, table):
    from tests.factories import auth_headers, create_dice_roll

    created = [create_dice_roll(table["session"], table["player"], rolls=[value]) for value in range(1, 6)]

    response = client.get(
        "/api/dice-rolls",
        params={"sessionId": table["session"].id, "limit": 3},
        headers=auth_headers(table["gm"]),
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 3
    assert [r["id"] for r in payload["diceRolls"]] == [c.id for c in reversed(created)][:3]


def test_history_requires_membership(client, table):
    from tests.factories import auth_headers

    response = client.get(
        "/api/dice-rolls",
        params={"sessionId": table["session"].id},
        headers=auth_headers(table["outsider"]),
    )
    assert response.status_code == 403


def test_history_limit_is_validated(client, table):
    from tests.factories import auth_headers

    response = client.get(
        "/api/dice-rolls",
        params={"sessionId": table["session"].id, "limit": 0},
        headers=auth_headers(table["gm"]),
    )
    assert response.status_code == 400


def test_single_roll_visibility(client, table):
    from tests.factories import auth_headers, create_dice_roll

    dice_roll = create_dice_roll(table["session"], table["player"], rolls=[4, 5], modifier=1)

    own = client.get(f"/api/dice-rolls/{dice_roll.id}", headers=auth_headers(table["player"]))
    assert own.status_code == 200
    assert own.json()["diceRoll"]["result"] == 10
    assert client.get(f"/api/dice-rolls/{dice_roll.id}", headers=auth_headers(table["gm"])).status_code == 200
    assert client.get(f"/api/dice-rolls/{dice_roll.id}", headers=auth_headers(table["outsider"])).status_code == 403
    assert client.get("/api/dice-rolls/999", headers=auth_headers(table["player"])).status_code == 404
