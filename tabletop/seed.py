"""Simple seeding utility to add demo data into the DB.

Usage:
  DATABASE_URL=... python -m tabletop.seed
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict

from sqlmodel import select

from .auth import ROLE_ADMIN, ROLE_GM, ROLE_PLAYER
from .auth.passwords import hash_password
from .db import get_session_ctx, init_db
from .models import Character, GameSession, SessionParticipant, User


logger = logging.getLogger(__name__)

DEMO_USERS = (
    ("maitre", "maitre@example.com"),
    ("aventurier", "aventurier@example.com"),
    ("gardien", "gardien@example.com"),
)


def seed(password: str = "password") -> Dict[str, int]:
    """Create demo users, a session and a character. Safe to re-run."""

    init_db()
    with get_session_ctx() as session:
        existing = session.exec(select(User).where(User.username == DEMO_USERS[0][0])).first()
        if existing is not None:
            logger.info("Demo data already present; skipping")
            return {"gm_id": existing.id}

        users = []
        for username, email in DEMO_USERS:
            user = User(username=username, email=email, password_hash=hash_password(password))
            session.add(user)
            users.append(user)
        session.flush()
        gm, player, keeper = users

        game_session = GameSession(
            title="Chasse au dragon",
            description="Une expédition vers les montagnes du nord.",
            scheduled_at=datetime.now(timezone.utc) + timedelta(days=7),
            gm_id=gm.id,
        )
        session.add(game_session)
        session.flush()

        character = Character(
            name="Eldrin",
            race="Elfe",
            character_class="Rôdeur",
            level=3,
            background="Ancien éclaireur de la garde forestière.",
            inventory=["arc long", "carquois", "corde"],
            stats={"force": 12, "dextérité": 17, "sagesse": 14},
            user_id=player.id,
            session_id=game_session.id,
        )
        session.add(character)
        session.flush()

        session.add(SessionParticipant(session_id=game_session.id, user_id=gm.id, role=ROLE_GM))
        session.add(
            SessionParticipant(
                session_id=game_session.id,
                user_id=player.id,
                character_id=character.id,
                role=ROLE_PLAYER,
            )
        )
        session.add(SessionParticipant(session_id=game_session.id, user_id=keeper.id, role=ROLE_ADMIN))
        session.commit()
        return {
            "gm_id": gm.id,
            "player_id": player.id,
            "admin_id": keeper.id,
            "session_id": game_session.id,
            "character_id": character.id,
        }


def main():
    password = os.getenv("SEED_PASSWORD", "password")
    ids = seed(password)
    print(f"Seeded demo data: {ids}")


if __name__ == "__main__":
    main()
