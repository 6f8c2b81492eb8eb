from typing import Optional, List, Dict, Any
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import SQLModel, Field, Column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(sa_column=Column(String(length=255), nullable=False, index=True))
    email: str = Field(sa_column=Column(String(length=255), nullable=False, index=True))
    password_hash: str = Field(sa_column=Column(String(length=255), nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class GameSession(SQLModel, table=True):
    __tablename__ = "game_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column(String(length=255), nullable=False, index=True))
    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    scheduled_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True),
    )
    status: str = Field(
        default="planifiée",
        sa_column=Column(String(length=64), nullable=False, index=True),
    )
    gm_id: int = Field(
        sa_column=Column(ForeignKey("users.id"), nullable=False, index=True)
    )


class Character(SQLModel, table=True):
    __tablename__ = "characters"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(length=255), nullable=False))
    race: str = Field(sa_column=Column(String(length=255), nullable=False))
    character_class: str = Field(sa_column=Column(String(length=255), nullable=False))
    level: int = Field(sa_column=Column(Integer, nullable=False))
    background: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    inventory: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    stats: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    is_alive: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False),
    )
    user_id: int = Field(
        sa_column=Column(ForeignKey("users.id"), nullable=False, index=True)
    )
    session_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            ForeignKey("game_sessions.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )


class SessionParticipant(SQLModel, table=True):
    __tablename__ = "session_participants"
    __table_args__ = (
        UniqueConstraint(
            "session_id",
            "user_id",
            name="uq_session_participants_session_user",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(
        sa_column=Column(ForeignKey("game_sessions.id"), nullable=False, index=True)
    )
    user_id: int = Field(
        sa_column=Column(ForeignKey("users.id"), nullable=False, index=True)
    )
    character_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            ForeignKey("characters.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    role: str = Field(sa_column=Column(String(length=64), nullable=False, index=True))


class DiceRoll(SQLModel, table=True):
    __tablename__ = "dice_rolls"

    id: Optional[int] = Field(default=None, primary_key=True)
    expression: str = Field(sa_column=Column(String(length=64), nullable=False))
    result: int = Field(sa_column=Column(Integer, nullable=False))
    rolls: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    modifier: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    user_id: int = Field(
        sa_column=Column(ForeignKey("users.id"), nullable=False, index=True)
    )
    character_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            ForeignKey("characters.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    session_id: int = Field(
        sa_column=Column(ForeignKey("game_sessions.id"), nullable=False, index=True)
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: str = Field(index=True)
    entity_id: str = Field(index=True)
    action: str = Field(index=True)
    owner_user_id: Optional[int] = Field(default=None, index=True)
    actor_user_id: Optional[int] = Field(default=None, index=True)
    details: Dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
