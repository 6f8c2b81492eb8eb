from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for request and response bodies exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class StatusResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


# --- Users ---


class RegisterIn(APIModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginIn(APIModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserUpdate(APIModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserSummary(APIModel):
    id: int
    username: str
    email: Optional[str] = None


class UserOut(APIModel):
    id: int
    username: str
    email: str
    created_at: datetime


# --- Characters ---


class CharacterCreate(APIModel):
    name: str = Field(min_length=1)
    race: str = Field(min_length=1)
    character_class: str = Field(alias="class", min_length=1)
    level: int = Field(ge=1)
    background: Optional[str] = None
    inventory: Optional[Any] = None
    stats: Optional[Any] = None


class CharacterUpdate(APIModel):
    name: Optional[str] = None
    race: Optional[str] = None
    character_class: Optional[str] = Field(default=None, alias="class")
    level: Optional[int] = Field(default=None, ge=1)
    background: Optional[str] = None
    inventory: Optional[Any] = None
    stats: Optional[Any] = None
    is_alive: Optional[bool] = None
    session_id: Optional[int] = None


class AssignSessionIn(APIModel):
    session_id: Optional[int] = None


class CharacterSummary(APIModel):
    id: int
    name: str
    race: Optional[str] = None
    character_class: Optional[str] = Field(default=None, alias="class")
    level: Optional[int] = None


class CharacterOut(APIModel):
    id: int
    name: str
    race: str
    character_class: str = Field(alias="class")
    level: int
    background: Optional[str] = None
    inventory: Optional[Any] = None
    stats: Optional[Any] = None
    is_alive: bool
    user_id: int
    session_id: Optional[int] = None


# --- Game sessions ---


class SessionCreate(APIModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: Optional[str] = None


class SessionUpdate(APIModel):
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: Optional[str] = None


class SessionSummary(APIModel):
    id: int
    title: str
    status: Optional[str] = None
    scheduled_at: Optional[datetime] = None


class SessionOut(APIModel):
    id: int
    title: str
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: str
    gm_id: int


# --- Participants ---


class ParticipantAdd(APIModel):
    user_id: int
    character_id: Optional[int] = None
    role: str = Field(min_length=1)


class ParticipantCreate(ParticipantAdd):
    session_id: int


class ParticipantUpdate(APIModel):
    role: Optional[str] = None
    character_id: Optional[int] = None


class ParticipantOut(APIModel):
    id: int
    session_id: int
    user_id: int
    character_id: Optional[int] = None
    role: str


# --- Dice rolls ---


class DiceRollCreate(APIModel):
    expression: str = Field(min_length=1)
    session_id: int
    character_id: Optional[int] = None


class DiceRollOut(APIModel):
    id: int
    expression: str
    result: int
    rolls: List[int]
    modifier: int
    timestamp: datetime
    user_id: int
    session_id: int
    character_id: Optional[int] = None
