from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Server-side ISO-8601 timestamp; fixed precision keeps string order == time order."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    session_id: str
    display_name: str
    room: str
    body: str
    timestamp: str


# Inbound client frames

class JoinRequest(CamelModel):
    display_name: str
    room: str

    @field_validator("display_name", "room")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class SendRequest(CamelModel):
    body: str = ""
    room: Optional[str] = None


class RoomRequest(CamelModel):
    """Payload of typingStart, typingStop and historyRequest."""
    room: Optional[str] = None


# Outbound client frames

class JoinSuccess(CamelModel):
    type: Literal["joinSuccess"] = "joinSuccess"
    session_id: str
    room: str
    member_count: int


class PresenceEvent(CamelModel):
    type: Literal["joined", "left"]
    display_name: str
    member_count: int
    timestamp: str


class Received(CamelModel):
    type: Literal["received"] = "received"
    message: Message


class TypingState(CamelModel):
    type: Literal["typingState"] = "typingState"
    display_name: str
    is_typing: bool


class HistorySuccess(CamelModel):
    type: Literal["historySuccess"] = "historySuccess"
    room: str
    messages: List[Message]


class ErrorNotice(CamelModel):
    type: Literal["errorNotice"] = "errorNotice"
    message: str


class BusEvent(BaseModel):
    """Envelope carried on the shared pub/sub channel."""
    room: str
    payload: dict
    exclude: Optional[str] = None
    origin: Optional[str] = None
