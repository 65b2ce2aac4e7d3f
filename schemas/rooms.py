from pydantic import BaseModel

from schemas.chat import CamelModel


class RoomSummary(CamelModel):
    id: str
    name: str
    member_count: int


class HealthResponse(BaseModel):
    status: str
    server: str
    timestamp: str
