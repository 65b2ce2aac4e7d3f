from typing import List, Optional

from backend import RedisBackend
from errors import ChatError
from schemas.chat import BusEvent, PresenceEvent, utc_timestamp
from schemas.rooms import RoomSummary
from logging_config import get_logger

logger = get_logger(__name__)


class PresenceManager:
    """Room membership, counted from the shared Redis sets.

    No local copy of membership is kept: a failed store call leaves nothing to undo.
    """

    def __init__(self, backend: RedisBackend, server_id: Optional[str] = None):
        self.backend = backend
        self.server_id = server_id

    async def join(self, room: str, connection_id: str, display_name: str) -> int:
        added, member_count = await self.backend.add_member(room, connection_id)
        if added:
            try:
                await self._announce("joined", room, display_name, member_count)
            except ChatError:
                # Nobody saw the join, so take the member back out before reporting failure
                try:
                    await self.backend.remove_member(room, connection_id)
                except ChatError:
                    logger.error(f"Could not roll back membership of {connection_id} in room {room}")
                raise
        logger.info(f"{display_name} joined room {room} ({member_count} members)")
        return member_count

    async def leave(self, room: str, connection_id: str, display_name: str) -> int:
        removed, member_count = await self.backend.remove_member(room, connection_id)
        if removed:
            await self._announce("left", room, display_name, member_count)
            logger.info(f"{display_name} left room {room} ({member_count} members)")
        else:
            logger.debug(f"Connection {connection_id} was not a member of room {room}")
        return member_count

    async def list_rooms(self) -> List[RoomSummary]:
        rooms = await self.backend.list_rooms()
        return [RoomSummary(id=name, name=name, member_count=count) for name, count in rooms]

    async def _announce(self, kind: str, room: str, display_name: str, member_count: int):
        payload = PresenceEvent(
            type=kind,
            display_name=display_name,
            member_count=member_count,
            timestamp=utc_timestamp(),
        )
        await self.backend.publish(BusEvent(
            room=room,
            payload=payload.model_dump(by_alias=True),
            origin=self.server_id,
        ))
