from typing import Optional

from backend import RedisBackend
from schemas.chat import BusEvent, TypingState
from sessions import SessionRegistry
from logging_config import get_logger

logger = get_logger(__name__)


class TypingCoordinator:
    """Relays typing state to the rest of the room. Nothing is stored and nothing expires."""

    def __init__(self, backend: RedisBackend, registry: SessionRegistry, server_id: Optional[str] = None):
        self.backend = backend
        self.registry = registry
        self.server_id = server_id

    async def start_typing(self, room: Optional[str], connection_id: str):
        await self._emit(connection_id, True)

    async def stop_typing(self, room: Optional[str], connection_id: str):
        await self._emit(connection_id, False)

    async def _emit(self, connection_id: str, is_typing: bool):
        session = self.registry.require(connection_id)
        payload = TypingState(display_name=session.display_name, is_typing=is_typing)
        await self.backend.publish(BusEvent(
            room=session.room,
            payload=payload.model_dump(by_alias=True),
            exclude=connection_id,
            origin=self.server_id,
        ))
        logger.debug(f"{session.display_name} typing={is_typing} in room {session.room}")
