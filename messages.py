import uuid
from typing import List, Optional

from pydantic import ValidationError

from backend import RedisBackend
from schemas.chat import BusEvent, Message, Received, utc_timestamp
from sessions import SessionRegistry
from logging_config import get_logger

logger = get_logger(__name__)


class MessagePipeline:
    """Validates, stores and broadcasts chat messages; serves room history."""

    def __init__(self, backend: RedisBackend, registry: SessionRegistry, server_id: Optional[str] = None):
        self.backend = backend
        self.registry = registry
        self.server_id = server_id

    async def send(self, room: Optional[str], connection_id: str, body: str) -> Optional[Message]:
        """Store and broadcast a message. Returns None when a blank body was dropped.

        The session's room is authoritative; a different ``room`` from the client is ignored.
        """
        session = self.registry.require(connection_id)
        if room and room != session.room:
            logger.warning(f"Connection {connection_id} sent to {room} but is joined to {session.room}")

        if not body or not body.strip():
            logger.debug(f"Dropping empty message from connection {connection_id}")
            return None

        message = Message(
            id=str(uuid.uuid4()),
            session_id=session.session_id,
            display_name=session.display_name,
            room=session.room,
            body=body,
            timestamp=utc_timestamp(),
        )
        # Stored before broadcast so a history request right after delivery sees it
        await self.backend.append_message(session.room, message.model_dump_json(by_alias=True))
        await self.backend.publish(BusEvent(
            room=session.room,
            payload=Received(message=message).model_dump(by_alias=True),
            origin=self.server_id,
        ))
        logger.info(f"Message in {session.room} from {session.display_name}")
        return message

    async def history(self, room: str) -> List[Message]:
        """Retained messages for ``room``, oldest first."""
        raw_messages = await self.backend.list_messages(room)
        messages = []
        for raw in reversed(raw_messages):
            try:
                messages.append(Message.model_validate_json(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable history entry in room {room}: {e}")
        # Appends from different instances can land a few microseconds out of
        # timestamp order; the sort is stable so ties keep log order.
        messages.sort(key=lambda message: message.timestamp)
        return messages
