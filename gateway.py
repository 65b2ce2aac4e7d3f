import asyncio
import json
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from backend import RedisBackend
from constants import SERVER_ID
from errors import ChatError, InvalidInput
from messages import MessagePipeline
from presence import PresenceManager
from schemas.chat import BusEvent, ErrorNotice, HistorySuccess, JoinRequest, JoinSuccess, RoomRequest, SendRequest
from sessions import SessionRegistry
from typing_indicator import TypingCoordinator
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


@dataclass
class LocalConnection:
    connection_id: str
    socket: Any  # anything with ``async send_json(dict)``, normally a starlette WebSocket
    state: ConnectionState = ConnectionState.CONNECTED


class ChatGateway:
    """Per-instance entry point for client connections.

    Inbound frames are dispatched to the managers; outbound room events come
    back through the Redis channel and are fanned out to local sessions only.
    """

    def __init__(self, backend: RedisBackend, server_id: str = SERVER_ID):
        self.backend = backend
        self.server_id = server_id
        self.registry = SessionRegistry()
        self.presence = PresenceManager(backend, server_id)
        self.messages = MessagePipeline(backend, self.registry, server_id)
        self.typing = TypingCoordinator(backend, self.registry, server_id)

        self.connections: Dict[str, LocalConnection] = {}
        self._pubsub = None
        self._relay_task: Optional[asyncio.Task] = None

        self._handlers = {
            "join": self._on_join,
            "send": self._on_send,
            "typingStart": self._on_typing_start,
            "typingStop": self._on_typing_stop,
            "historyRequest": self._on_history_request,
        }

    async def start(self):
        """Connect to the store and bus. Any failure here is fatal to the process."""
        await self.backend.ping()
        self._pubsub = await self.backend.subscribe()
        self._relay_task = asyncio.create_task(self._relay())
        logger.info(f"Gateway {self.server_id} started")

    async def stop(self):
        if self._relay_task:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None
        if self._pubsub is not None:
            try:
                await self._pubsub.aclose()
            except RedisError as e:
                logger.error(f"Error closing pub/sub: {e}")
            self._pubsub = None
        await self.backend.close()
        logger.info(f"Gateway {self.server_id} stopped")

    def connect(self, socket) -> str:
        connection_id = uuid.uuid4().hex
        self.connections[connection_id] = LocalConnection(connection_id=connection_id, socket=socket)
        logger.info(f"Connection {connection_id} opened ({len(self.connections)} local connections)")
        return connection_id

    def state_of(self, connection_id: str) -> ConnectionState:
        connection = self.connections.get(connection_id)
        return connection.state if connection else ConnectionState.DISCONNECTED

    async def dispatch(self, connection_id: str, raw: str):
        """Handle one inbound text frame from ``connection_id``."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Non-JSON frame from connection {connection_id}")
            await self._notify_error(connection_id, "Malformed event")
            return
        if not isinstance(frame, dict):
            await self._notify_error(connection_id, "Malformed event")
            return

        event_type = frame.get("type")
        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            logger.warning(f"Unknown event {event_type!r} from connection {connection_id}")
            await self._notify_error(connection_id, f"Unknown event: {event_type}")
            return

        logger.debug(f"Dispatching {event_type} from connection {connection_id}")
        try:
            await handler(connection_id, frame)
        except ValidationError as e:
            logger.warning(f"Invalid {event_type} payload from connection {connection_id}: {e}")
            await self._notify_error(connection_id, f"Invalid {event_type} payload")
        except ChatError as e:
            logger.warning(f"{event_type} from connection {connection_id} failed: {e.message}")
            await self._notify_error(connection_id, e.message)

    async def disconnect(self, connection_id: str):
        """Tear down a connection. Safe to call any number of times."""
        connection = self.connections.pop(connection_id, None)
        if connection is None or connection.state is ConnectionState.DISCONNECTED:
            return
        previous_state = connection.state
        connection.state = ConnectionState.DISCONNECTED

        session = self.registry.remove(connection_id)
        if previous_state is ConnectionState.JOINED and session is not None:
            try:
                await self.presence.leave(session.room, connection_id, session.display_name)
            except ChatError as e:
                # The socket is already gone; nothing to retry against
                logger.error(f"Cleanup for connection {connection_id} in room {session.room} failed: {e.message}")
        logger.info(f"Connection {connection_id} closed ({len(self.connections)} local connections)")

    async def deliver(self, event: BusEvent):
        """Send a bus event to every local session in its room."""
        targets = [cid for cid in self.registry.in_room(event.room) if cid != event.exclude]
        if not targets:
            return
        results = await asyncio.gather(
            *(self._send_payload(cid, event.payload) for cid in targets),
            return_exceptions=True,
        )
        for cid, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Error sending to connection {cid} in room {event.room}: {result}")
        logger.debug(f"Delivered {event.payload.get('type')} to {len(targets)} connections in room {event.room}")

    async def _relay(self):
        """Background task: read the shared channel and fan out to local connections."""
        logger.info(f"Starting Redis pub/sub relay for gateway {self.server_id}")
        while True:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except Exception as e:
                logger.error(f"Error reading from pub/sub: {e}", exc_info=True)
                await asyncio.sleep(1.0)
                continue
            if message is None or message.get("type") != "message":
                continue
            try:
                event = BusEvent.model_validate_json(message["data"])
            except ValidationError as e:
                logger.error(f"Dropping unreadable bus event: {e}")
                continue
            try:
                await self.deliver(event)
            except Exception as e:
                logger.error(f"Error delivering {event.payload.get('type')} to room {event.room}: {e}", exc_info=True)

    # Handlers

    async def _on_join(self, connection_id: str, frame: dict):
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        if connection.state is ConnectionState.JOINED:
            session = self.registry.get(connection_id)
            raise InvalidInput(f"Already joined room {session.room}")

        request = JoinRequest.model_validate(frame)
        # Registered before the store write so this connection receives its own joined event
        session = self.registry.create(connection_id, request.display_name, request.room)
        try:
            member_count = await self.presence.join(request.room, connection_id, request.display_name)
        except ChatError:
            self.registry.remove(connection_id)
            raise
        connection.state = ConnectionState.JOINED
        await self._send(connection_id, JoinSuccess(
            session_id=session.session_id,
            room=session.room,
            member_count=member_count,
        ))

    async def _on_send(self, connection_id: str, frame: dict):
        request = SendRequest.model_validate(frame)
        await self.messages.send(request.room, connection_id, request.body)

    async def _on_typing_start(self, connection_id: str, frame: dict):
        request = RoomRequest.model_validate(frame)
        await self.typing.start_typing(request.room, connection_id)

    async def _on_typing_stop(self, connection_id: str, frame: dict):
        request = RoomRequest.model_validate(frame)
        await self.typing.stop_typing(request.room, connection_id)

    async def _on_history_request(self, connection_id: str, frame: dict):
        RoomRequest.model_validate(frame)
        session = self.registry.require(connection_id)
        messages = await self.messages.history(session.room)
        await self._send(connection_id, HistorySuccess(room=session.room, messages=messages))

    # Outbound

    async def _send(self, connection_id: str, model: BaseModel):
        await self._send_payload(connection_id, model.model_dump(by_alias=True))

    async def _send_payload(self, connection_id: str, payload: dict):
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        await connection.socket.send_json(payload)

    async def _notify_error(self, connection_id: str, message: str):
        try:
            await self._send(connection_id, ErrorNotice(message=message))
        except Exception as e:
            logger.debug(f"Could not deliver error notice to {connection_id}: {e}")
