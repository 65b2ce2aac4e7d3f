import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from errors import NotAuthenticated
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    connection_id: str
    display_name: str
    room: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    """Sessions for the connections held by this instance only.

    Nothing here is shared with other instances; room-wide state lives in Redis.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        # room -> connection ids with a session on this instance
        self._rooms: Dict[str, Set[str]] = {}

    def create(self, connection_id: str, display_name: str, room: str) -> Session:
        session = Session(connection_id=connection_id, display_name=display_name, room=room)
        self._sessions[connection_id] = session
        self._rooms.setdefault(room, set()).add(connection_id)
        logger.debug(f"Session {session.session_id} created for connection {connection_id} in room {room}")
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def require(self, connection_id: str) -> Session:
        session = self._sessions.get(connection_id)
        if session is None:
            raise NotAuthenticated()
        return session

    def remove(self, connection_id: str) -> Optional[Session]:
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None
        members = self._rooms.get(session.room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[session.room]
        logger.debug(f"Session {session.session_id} removed for connection {connection_id}")
        return session

    def in_room(self, room: str) -> List[str]:
        """Connection ids of local sessions in ``room``."""
        return list(self._rooms.get(room, ()))

    def __len__(self):
        return len(self._sessions)
