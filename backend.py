import asyncio
from typing import List, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from constants import REDIS_URL, STORE_TIMEOUT_SECONDS, HISTORY_LIMIT
from errors import StoreUnavailable, BusUnavailable
from redis_keys import REDIS_ROOMS_KEY, REDIS_MEMBERS_KEY, REDIS_MESSAGES_KEY, REDIS_EVENTS_CHANNEL
from schemas.chat import BusEvent
from logging_config import get_logger

logger = get_logger(__name__)

REDIS_FAILURES = (RedisError, OSError, asyncio.TimeoutError)


class RedisBackend:
    """Shared state store and event bus, both backed by one Redis deployment.

    Every mutation is a single MULTI/EXEC transaction so concurrent instances
    never interleave a read-modify-write on membership or history.
    """

    def __init__(self, redis_client: redis.Redis, timeout: float = STORE_TIMEOUT_SECONDS,
                 history_limit: int = HISTORY_LIMIT):
        self.redis_client = redis_client
        self.timeout = timeout
        self.history_limit = history_limit

    @classmethod
    def from_url(cls, url: str = REDIS_URL, **kwargs) -> "RedisBackend":
        logger.info(f"Creating Redis client for {url}")
        timeout = kwargs.get("timeout", STORE_TIMEOUT_SECONDS)
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client, **kwargs)

    async def _store_call(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except REDIS_FAILURES as e:
            logger.error(f"Redis {operation} failed: {e}", exc_info=True)
            raise StoreUnavailable() from e

    async def ping(self):
        await self._store_call("ping", self.redis_client.ping())
        logger.info("Redis store reachable")

    async def add_member(self, room: str, connection_id: str) -> Tuple[bool, int]:
        """Register the room and add a connection to its member set.

        Returns (added, member_count); ``added`` is False when the id was already a member.
        """
        members_key = REDIS_MEMBERS_KEY.format(room=room)

        async def transaction():
            async with self.redis_client.pipeline(transaction=True) as pipe:
                return await (
                    pipe.sadd(REDIS_ROOMS_KEY, room)
                    .sadd(members_key, connection_id)
                    .scard(members_key)
                    .execute()
                )

        _, added, count = await self._store_call("add_member", transaction())
        logger.debug(f"Member {connection_id} added to room {room}: added={added}, count={count}")
        return bool(added), int(count)

    async def remove_member(self, room: str, connection_id: str) -> Tuple[bool, int]:
        """Remove a connection from the room's member set. Returns (removed, member_count)."""
        members_key = REDIS_MEMBERS_KEY.format(room=room)

        async def transaction():
            async with self.redis_client.pipeline(transaction=True) as pipe:
                return await pipe.srem(members_key, connection_id).scard(members_key).execute()

        removed, count = await self._store_call("remove_member", transaction())
        logger.debug(f"Member {connection_id} removed from room {room}: removed={removed}, count={count}")
        return bool(removed), int(count)

    async def member_count(self, room: str) -> int:
        members_key = REDIS_MEMBERS_KEY.format(room=room)
        return int(await self._store_call("member_count", self.redis_client.scard(members_key)))

    async def list_rooms(self) -> List[Tuple[str, int]]:
        async def read():
            rooms = sorted(await self.redis_client.smembers(REDIS_ROOMS_KEY))
            if not rooms:
                return []
            async with self.redis_client.pipeline(transaction=False) as pipe:
                for room in rooms:
                    pipe.scard(REDIS_MEMBERS_KEY.format(room=room))
                counts = await pipe.execute()
            return [(room, int(count)) for room, count in zip(rooms, counts)]

        return await self._store_call("list_rooms", read())

    async def append_message(self, room: str, message_json: str):
        """Push a message onto the room log and trim it to the newest ``history_limit`` entries."""
        messages_key = REDIS_MESSAGES_KEY.format(room=room)

        async def transaction():
            async with self.redis_client.pipeline(transaction=True) as pipe:
                return await (
                    pipe.lpush(messages_key, message_json)
                    .ltrim(messages_key, 0, self.history_limit - 1)
                    .execute()
                )

        await self._store_call("append_message", transaction())
        logger.debug(f"Appended message to {messages_key}")

    async def list_messages(self, room: str) -> List[str]:
        """Raw message log, newest first."""
        messages_key = REDIS_MESSAGES_KEY.format(room=room)
        return await self._store_call("list_messages", self.redis_client.lrange(messages_key, 0, -1))

    async def publish(self, event: BusEvent) -> int:
        """Publish an envelope on the shared channel; returns the number of subscribed instances."""
        try:
            subscribers = await asyncio.wait_for(
                self.redis_client.publish(REDIS_EVENTS_CHANNEL, event.model_dump_json()),
                self.timeout,
            )
        except REDIS_FAILURES as e:
            logger.error(f"Failed to publish {event.payload.get('type')} for room {event.room}: {e}", exc_info=True)
            raise BusUnavailable() from e
        logger.debug(f"Published {event.payload.get('type')} to room {event.room}, {subscribers} subscribers")
        return subscribers

    async def subscribe(self):
        """Create a pubsub subscribed to the shared channel."""
        pubsub = self.redis_client.pubsub()
        try:
            await asyncio.wait_for(pubsub.subscribe(REDIS_EVENTS_CHANNEL), self.timeout)
        except REDIS_FAILURES as e:
            logger.error(f"Failed to subscribe to {REDIS_EVENTS_CHANNEL}: {e}", exc_info=True)
            await pubsub.aclose()
            raise BusUnavailable() from e
        logger.info(f"Subscribed to Redis channel {REDIS_EVENTS_CHANNEL}")
        return pubsub

    async def close(self):
        await self.redis_client.aclose()
        logger.info("Redis client closed")
