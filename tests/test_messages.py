import pytest

from errors import NotAuthenticated
from messages import MessagePipeline
from redis_keys import REDIS_MESSAGES_KEY
from sessions import SessionRegistry


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def pipeline(backend, registry):
    return MessagePipeline(backend, registry, "a")


async def test_send_then_history_round_trip(pipeline, registry):
    session = registry.create("conn-1", "alice", "general")

    sent = await pipeline.send("general", "conn-1", "hi")
    history = await pipeline.history("general")

    assert history == [sent]
    assert sent.body == "hi"
    assert sent.display_name == "alice"
    assert sent.session_id == session.session_id
    assert sent.room == "general"


async def test_history_is_oldest_first(pipeline, registry):
    registry.create("conn-1", "alice", "general")
    for body in ("one", "two", "three"):
        await pipeline.send("general", "conn-1", body)

    history = await pipeline.history("general")

    assert [message.body for message in history] == ["one", "two", "three"]
    timestamps = [message.timestamp for message in history]
    assert timestamps == sorted(timestamps)


async def test_history_keeps_the_last_hundred(pipeline, registry):
    registry.create("conn-1", "alice", "general")
    for index in range(101):
        await pipeline.send("general", "conn-1", f"message {index}")

    history = await pipeline.history("general")

    assert len(history) == 100
    assert [message.body for message in history] == [f"message {index}" for index in range(1, 101)]


async def test_message_ids_are_unique(pipeline, registry):
    registry.create("conn-1", "alice", "general")
    first = await pipeline.send("general", "conn-1", "same")
    second = await pipeline.send("general", "conn-1", "same")

    assert first.id != second.id


@pytest.mark.parametrize("body", ["", "   ", "\n\t"])
async def test_blank_body_is_dropped(pipeline, registry, backend, body):
    registry.create("conn-1", "alice", "general")

    assert await pipeline.send("general", "conn-1", body) is None
    assert await backend.list_messages("general") == []


async def test_send_without_session_is_rejected(pipeline, backend):
    with pytest.raises(NotAuthenticated):
        await pipeline.send("general", "conn-1", "hi")
    assert await backend.list_messages("general") == []


async def test_send_uses_the_joined_room(pipeline, registry):
    registry.create("conn-1", "alice", "general")

    message = await pipeline.send("elsewhere", "conn-1", "hi")

    assert message.room == "general"
    assert await pipeline.history("elsewhere") == []
    assert await pipeline.history("general") == [message]


async def test_history_skips_unreadable_entries(pipeline, registry, backend):
    registry.create("conn-1", "alice", "general")
    await pipeline.send("general", "conn-1", "hi")
    await backend.redis_client.lpush(REDIS_MESSAGES_KEY.format(room="general"), "not json")

    assert [message.body for message in await pipeline.history("general")] == ["hi"]


async def test_history_of_unknown_room_is_empty(pipeline):
    assert await pipeline.history("nowhere") == []
