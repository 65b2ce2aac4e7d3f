import pytest

from errors import NotAuthenticated
from sessions import SessionRegistry


def test_create_and_get():
    registry = SessionRegistry()
    session = registry.create("conn-1", "alice", "general")

    assert registry.get("conn-1") is session
    assert session.display_name == "alice"
    assert session.room == "general"
    assert session.session_id
    assert session.joined_at is not None
    assert len(registry) == 1


def test_session_ids_are_unique():
    registry = SessionRegistry()
    first = registry.create("conn-1", "alice", "general")
    second = registry.create("conn-2", "alice", "general")

    assert first.session_id != second.session_id


def test_get_unknown_connection_returns_none():
    assert SessionRegistry().get("missing") is None


def test_require_unknown_connection_raises():
    with pytest.raises(NotAuthenticated):
        SessionRegistry().require("missing")


def test_remove_returns_session_and_forgets_it():
    registry = SessionRegistry()
    session = registry.create("conn-1", "alice", "general")

    assert registry.remove("conn-1") is session
    assert registry.get("conn-1") is None
    assert registry.remove("conn-1") is None
    assert len(registry) == 0


def test_in_room_tracks_local_members():
    registry = SessionRegistry()
    registry.create("conn-1", "alice", "general")
    registry.create("conn-2", "bob", "general")
    registry.create("conn-3", "carol", "random")

    assert sorted(registry.in_room("general")) == ["conn-1", "conn-2"]
    assert registry.in_room("random") == ["conn-3"]
    assert registry.in_room("empty") == []

    registry.remove("conn-1")
    registry.remove("conn-3")
    assert registry.in_room("general") == ["conn-2"]
    assert registry.in_room("random") == []
