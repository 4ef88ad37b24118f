"""Tests for the connection registry and connection lifecycle."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from unittest.mock import MagicMock

import pytest

from archsync.exceptions import DuplicateConnectionError, InvalidTransitionError
from archsync.realtime.registry import Connection, ConnectionRegistry, ConnectionState
from archsync.realtime.rooms import RoomManager


class TestConnection:
    """Tests for the Connection state machine."""

    def test_new_connection_is_connecting(self) -> None:
        """Test the initial state and generated id."""
        connection = Connection(transport=MagicMock())

        assert connection.state is ConnectionState.CONNECTING
        assert connection.current_room is None
        assert len(connection.connection_id) == 32

    def test_connection_ids_are_unique(self) -> None:
        """Test that every connection gets its own id."""
        ids = {Connection(transport=MagicMock()).connection_id for _ in range(50)}
        assert len(ids) == 50

    def test_happy_path_transitions(self) -> None:
        """Test the full lifecycle."""
        connection = Connection(transport=MagicMock())
        connection.transition(ConnectionState.AUTHENTICATED)
        connection.transition(ConnectionState.JOINED)
        connection.transition(ConnectionState.JOINED)
        connection.transition(ConnectionState.AUTHENTICATED)
        connection.transition(ConnectionState.CLOSED)

        assert connection.is_closed

    def test_cannot_join_before_authenticating(self) -> None:
        """Test that CONNECTING cannot skip to JOINED."""
        connection = Connection(transport=MagicMock())

        with pytest.raises(InvalidTransitionError):
            connection.transition(ConnectionState.JOINED)
        assert connection.state is ConnectionState.CONNECTING

    def test_closed_is_terminal(self) -> None:
        """Test that nothing leaves CLOSED."""
        connection = Connection(transport=MagicMock())
        connection.transition(ConnectionState.CLOSED)

        for target in ConnectionState:
            with pytest.raises(InvalidTransitionError):
                connection.transition(target)

    def test_to_dict(self) -> None:
        """Test Connection serialization."""
        connection = Connection(transport=MagicMock(), user_id="alice", current_room="P1")
        data = connection.to_dict()

        assert data["userId"] == "alice"
        assert data["roomId"] == "P1"
        assert data["state"] == "connecting"
        assert "connectedAt" in data


class TestConnectionRegistry:
    """Tests for the ConnectionRegistry class."""

    async def test_register_and_lookup(self, registry: ConnectionRegistry) -> None:
        """Test that a registered connection can be looked up."""
        connection = Connection(transport=MagicMock(), user_id="alice")
        connection_id = await registry.register(connection)

        assert connection_id == connection.connection_id
        assert registry.lookup(connection_id) is connection
        assert connection_id in registry
        assert len(registry) == 1
        assert registry.total_connections == 1

    def test_lookup_unknown(self, registry: ConnectionRegistry) -> None:
        """Test looking up an id that was never registered."""
        assert registry.lookup("missing") is None

    async def test_duplicate_transport_replaces_entry(self, registry: ConnectionRegistry) -> None:
        """Test that a second registration on the same transport replaces the first."""
        transport = MagicMock()
        first = Connection(transport=transport)
        second = Connection(transport=transport)

        await registry.register(first)
        await registry.register(second)

        assert registry.lookup(first.connection_id) is None
        assert registry.lookup(second.connection_id) is second
        assert registry.total_connections == 1

    async def test_duplicate_without_replace_raises(self, registry: ConnectionRegistry) -> None:
        """Test that duplicates raise when replacement is disabled."""
        connection = Connection(transport=MagicMock())
        await registry.register(connection)

        with pytest.raises(DuplicateConnectionError) as exc_info:
            await registry.register(connection, replace=False)
        assert exc_info.value.connection_id == connection.connection_id

    async def test_duplicate_purges_old_membership(
        self,
        registry: ConnectionRegistry,
        rooms: RoomManager,
        connect: Callable[[str], Awaitable[Connection]],
    ) -> None:
        """Test that a replaced entry is removed from its room."""
        old = await connect("alice")
        await rooms.join(old.connection_id, "P1")

        await registry.register(Connection(transport=old.transport, user_id="alice"))

        assert rooms.get_room("P1") is None
        assert old.current_room is None

    async def test_duplicate_notifies_remaining_members(
        self,
        registry: ConnectionRegistry,
        rooms: RoomManager,
        connect: Callable[[str], Awaitable[Connection]],
    ) -> None:
        """Test that members of the replaced entry's room receive member-left."""
        old = await connect("alice")
        other = await connect("bob")
        await rooms.join(old.connection_id, "P1")
        await rooms.join(other.connection_id, "P1")

        await registry.register(Connection(transport=old.transport, user_id="alice"))

        sent = json.loads(other.transport.send_text.call_args[0][0])
        assert sent["type"] == "member-left"
        assert sent["connectionId"] == old.connection_id
        assert rooms.require_room("P1").member_count == 1

    async def test_unregister_is_idempotent(
        self,
        registry: ConnectionRegistry,
        connect: Callable[[str], Awaitable[Connection]],
    ) -> None:
        """Test that unregistering twice is harmless."""
        connection = await connect("alice")

        await registry.unregister(connection.connection_id)
        await registry.unregister(connection.connection_id)
        await registry.unregister("never-registered")

        assert registry.total_connections == 0

    async def test_unregister_last_member_deletes_room(
        self,
        registry: ConnectionRegistry,
        rooms: RoomManager,
        connect: Callable[[str], Awaitable[Connection]],
    ) -> None:
        """Test that a disconnect purges membership in the same step."""
        connection = await connect("alice")
        await rooms.join(connection.connection_id, "P1")

        await registry.unregister(connection.connection_id)

        assert rooms.get_room("P1") is None
        assert rooms.active_rooms == 0

    async def test_unregister_notifies_remaining_members(
        self,
        registry: ConnectionRegistry,
        rooms: RoomManager,
        connect: Callable[[str], Awaitable[Connection]],
    ) -> None:
        """Test that remaining members receive member-left on disconnect."""
        c1 = await connect("alice")
        c2 = await connect("bob")
        await rooms.join(c1.connection_id, "P1")
        await rooms.join(c2.connection_id, "P1")

        await registry.unregister(c1.connection_id)

        sent = json.loads(c2.transport.send_text.call_args[0][0])
        assert sent["type"] == "member-left"
        assert sent["roomId"] == "P1"
        assert sent["connectionId"] == c1.connection_id
        assert rooms.require_room("P1").member_count == 1

    async def test_connections_snapshot(
        self,
        connect: Callable[[str], Awaitable[Connection]],
        registry: ConnectionRegistry,
    ) -> None:
        """Test that connections returns every registered connection."""
        c1 = await connect("alice")
        c2 = await connect("bob")

        assert {c.connection_id for c in registry.connections} == {c1.connection_id, c2.connection_id}
