"""Registry of live WebSocket connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from archsync.exceptions import DuplicateConnectionError, InvalidTransitionError

if TYPE_CHECKING:
    from litestar import WebSocket

    from archsync.realtime.rooms import RoomManager

logger = structlog.get_logger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle states of a client connection."""

    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    CLOSED = "closed"


# CLOSED is terminal.
_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.CONNECTING: frozenset({ConnectionState.AUTHENTICATED, ConnectionState.CLOSED}),
    ConnectionState.AUTHENTICATED: frozenset({ConnectionState.JOINED, ConnectionState.CLOSED}),
    ConnectionState.JOINED: frozenset(
        {ConnectionState.JOINED, ConnectionState.AUTHENTICATED, ConnectionState.CLOSED}
    ),
    ConnectionState.CLOSED: frozenset(),
}


def new_connection_id() -> str:
    """Generate an opaque connection identifier."""
    return uuid4().hex


@dataclass
class Connection:
    """One live client session.

    ``current_room`` only names a room; the room itself is owned by the
    :class:`~archsync.realtime.rooms.RoomManager`.
    """

    transport: WebSocket
    user_id: str = ""
    connection_id: str = field(default_factory=new_connection_id)
    current_room: str | None = None
    state: ConnectionState = ConnectionState.CONNECTING
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def transition(self, target: ConnectionState) -> None:
        """Move the connection to ``target``.

        Args:
            target: The new state.

        Raises:
            InvalidTransitionError: If the lifecycle does not allow the move.
        """
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        logger.debug(
            "Connection state changed",
            connection_id=self.connection_id,
            from_state=self.state.value,
            to_state=target.value,
        )
        self.state = target

    @property
    def is_closed(self) -> bool:
        """Whether the connection reached its terminal state."""
        return self.state is ConnectionState.CLOSED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "connectionId": self.connection_id,
            "userId": self.user_id,
            "roomId": self.current_room,
            "state": self.state.value,
            "connectedAt": self.connected_at.isoformat(),
        }


class ConnectionRegistry:
    """Tracks live connections and the room each one belongs to.

    The registry is the sole owner of :class:`Connection` objects. Removing a
    connection also removes it from its room through the attached
    :class:`~archsync.realtime.rooms.RoomManager`, so room membership never
    refers to a connection that is gone.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._connections: dict[str, Connection] = {}
        self._by_transport: dict[int, str] = {}
        self._room_manager: RoomManager | None = None

    def attach_room_manager(self, room_manager: RoomManager) -> None:
        """Set the room manager notified when connections are removed.

        Args:
            room_manager: The room manager sharing this registry.
        """
        self._room_manager = room_manager

    async def register(self, connection: Connection, *, replace: bool = True) -> str:
        """Add a connection to the registry.

        An existing entry for the same ID or the same transport is a
        transport bug. It is logged and forcibly replaced; the old entry is
        evicted from its room and the remaining members get ``member-left``.

        Args:
            connection: The connection to add.
            replace: Replace a duplicate entry instead of raising.

        Returns:
            The connection's ID.

        Raises:
            DuplicateConnectionError: If a duplicate exists and ``replace`` is False.
        """
        connection_id = connection.connection_id
        previous_id = self._by_transport.get(id(connection.transport), connection_id)
        previous = self._connections.get(previous_id)
        if previous is not None:
            error = DuplicateConnectionError(previous.connection_id)
            if not replace:
                raise error
            del self._connections[previous_id]
            self._by_transport.pop(id(previous.transport), None)
            logger.warning(
                "Replacing duplicate connection",
                connection_id=connection_id,
                previous_connection_id=previous.connection_id,
                error=str(error),
            )
            if self._room_manager is not None:
                await self._room_manager.evict(previous)

        self._connections[connection_id] = connection
        self._by_transport[id(connection.transport)] = connection_id

        logger.info(
            "Connection registered",
            connection_id=connection_id,
            user_id=connection.user_id,
            total_connections=len(self._connections),
        )
        return connection_id

    async def unregister(self, connection_id: str) -> None:
        """Remove a connection and leave its current room.

        Unknown IDs are ignored.

        Args:
            connection_id: The connection to remove.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return

        del self._connections[connection_id]
        self._by_transport.pop(id(connection.transport), None)
        if self._room_manager is not None:
            await self._room_manager.evict(connection)

        logger.info(
            "Connection unregistered",
            connection_id=connection_id,
            user_id=connection.user_id,
            total_connections=len(self._connections),
        )

    def lookup(self, connection_id: str) -> Connection | None:
        """Get a registered connection.

        Args:
            connection_id: The connection's ID.

        Returns:
            The connection or None if not registered.
        """
        return self._connections.get(connection_id)

    @property
    def connections(self) -> list[Connection]:
        """Snapshot of all registered connections."""
        return list(self._connections.values())

    @property
    def total_connections(self) -> int:
        """Get the number of registered connections."""
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
