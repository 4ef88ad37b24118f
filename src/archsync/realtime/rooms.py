"""Project rooms: membership, presence notifications and broadcast."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from archsync.exceptions import (
    ConnectionNotFoundError,
    InvalidTransitionError,
    RoomNotFoundError,
    StaleMemberError,
)
from archsync.realtime.messages import MemberJoinedMessage, MemberLeftMessage
from archsync.realtime.registry import ConnectionState

if TYPE_CHECKING:
    from archsync.realtime.registry import Connection, ConnectionRegistry

logger = structlog.get_logger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0

_JOINABLE_STATES = frozenset({ConnectionState.AUTHENTICATED, ConnectionState.JOINED})


@dataclass
class Room:
    """The set of connections collaborating on one project."""

    room_id: str
    members: set[str] = field(default_factory=set)
    last_sequence: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    # Held for the whole fan-out so members see broadcasts in submission order.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def next_sequence(self) -> int:
        """Advance and return the room's update sequence."""
        self.last_sequence += 1
        return self.last_sequence

    @property
    def member_count(self) -> int:
        """Number of connections in the room."""
        return len(self.members)


class RoomManager:
    """Maps project IDs to the connections collaborating on them.

    Membership changes are plain set mutations with no await between the
    check and the update, so they are atomic on the event loop. Notifications
    to other members happen afterwards.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        """Initialize the room manager and attach it to ``registry``.

        Args:
            registry: The registry holding the connections.
            send_timeout: Seconds to wait for a single member send before the
                member is treated as stale.
        """
        self._registry = registry
        self._rooms: dict[str, Room] = {}
        self._send_timeout = send_timeout
        registry.attach_room_manager(self)

    async def join(self, connection_id: str, room_id: str) -> int:
        """Move a connection into ``room_id``.

        Any previous room is left first. Existing members of the new room
        receive a ``member-joined`` notification.

        Args:
            connection_id: The joining connection.
            room_id: The project room to join.

        Returns:
            The room's member count after the join.

        Raises:
            ConnectionNotFoundError: If the connection is not registered.
            InvalidTransitionError: If the connection is not authenticated.
        """
        connection = self._registry.lookup(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)

        if connection.state not in _JOINABLE_STATES:
            raise InvalidTransitionError(connection.state.value, ConnectionState.JOINED.value)

        current = self._rooms.get(room_id)
        if connection.current_room == room_id and current is not None:
            return current.member_count

        previous = self._detach(connection)

        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self._rooms[room_id] = room
            logger.info("Room opened", room_id=room_id)

        room.members.add(connection_id)
        connection.current_room = room_id
        connection.transition(ConnectionState.JOINED)
        member_count = room.member_count

        logger.info(
            "Member joined room",
            connection_id=connection_id,
            user_id=connection.user_id,
            room_id=room_id,
            previous_room_id=previous.room_id if previous else None,
            member_count=member_count,
        )

        if previous is not None:
            await self._notify_left(previous, connection)

        await self.broadcast(
            room_id,
            connection_id,
            MemberJoinedMessage(
                room_id=room_id,
                connection_id=connection_id,
                user_id=connection.user_id,
            ).to_dict(),
        )
        return member_count

    async def leave(self, connection_id: str) -> str | None:
        """Remove a connection from its current room.

        Args:
            connection_id: The leaving connection.

        Returns:
            The room that was left, or None if the connection was in no room.
        """
        connection = self._registry.lookup(connection_id)
        if connection is None:
            return None
        return await self.evict(connection)

    async def evict(self, connection: Connection) -> str | None:
        """Remove ``connection`` from its room and notify the remaining members.

        Works for connections that are no longer in the registry.

        Args:
            connection: The connection to remove.

        Returns:
            The room that was left, or None if the connection was in no room.
        """
        room = self._detach(connection)
        self._mark_left(connection)
        if room is None:
            return None

        logger.info(
            "Member left room",
            connection_id=connection.connection_id,
            user_id=connection.user_id,
            room_id=room.room_id,
            member_count=room.member_count,
        )
        await self._notify_left(room, connection)
        return room.room_id

    async def broadcast(
        self,
        room_id: str,
        sender_connection_id: str | None,
        message: dict[str, Any],
    ) -> int:
        """Deliver a message to every member of a room except the sender.

        Sends run concurrently, each bounded by the send timeout. A failing
        member never aborts delivery to the others and the sender never sees
        the failure; failed members are removed from the room afterwards.

        Args:
            room_id: The room to broadcast to.
            sender_connection_id: The member to skip, if any.
            message: The message to send.

        Returns:
            The number of members the message was delivered to.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return 0

        json_message = json.dumps(message)

        async with room.lock:
            recipients: list[Connection] = []
            orphans: list[str] = []
            for member_id in room.members:
                if member_id == sender_connection_id:
                    continue
                connection = self._registry.lookup(member_id)
                if connection is None:
                    orphans.append(member_id)
                    continue
                recipients.append(connection)

            for member_id in orphans:
                logger.warning("Dropping unregistered room member", connection_id=member_id, room_id=room_id)
                room.members.discard(member_id)

            results = await asyncio.gather(
                *(self._send_to_member(connection, room_id, json_message) for connection in recipients),
                return_exceptions=True,
            )

        delivered = 0
        stale: list[Connection] = []
        for connection, result in zip(recipients, results, strict=True):
            if isinstance(result, StaleMemberError):
                logger.warning(
                    "Stale room member",
                    connection_id=connection.connection_id,
                    room_id=room_id,
                    reason=result.reason,
                )
                stale.append(connection)
            elif isinstance(result, BaseException):
                raise result
            else:
                delivered += 1

        if not room.members and self._rooms.get(room_id) is room:
            del self._rooms[room_id]
            logger.info("Room closed", room_id=room_id)

        for connection in stale:
            if connection.current_room == room_id:
                await self.evict(connection)

        return delivered

    async def _send_to_member(self, connection: Connection, room_id: str, message: str) -> None:
        """Send a JSON string to one member.

        Args:
            connection: The receiving member.
            room_id: The room being broadcast to.
            message: The JSON message string.

        Raises:
            StaleMemberError: If the send fails or times out.
        """
        try:
            await asyncio.wait_for(connection.transport.send_text(message), timeout=self._send_timeout)
        except TimeoutError as e:
            raise StaleMemberError(connection.connection_id, room_id, "send timed out") from e
        except Exception as e:
            raise StaleMemberError(connection.connection_id, room_id, type(e).__name__) from e

    async def _notify_left(self, room: Room, connection: Connection) -> None:
        """Tell the remaining members of ``room`` that ``connection`` left."""
        if not room.members:
            return
        await self.broadcast(
            room.room_id,
            connection.connection_id,
            MemberLeftMessage(
                room_id=room.room_id,
                connection_id=connection.connection_id,
                user_id=connection.user_id,
            ).to_dict(),
        )

    def _mark_left(self, connection: Connection) -> None:
        """Return a joined connection to the authenticated state."""
        if connection.state is ConnectionState.JOINED:
            connection.transition(ConnectionState.AUTHENTICATED)

    def _detach(self, connection: Connection) -> Room | None:
        """Remove a connection from its room, deleting the room if it empties.

        Args:
            connection: The connection to detach.

        Returns:
            The room the connection was in, or None.
        """
        room_id = connection.current_room
        if room_id is None:
            return None

        connection.current_room = None

        room = self._rooms.get(room_id)
        if room is None:
            return None

        room.members.discard(connection.connection_id)
        if not room.members:
            del self._rooms[room_id]
            logger.info("Room closed", room_id=room_id, last_sequence=room.last_sequence)
        return room

    def get_room(self, room_id: str) -> Room | None:
        """Get a live room.

        Args:
            room_id: The room's ID.

        Returns:
            The room or None if it has no members.
        """
        return self._rooms.get(room_id)

    def require_room(self, room_id: str) -> Room:
        """Get a live room or raise.

        Args:
            room_id: The room's ID.

        Returns:
            The room.

        Raises:
            RoomNotFoundError: If the room has no members.
        """
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def room_of(self, connection_id: str) -> str | None:
        """Get the room a connection is currently in."""
        connection = self._registry.lookup(connection_id)
        return connection.current_room if connection else None

    def members_of(self, room_id: str) -> list[Connection]:
        """Get the registered connections in a room.

        Args:
            room_id: The room's ID.

        Returns:
            The room's connections, empty if the room does not exist.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return []
        members = (self._registry.lookup(member_id) for member_id in room.members)
        return [connection for connection in members if connection is not None]

    def is_member(self, connection_id: str, room_id: str) -> bool:
        """Check whether a connection is in a room."""
        room = self._rooms.get(room_id)
        return room is not None and connection_id in room.members

    @property
    def rooms(self) -> list[Room]:
        """Snapshot of all live rooms."""
        return list(self._rooms.values())

    @property
    def active_rooms(self) -> int:
        """Get the number of live rooms."""
        return len(self._rooms)
