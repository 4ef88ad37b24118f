"""Sequence-stamped relay of design updates between room members."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

from archsync.exceptions import NotInRoomError, PayloadTooLargeError
from archsync.realtime.messages import DesignUpdateEvent

if TYPE_CHECKING:
    from archsync.realtime.rooms import RoomManager

logger = structlog.get_logger(__name__)

DEFAULT_MAX_PAYLOAD_BYTES = 10 * 1024 * 1024


class UpdateRelay:
    """Forwards opaque design updates to the other members of a room.

    Each accepted update gets the next sequence number of its room, starting
    at 1. Receivers use the sequence to detect missed updates; the relay
    never retransmits.
    """

    def __init__(
        self,
        room_manager: RoomManager,
        *,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ) -> None:
        """Initialize the relay.

        Args:
            room_manager: The room manager used for membership and fan-out.
            max_payload_bytes: Largest accepted JSON-encoded payload.
        """
        self._rooms = room_manager
        self._max_payload_bytes = max_payload_bytes
        self._updates_relayed = 0
        self._updates_rejected = 0

    async def submit(self, room_id: str, sender_connection_id: str, payload: Any) -> int:
        """Stamp an update with the room's next sequence and broadcast it.

        Args:
            room_id: The room the update is addressed to.
            sender_connection_id: The submitting connection.
            payload: The update body, relayed untouched.

        Returns:
            The sequence number assigned to the update.

        Raises:
            NotInRoomError: If the sender is not a member of ``room_id``.
            PayloadTooLargeError: If the encoded payload exceeds the limit.
        """
        room = self._rooms.get_room(room_id)
        if room is None or sender_connection_id not in room.members:
            self._updates_rejected += 1
            logger.info(
                "Rejected update from non-member",
                connection_id=sender_connection_id,
                room_id=room_id,
            )
            raise NotInRoomError(sender_connection_id, room_id)

        size = len(json.dumps(payload).encode())
        if size > self._max_payload_bytes:
            self._updates_rejected += 1
            raise PayloadTooLargeError(size, self._max_payload_bytes)

        # No await between stamping and broadcast(): the room lock is taken
        # in sequence order.
        event = DesignUpdateEvent(
            room_id=room_id,
            sender_connection_id=sender_connection_id,
            sequence=room.next_sequence(),
            payload=payload,
        )
        delivered = await self._rooms.broadcast(room_id, sender_connection_id, event.to_dict())
        self._updates_relayed += 1

        logger.debug(
            "Design update relayed",
            connection_id=sender_connection_id,
            room_id=room_id,
            sequence=event.sequence,
            delivered=delivered,
        )
        return event.sequence

    @property
    def updates_relayed(self) -> int:
        """Number of updates accepted since startup."""
        return self._updates_relayed

    @property
    def updates_rejected(self) -> int:
        """Number of updates rejected since startup."""
        return self._updates_rejected
