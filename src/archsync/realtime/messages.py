"""WebSocket message types and schemas for the design session relay."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from archsync.exceptions import InvalidMessageError


class MessageType(str, Enum):
    """Types of WebSocket messages."""

    # Client -> Server
    JOIN_ROOM = "join-room"
    JOIN_PROJECT = "join-project"
    LEAVE_ROOM = "leave-room"
    DESIGN_UPDATE = "design-update"
    PING = "ping"

    # Server -> Client
    CONNECTED = "connected"
    ROOM_JOINED = "room-joined"
    ROOM_LEFT = "room-left"
    MEMBER_JOINED = "member-joined"
    MEMBER_LEFT = "member-left"
    UPDATE_ACK = "update-ack"
    PONG = "pong"
    ERROR = "error"


CLIENT_MESSAGE_TYPES = frozenset(
    {
        MessageType.JOIN_ROOM,
        MessageType.JOIN_PROJECT,
        MessageType.LEAVE_ROOM,
        MessageType.DESIGN_UPDATE,
        MessageType.PING,
    }
)


def _room_id_from(data: dict[str, Any]) -> str | None:
    """Read a room id, accepting the legacy ``projectId`` key."""
    room_id = data.get("roomId", data.get("projectId"))
    if room_id is None:
        return None
    if not isinstance(room_id, (str, int)) or isinstance(room_id, bool):
        msg = "Room id must be a string"
        raise InvalidMessageError(msg, code="invalid_room_id")
    room_id = str(room_id).strip()
    if not room_id:
        msg = "Room id must not be empty"
        raise InvalidMessageError(msg, code="invalid_room_id")
    return room_id


@dataclass
class JoinRoomRequest:
    """Client request to join a project room."""

    room_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JoinRoomRequest:
        """Parse a ``join-room`` or ``join-project`` message.

        Legacy clients send the project id as a bare string in ``data``.
        """
        if isinstance(data.get("data"), (str, int)) and "roomId" not in data and "projectId" not in data:
            data = {"roomId": data["data"]}
        room_id = _room_id_from(data)
        if room_id is None:
            msg = "roomId is required"
            raise InvalidMessageError(msg, code="missing_room_id")
        return cls(room_id=room_id)


@dataclass
class DesignUpdateRequest:
    """Client request to relay a design update."""

    room_id: str | None
    payload: Any

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DesignUpdateRequest:
        """Parse a ``design-update`` message.

        ``room_id`` is None when the client relies on its current room.
        """
        if "payload" not in data:
            msg = "payload is required"
            raise InvalidMessageError(msg, code="missing_payload")
        return cls(room_id=_room_id_from(data), payload=data["payload"])


def parse_message(raw: str | bytes | dict[str, Any]) -> tuple[MessageType, dict[str, Any]]:
    """Decode an inbound frame into its message type and body.

    Args:
        raw: A text/binary frame or an already decoded mapping.

    Returns:
        The client message type and the decoded body.

    Raises:
        InvalidMessageError: If the frame is not a JSON object with a known client type.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            msg = "Invalid JSON message"
            raise InvalidMessageError(msg, code="invalid_json") from e
    else:
        data = raw

    if not isinstance(data, dict):
        msg = "Message must be a JSON object"
        raise InvalidMessageError(msg, code="invalid_json")

    msg_type = data.get("type")
    if not msg_type:
        msg = "Message type is required"
        raise InvalidMessageError(msg, code="missing_type")

    try:
        message_type = MessageType(msg_type)
    except ValueError as e:
        msg = f"Unknown message type: {msg_type}"
        raise InvalidMessageError(msg, code="unknown_type") from e

    if message_type not in CLIENT_MESSAGE_TYPES:
        msg = f"Unknown message type: {msg_type}"
        raise InvalidMessageError(msg, code="unknown_type")

    return message_type, data


@dataclass
class ConnectedMessage:
    """Message sent once a handshake has been authenticated."""

    connection_id: str
    user_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.CONNECTED.value,
            "timestamp": self.timestamp.isoformat(),
            "connectionId": self.connection_id,
            "userId": self.user_id,
        }


@dataclass
class RoomJoinedMessage:
    """Acknowledgement sent to a connection that joined a room."""

    room_id: str
    member_count: int
    last_sequence: int
    members: list[dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.ROOM_JOINED.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
            "memberCount": self.member_count,
            "lastSequence": self.last_sequence,
            "members": self.members,
        }


@dataclass
class RoomLeftMessage:
    """Acknowledgement sent to a connection that left its room."""

    room_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.ROOM_LEFT.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
        }


@dataclass
class MemberJoinedMessage:
    """Presence notification sent to existing members when someone joins."""

    room_id: str
    connection_id: str
    user_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.MEMBER_JOINED.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
            "connectionId": self.connection_id,
            "userId": self.user_id,
        }


@dataclass
class MemberLeftMessage:
    """Presence notification sent to remaining members when someone leaves."""

    room_id: str
    connection_id: str
    user_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.MEMBER_LEFT.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
            "connectionId": self.connection_id,
            "userId": self.user_id,
        }


@dataclass
class DesignUpdateEvent:
    """A design update stamped with its per-room sequence number.

    The payload is relayed untouched; receivers use ``sequence`` to detect gaps.
    """

    room_id: str
    sender_connection_id: str
    sequence: int
    payload: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.DESIGN_UPDATE.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
            "sequence": self.sequence,
            "senderConnectionId": self.sender_connection_id,
            "payload": self.payload,
        }


@dataclass
class UpdateAckMessage:
    """Acknowledgement sent to the sender of a relayed update."""

    room_id: str
    sequence: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": MessageType.UPDATE_ACK.value,
            "timestamp": self.timestamp.isoformat(),
            "roomId": self.room_id,
            "sequence": self.sequence,
        }


@dataclass
class ErrorMessage:
    """Message for error responses."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "type": MessageType.ERROR.value,
            "timestamp": self.timestamp.isoformat(),
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result
