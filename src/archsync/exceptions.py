"""Exception classes for archsync."""

from __future__ import annotations

from typing import ClassVar


class ArchsyncError(Exception):
    """Base exception for all archsync errors.

    Attributes:
        code: Machine-readable error code sent to websocket clients.
    """

    code: ClassVar[str] = "error"


class AuthFailedError(ArchsyncError):
    """Raised when a connection handshake is rejected by the authenticator."""

    code: ClassVar[str] = "auth_failed"

    def __init__(self, reason: str = "Authentication failed") -> None:
        """Initialize the exception.

        Args:
            reason: Why the handshake was rejected.
        """
        super().__init__(reason)
        self.reason = reason


class DuplicateConnectionError(ArchsyncError):
    """Raised when a transport registers while it already has an active entry."""

    code: ClassVar[str] = "duplicate_connection"

    def __init__(self, connection_id: str) -> None:
        """Initialize the exception.

        Args:
            connection_id: The ID that is already registered.
        """
        super().__init__(f"Connection already registered: {connection_id}")
        self.connection_id = connection_id


class ConnectionNotFoundError(ArchsyncError):
    """Raised when a connection is not present in the registry."""

    code: ClassVar[str] = "connection_not_found"

    def __init__(self, connection_id: str) -> None:
        """Initialize the exception.

        Args:
            connection_id: The ID of the connection that was not found.
        """
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id


class RoomNotFoundError(ArchsyncError):
    """Raised when a room has no live session."""

    code: ClassVar[str] = "room_not_found"

    def __init__(self, room_id: str) -> None:
        """Initialize the exception.

        Args:
            room_id: The ID of the room that was not found.
        """
        super().__init__(f"Room not found: {room_id}")
        self.room_id = room_id


class NotInRoomError(ArchsyncError):
    """Raised when an update is submitted to a room the sender has not joined."""

    code: ClassVar[str] = "not_in_room"

    def __init__(self, connection_id: str, room_id: str | None = None) -> None:
        """Initialize the exception.

        Args:
            connection_id: The sending connection.
            room_id: The room the update was addressed to, if any.
        """
        if room_id:
            super().__init__(f"Connection {connection_id} is not a member of room {room_id}")
        else:
            super().__init__(f"Connection {connection_id} has not joined a room")
        self.connection_id = connection_id
        self.room_id = room_id


class StaleMemberError(ArchsyncError):
    """Raised internally when a room member's transport fails or times out.

    Never surfaced to clients; the member is reaped from its room instead.
    """

    code: ClassVar[str] = "stale_member"

    def __init__(self, connection_id: str, room_id: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            connection_id: The unresponsive member.
            room_id: The room being broadcast to.
            reason: Short description of the failure.
        """
        super().__init__(f"Member {connection_id} of room {room_id} is stale: {reason}")
        self.connection_id = connection_id
        self.room_id = room_id
        self.reason = reason


class InvalidMessageError(ArchsyncError):
    """Raised when an inbound websocket message is malformed."""

    code: ClassVar[str] = "invalid_message"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Description of the problem.
            code: Optional more specific error code.
        """
        super().__init__(message)
        if code is not None:
            self.code = code  # type: ignore[misc]


class PayloadTooLargeError(ArchsyncError):
    """Raised when a design update payload exceeds the configured size limit."""

    code: ClassVar[str] = "payload_too_large"

    def __init__(self, size: int, limit: int) -> None:
        """Initialize the exception.

        Args:
            size: Encoded payload size in bytes.
            limit: Maximum allowed size in bytes.
        """
        super().__init__(f"Payload of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class InvalidTransitionError(ArchsyncError):
    """Raised when a connection is moved to a state its lifecycle does not allow."""

    code: ClassVar[str] = "invalid_state"

    def __init__(self, current: str, target: str) -> None:
        """Initialize the exception.

        Args:
            current: The connection's current state.
            target: The requested state.
        """
        super().__init__(f"Cannot transition from {current} to {target}")
        self.current = current
        self.target = target
