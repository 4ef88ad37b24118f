"""Data Transfer Objects (DTOs) for the archsync API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archsync.realtime.registry import Connection
    from archsync.realtime.rooms import Room, RoomManager


@dataclass
class MemberDTO:
    """DTO for a connection collaborating in a room.

    Attributes:
        connection_id: The member's connection ID.
        user_id: The authenticated user behind the connection.
        connected_at: When the connection was opened.
    """

    connection_id: str
    user_id: str
    connected_at: datetime


@dataclass
class RoomSummaryDTO:
    """DTO for room list responses."""

    room_id: str
    member_count: int
    last_sequence: int
    created_at: datetime


@dataclass
class RoomDetailDTO:
    """DTO for a single room including its members."""

    room_id: str
    member_count: int
    last_sequence: int
    created_at: datetime
    members: list[MemberDTO] = field(default_factory=list)


@dataclass
class RelayStatsDTO:
    """DTO for relay-wide counters.

    Attributes:
        active_rooms: Rooms with at least one member.
        total_connections: Authenticated connections.
        updates_relayed: Updates accepted since startup.
        updates_rejected: Updates rejected since startup.
    """

    active_rooms: int
    total_connections: int
    updates_relayed: int
    updates_rejected: int


def member_to_dto(connection: Connection) -> MemberDTO:
    """Convert a connection to its API representation."""
    return MemberDTO(
        connection_id=connection.connection_id,
        user_id=connection.user_id,
        connected_at=connection.connected_at,
    )


def room_to_summary(room: Room) -> RoomSummaryDTO:
    """Convert a room to a summary DTO."""
    return RoomSummaryDTO(
        room_id=room.room_id,
        member_count=room.member_count,
        last_sequence=room.last_sequence,
        created_at=room.created_at,
    )


def room_to_detail(room: Room, room_manager: RoomManager) -> RoomDetailDTO:
    """Convert a room and its members to a detail DTO.

    Args:
        room: The room to convert.
        room_manager: Used to resolve member connections.

    Returns:
        The room detail.
    """
    return RoomDetailDTO(
        room_id=room.room_id,
        member_count=room.member_count,
        last_sequence=room.last_sequence,
        created_at=room.created_at,
        members=[member_to_dto(c) for c in room_manager.members_of(room.room_id)],
    )
