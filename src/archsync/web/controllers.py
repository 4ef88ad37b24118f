"""Litestar controllers for the archsync presence API."""

from __future__ import annotations

from typing import ClassVar

from litestar import Controller, get

from archsync.realtime.registry import ConnectionRegistry
from archsync.realtime.relay import UpdateRelay
from archsync.realtime.rooms import RoomManager
from archsync.web.dto import (
    RelayStatsDTO,
    RoomDetailDTO,
    RoomSummaryDTO,
    room_to_detail,
    room_to_summary,
)


class RoomController(Controller):
    """Read-only view of live collaboration rooms.

    Rooms exist only while someone is connected; this API never creates or
    persists them.
    """

    path = "/rooms"
    tags: ClassVar[list[str]] = ["Rooms"]

    @get("/")
    async def list_rooms(self, room_manager: RoomManager) -> list[RoomSummaryDTO]:
        """List all live rooms.

        Args:
            room_manager: The room manager (injected).

        Returns:
            A summary of every room with at least one member.
        """
        return [room_to_summary(room) for room in room_manager.rooms]

    @get("/{room_id:str}")
    async def get_room(self, room_id: str, room_manager: RoomManager) -> RoomDetailDTO:
        """Get a live room and its members.

        Args:
            room_id: The project room ID.
            room_manager: The room manager (injected).

        Returns:
            The room with its members.

        Raises:
            RoomNotFoundError: If nobody is in the room.
        """
        room = room_manager.require_room(room_id)
        return room_to_detail(room, room_manager)


class StatsController(Controller):
    """Controller for relay counters."""

    path = "/stats"
    tags: ClassVar[list[str]] = ["Stats"]

    @get("/")
    async def get_stats(
        self,
        room_manager: RoomManager,
        registry: ConnectionRegistry,
        relay: UpdateRelay,
    ) -> RelayStatsDTO:
        """Get current relay statistics."""
        return RelayStatsDTO(
            active_rooms=room_manager.active_rooms,
            total_connections=registry.total_connections,
            updates_relayed=relay.updates_relayed,
            updates_rejected=relay.updates_rejected,
        )
