"""Real-time WebSocket module for archsync.

This module provides the collaborative design session relay: connection
tracking, project rooms with presence notifications, and sequence-stamped
forwarding of design updates between room members.
"""

from __future__ import annotations

from archsync.realtime.gateway import SessionGateway, create_websocket_handler
from archsync.realtime.messages import (
    ConnectedMessage,
    DesignUpdateEvent,
    DesignUpdateRequest,
    ErrorMessage,
    JoinRoomRequest,
    MemberJoinedMessage,
    MemberLeftMessage,
    MessageType,
    RoomJoinedMessage,
    RoomLeftMessage,
    UpdateAckMessage,
    parse_message,
)
from archsync.realtime.registry import Connection, ConnectionRegistry, ConnectionState
from archsync.realtime.relay import UpdateRelay
from archsync.realtime.rooms import Room, RoomManager

__all__ = [
    "ConnectedMessage",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "DesignUpdateEvent",
    "DesignUpdateRequest",
    "ErrorMessage",
    "JoinRoomRequest",
    "MemberJoinedMessage",
    "MemberLeftMessage",
    "MessageType",
    "Room",
    "RoomJoinedMessage",
    "RoomLeftMessage",
    "RoomManager",
    "SessionGateway",
    "UpdateAckMessage",
    "UpdateRelay",
    "create_websocket_handler",
    "parse_message",
]
