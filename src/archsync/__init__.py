"""archsync: a real-time relay for collaborative architecture design sessions.

Clients open a websocket, authenticate during the handshake, join the room of
the project they are editing, and exchange design updates. The relay stamps
every update with a per-room sequence number and forwards it to every other
member of the room. It never stores or interprets design content.

Key Components:
    - Registry: ConnectionRegistry tracks live connections and their state
    - Rooms: RoomManager handles membership, presence and fan-out
    - Relay: UpdateRelay stamps and forwards design updates
    - Gateway: SessionGateway drives one websocket through its lifecycle
    - Plugin: ArchsyncPlugin for Litestar integration

Quick Start:
    >>> from litestar import Litestar
    >>> from archsync import ArchsyncPlugin, RelayConfig
    >>>
    >>> app = Litestar(plugins=[ArchsyncPlugin(RelayConfig())])
"""

from __future__ import annotations

__version__ = "0.1.0"

from archsync.auth import AuthConfig, Authenticator, create_authenticator
from archsync.exceptions import (
    ArchsyncError,
    AuthFailedError,
    DuplicateConnectionError,
    InvalidMessageError,
    NotInRoomError,
    PayloadTooLargeError,
    RoomNotFoundError,
)
from archsync.plugin import ArchsyncPlugin, RelayConfig
from archsync.realtime import (
    Connection,
    ConnectionRegistry,
    ConnectionState,
    MessageType,
    RoomManager,
    SessionGateway,
    UpdateRelay,
    create_websocket_handler,
)
from archsync.web import create_router

__all__ = [
    "ArchsyncError",
    "ArchsyncPlugin",
    "AuthConfig",
    "AuthFailedError",
    "Authenticator",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "DuplicateConnectionError",
    "InvalidMessageError",
    "MessageType",
    "NotInRoomError",
    "PayloadTooLargeError",
    "RelayConfig",
    "RoomManager",
    "RoomNotFoundError",
    "SessionGateway",
    "UpdateRelay",
    "create_authenticator",
    "create_router",
    "create_websocket_handler",
]
