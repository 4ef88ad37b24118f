"""WebSocket entry point for collaborative design sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from litestar import Router, WebSocket, websocket

from archsync.auth.service import DenyAllAuthenticator, HandshakeCredentials
from archsync.core.logging import bind_connection
from archsync.exceptions import ArchsyncError, AuthFailedError, NotInRoomError
from archsync.realtime.messages import (
    ConnectedMessage,
    DesignUpdateRequest,
    ErrorMessage,
    JoinRoomRequest,
    MessageType,
    RoomJoinedMessage,
    RoomLeftMessage,
    UpdateAckMessage,
    parse_message,
)
from archsync.realtime.registry import Connection, ConnectionState

if TYPE_CHECKING:
    from archsync.auth.config import AuthConfig
    from archsync.auth.service import Authenticator
    from archsync.realtime.registry import ConnectionRegistry
    from archsync.realtime.relay import UpdateRelay
    from archsync.realtime.rooms import RoomManager

logger = structlog.get_logger(__name__)

WS_CLOSE_AUTH_FAILED = 4401


class SessionGateway:
    """Accepts client connections and dispatches their messages.

    Each connection moves through ``CONNECTING -> AUTHENTICATED -> JOINED ->
    CLOSED``. Authentication is delegated to an :class:`Authenticator`; room
    operations are only dispatched once it has succeeded.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        room_manager: RoomManager,
        relay: UpdateRelay,
        authenticator: Authenticator,
        auth_config: AuthConfig | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            registry: The connection registry.
            room_manager: The room manager sharing ``registry``.
            relay: The update relay.
            authenticator: Verifies handshake credentials.
            auth_config: Handshake parameter names.
        """
        self._registry = registry
        self._rooms = room_manager
        self._relay = relay
        self._authenticator = authenticator
        self._auth_config = auth_config

        self._handlers = {
            MessageType.JOIN_ROOM: self._handle_join,
            MessageType.JOIN_PROJECT: self._handle_join,
            MessageType.LEAVE_ROOM: self._handle_leave,
            MessageType.DESIGN_UPDATE: self._handle_design_update,
            MessageType.PING: self._handle_ping,
        }

    @property
    def accepts_connections(self) -> bool:
        """Whether any handshake can succeed with the configured authenticator."""
        return not isinstance(self._authenticator, DenyAllAuthenticator)

    async def handle_connection(self, socket: WebSocket) -> None:
        """Run a client connection from handshake to disconnect.

        Args:
            socket: The WebSocket connection.
        """
        connection = Connection(transport=socket)
        await socket.accept()

        try:
            if await self.authenticate(connection):
                await self._receive_loop(connection)
        except Exception:
            logger.exception("WebSocket error", connection_id=connection.connection_id)
        finally:
            await self.close(connection)

    async def authenticate(self, connection: Connection) -> bool:
        """Verify the handshake and register the connection.

        On failure the client receives an ``auth_failed`` error, the socket is
        closed and the connection ends in ``CLOSED`` without being registered.
        The connection is only registered once the ``connected`` reply has
        been sent.

        Args:
            connection: A connection in the ``CONNECTING`` state.

        Returns:
            True if the connection is now authenticated.
        """
        socket = connection.transport
        client = socket.client
        credentials = HandshakeCredentials.from_handshake(
            query=dict(socket.query_params),
            headers=socket.headers,
            client_ip=client.host if client else None,
            config=self._auth_config,
        )

        try:
            user_id = await self._authenticator.authenticate(credentials)
        except AuthFailedError as e:
            logger.info(
                "Handshake rejected",
                connection_id=connection.connection_id,
                client_ip=credentials.client_ip,
                reason=e.reason,
            )
            await self._reject(connection, e)
            return False
        except Exception:
            logger.exception(
                "Authenticator error",
                connection_id=connection.connection_id,
                client_ip=credentials.client_ip,
            )
            await self._reject(connection, AuthFailedError())
            return False

        connection.user_id = user_id
        connection.transition(ConnectionState.AUTHENTICATED)
        bind_connection(connection.connection_id, user_id)

        await socket.send_json(
            ConnectedMessage(connection_id=connection.connection_id, user_id=user_id).to_dict(),
        )
        await self._registry.register(connection)
        return True

    async def _reject(self, connection: Connection, error: AuthFailedError) -> None:
        """Report a failed handshake to the client and close the socket."""
        connection.transition(ConnectionState.CLOSED)
        await self._send_error(connection, error.code, error.reason)
        await connection.transport.close(code=WS_CLOSE_AUTH_FAILED, reason="Authentication failed")

    async def _receive_loop(self, connection: Connection) -> None:
        """Main receive loop for WebSocket messages.

        Args:
            connection: The authenticated connection.
        """
        async for message in connection.transport.iter_data():
            await self.handle_message(connection, message)

    async def handle_message(self, connection: Connection, raw: str | bytes | dict[str, Any]) -> None:
        """Parse one inbound frame and route it to its handler.

        Errors are reported to the sending connection only.

        Args:
            connection: The sending connection.
            raw: The frame as received.
        """
        try:
            message_type, data = parse_message(raw)
            await self._handlers[message_type](connection, data)
        except ArchsyncError as e:
            await self._send_error(connection, e.code, str(e))
        except Exception:
            logger.exception("Error handling message", connection_id=connection.connection_id)
            await self._send_error(connection, "internal_error", "Internal server error")

    async def close(self, connection: Connection) -> None:
        """Move a connection to ``CLOSED`` and unregister it.

        Safe to call more than once.

        Args:
            connection: The connection to close.
        """
        if not connection.is_closed:
            connection.transition(ConnectionState.CLOSED)
        await self._registry.unregister(connection.connection_id)
        logger.info(
            "Connection closed",
            connection_id=connection.connection_id,
            user_id=connection.user_id,
        )

    async def _handle_join(self, connection: Connection, message: dict[str, Any]) -> None:
        """Handle ``join-room`` and the legacy ``join-project``.

        Args:
            connection: The joining connection.
            message: The join message.
        """
        request = JoinRoomRequest.from_dict(message)
        member_count = await self._rooms.join(connection.connection_id, request.room_id)

        room = self._rooms.get_room(request.room_id)
        await connection.transport.send_json(
            RoomJoinedMessage(
                room_id=request.room_id,
                member_count=member_count,
                last_sequence=room.last_sequence if room else 0,
                members=[
                    {"connectionId": member.connection_id, "userId": member.user_id}
                    for member in self._rooms.members_of(request.room_id)
                ],
            ).to_dict(),
        )

    async def _handle_leave(self, connection: Connection, message: dict[str, Any]) -> None:
        """Handle an explicit ``leave-room``.

        Args:
            connection: The leaving connection.
            message: The leave message (unused).
        """
        room_id = await self._rooms.leave(connection.connection_id)
        if room_id is None:
            raise NotInRoomError(connection.connection_id)
        await connection.transport.send_json(RoomLeftMessage(room_id=room_id).to_dict())

    async def _handle_design_update(self, connection: Connection, message: dict[str, Any]) -> None:
        """Relay a design update to the rest of the room.

        Args:
            connection: The sending connection.
            message: The design update message.
        """
        request = DesignUpdateRequest.from_dict(message)
        room_id = request.room_id or connection.current_room
        if room_id is None:
            raise NotInRoomError(connection.connection_id)

        sequence = await self._relay.submit(room_id, connection.connection_id, request.payload)
        await connection.transport.send_json(UpdateAckMessage(room_id=room_id, sequence=sequence).to_dict())

    async def _handle_ping(self, connection: Connection, message: dict[str, Any]) -> None:
        """Answer a keepalive ping."""
        await connection.transport.send_json({"type": MessageType.PONG.value})

    async def _send_error(
        self,
        connection: Connection,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Send an error message to the client.

        Args:
            connection: The connection to notify.
            code: Error code.
            message: Error message.
            details: Additional error details.
        """
        error_msg = ErrorMessage(code=code, message=message, details=details)
        await connection.transport.send_json(error_msg.to_dict())


def create_websocket_handler(path: str, gateway: SessionGateway) -> Router:
    """Create a WebSocket router for design session relay.

    Args:
        path: Base path for WebSocket routes.
        gateway: The session gateway.

    Returns:
        A Litestar Router with the WebSocket handler.
    """

    @websocket(path="/relay")
    async def relay_websocket(socket: WebSocket) -> None:
        """WebSocket endpoint for collaborative design sessions.

        Args:
            socket: The WebSocket connection.
        """
        await gateway.handle_connection(socket)

    return Router(path=path, route_handlers=[relay_websocket], tags=["WebSocket"])
