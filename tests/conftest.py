"""Pytest configuration and fixtures for archsync tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from litestar import Litestar
from litestar.testing import TestClient

from archsync.app import create_app
from archsync.auth.config import AuthConfig
from archsync.core.rate_limit import RateLimitSettings
from archsync.plugin import RelayConfig
from archsync.realtime.registry import Connection, ConnectionRegistry, ConnectionState
from archsync.realtime.relay import UpdateRelay
from archsync.realtime.rooms import RoomManager


# Mock transport helpers


def make_websocket(query: dict[str, str] | None = None, headers: dict[str, str] | None = None) -> MagicMock:
    """Create a mock WebSocket that records what it sends."""
    ws = MagicMock()
    ws.query_params = query or {}
    ws.headers = headers or {}
    ws.client = MagicMock(host="127.0.0.1")
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_json = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


@pytest.fixture
def websocket_factory() -> Callable[..., MagicMock]:
    """Factory for mock WebSockets."""
    return make_websocket


# Realtime fixtures


@pytest.fixture
def registry() -> ConnectionRegistry:
    """Create a fresh connection registry."""
    return ConnectionRegistry()


@pytest.fixture
def rooms(registry: ConnectionRegistry) -> RoomManager:
    """Create a room manager attached to the registry."""
    return RoomManager(registry, send_timeout=0.5)


@pytest.fixture
def relay(rooms: RoomManager) -> UpdateRelay:
    """Create an update relay on top of the room manager."""
    return UpdateRelay(rooms, max_payload_bytes=1024)


@pytest.fixture
def connect(registry: ConnectionRegistry) -> Callable[[str], Awaitable[Connection]]:
    """Register authenticated connections backed by mock websockets."""

    async def _connect(user_id: str = "user") -> Connection:
        connection = Connection(transport=make_websocket(), user_id=user_id)
        connection.transition(ConnectionState.AUTHENTICATED)
        await registry.register(connection)
        return connection

    return _connect


# App and client fixtures


@pytest.fixture
def relay_config() -> RelayConfig:
    """Relay configuration with guest access and one static token."""
    return RelayConfig(auth=AuthConfig(tokens={"secret-token": "alice"}, allow_guests=True))


@pytest.fixture
def app(relay_config: RelayConfig) -> Litestar:
    """Create the archsync app for testing."""
    return create_app(relay_config, rate_limit=RateLimitSettings(enabled=False))


@pytest.fixture
def client(app: Litestar) -> TestClient[Litestar]:
    """Create a test client for the app."""
    return TestClient(app=app)
