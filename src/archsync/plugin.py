"""Litestar plugin for archsync integration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from archsync.auth.config import AuthConfig
from archsync.auth.service import create_authenticator
from archsync.realtime.gateway import SessionGateway, create_websocket_handler
from archsync.realtime.registry import ConnectionRegistry
from archsync.realtime.relay import DEFAULT_MAX_PAYLOAD_BYTES, UpdateRelay
from archsync.realtime.rooms import DEFAULT_SEND_TIMEOUT, RoomManager
from archsync.web.router import create_router

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

    from archsync.auth.service import Authenticator


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


@dataclass
class RelayConfig:
    """Configuration for the archsync plugin.

    Attributes:
        enable_api: Whether to mount the presence/stats REST routes.
        api_path: Base path for API routes.
        ws_path: Base path for the websocket route; clients connect to
            ``{ws_path}/relay``.
        send_timeout: Seconds a single member send may take before the member
            is reaped as stale.
        max_payload_bytes: Largest accepted design update payload.
        auth: Handshake authentication settings.
        authenticator: Explicit authenticator. Built from ``auth`` if None.
        frontend_url: Origin allowed by CORS.
        debug: Enable debug mode and debug logging.
        json_logs: Output logs as JSON.
    """

    enable_api: bool = True
    api_path: str = "/api"
    ws_path: str = "/ws"
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    auth: AuthConfig = field(default_factory=AuthConfig)
    authenticator: Authenticator | None = None
    frontend_url: str = "http://localhost:3000"
    debug: bool = False
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Create a configuration from environment variables.

        Environment variables:
            ARCHSYNC_API_PATH: API base path (default: /api).
            ARCHSYNC_WS_PATH: Websocket base path (default: /ws).
            ARCHSYNC_SEND_TIMEOUT: Per-member send timeout in seconds (default: 5).
            ARCHSYNC_MAX_PAYLOAD_BYTES: Payload size limit (default: 10 MiB).
            ARCHSYNC_AUTH_TOKENS / ARCHSYNC_ALLOW_GUESTS: See :class:`AuthConfig`.
            FRONTEND_URL: Allowed CORS origin (default: http://localhost:3000).
            ARCHSYNC_DEBUG: Enable debug mode.
            ARCHSYNC_JSON_LOGS: Output logs as JSON.

        Returns:
            RelayConfig configured from environment.
        """
        return cls(
            api_path=os.environ.get("ARCHSYNC_API_PATH", "/api"),
            ws_path=os.environ.get("ARCHSYNC_WS_PATH", "/ws"),
            send_timeout=float(os.environ.get("ARCHSYNC_SEND_TIMEOUT", str(DEFAULT_SEND_TIMEOUT))),
            max_payload_bytes=int(os.environ.get("ARCHSYNC_MAX_PAYLOAD_BYTES", str(DEFAULT_MAX_PAYLOAD_BYTES))),
            auth=AuthConfig(),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
            debug=_env_flag("ARCHSYNC_DEBUG"),
            json_logs=_env_flag("ARCHSYNC_JSON_LOGS"),
        )


class ArchsyncPlugin(InitPluginProtocol):
    """Litestar plugin that wires the design session relay into an app.

    The plugin constructs one registry, room manager, relay and gateway per
    application and hands them to route handlers through dependency
    injection under the keys ``registry``, ``room_manager``, ``relay`` and
    ``gateway``.

    Example:
        >>> from litestar import Litestar
        >>> from archsync import ArchsyncPlugin, RelayConfig
        >>>
        >>> app = Litestar(plugins=[ArchsyncPlugin(RelayConfig())])
    """

    def __init__(self, config: RelayConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Plugin configuration. Defaults to :class:`RelayConfig`.
        """
        self._config = config or RelayConfig()
        self._registry: ConnectionRegistry | None = None
        self._room_manager: RoomManager | None = None
        self._relay: UpdateRelay | None = None
        self._gateway: SessionGateway | None = None

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Build the relay components and register routes and dependencies.

        Args:
            app_config: The Litestar application configuration object.

        Returns:
            The modified application configuration.
        """
        config = self._config
        self._registry = ConnectionRegistry()
        self._room_manager = RoomManager(self._registry, send_timeout=config.send_timeout)
        self._relay = UpdateRelay(self._room_manager, max_payload_bytes=config.max_payload_bytes)
        self._gateway = SessionGateway(
            registry=self._registry,
            room_manager=self._room_manager,
            relay=self._relay,
            authenticator=config.authenticator or create_authenticator(config.auth),
            auth_config=config.auth,
        )

        def provide_registry() -> ConnectionRegistry:
            return self.registry

        def provide_room_manager() -> RoomManager:
            return self.room_manager

        def provide_relay() -> UpdateRelay:
            return self.relay

        def provide_gateway() -> SessionGateway:
            return self.gateway

        app_config.dependencies["registry"] = Provide(provide_registry, sync_to_thread=False)
        app_config.dependencies["room_manager"] = Provide(provide_room_manager, sync_to_thread=False)
        app_config.dependencies["relay"] = Provide(provide_relay, sync_to_thread=False)
        app_config.dependencies["gateway"] = Provide(provide_gateway, sync_to_thread=False)

        app_config.route_handlers.append(create_websocket_handler(path=config.ws_path, gateway=self._gateway))

        if config.enable_api:
            app_config.route_handlers.append(create_router(path=config.api_path))

        return app_config

    @property
    def registry(self) -> ConnectionRegistry:
        """Get the connection registry.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._registry is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._registry

    @property
    def room_manager(self) -> RoomManager:
        """Get the room manager.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._room_manager is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._room_manager

    @property
    def relay(self) -> UpdateRelay:
        """Get the update relay.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._relay is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._relay

    @property
    def gateway(self) -> SessionGateway:
        """Get the session gateway.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._gateway is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._gateway
