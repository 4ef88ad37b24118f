"""Liveness and readiness probes for archsync.

``/health`` reports on the relay itself; ``/ready`` tells a load balancer
whether new websocket clients can actually get in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from litestar import Controller, get

from archsync import __version__
from archsync.realtime.gateway import SessionGateway
from archsync.realtime.registry import ConnectionRegistry
from archsync.realtime.rooms import RoomManager


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health of one part of the relay."""

    name: str
    status: HealthStatus
    message: str | None = None


@dataclass
class HealthReport:
    """Aggregated health of the relay.

    The overall status is the worst status among the components.
    """

    components: list[ComponentHealth]
    version: str = __version__
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def status(self) -> HealthStatus:
        statuses = {c.status for c in self.components}
        for status in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED):
            if status in statuses:
                return status
        return HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "components": [{"name": c.name, "status": c.status.value, "message": c.message} for c in self.components],
        }


def _auth_health(gateway: SessionGateway) -> ComponentHealth:
    if gateway.accepts_connections:
        return ComponentHealth(name="auth", status=HealthStatus.HEALTHY, message="Handshake authenticator configured")
    return ComponentHealth(
        name="auth",
        status=HealthStatus.DEGRADED,
        message="No authenticator configured, every handshake is rejected",
    )


class HealthController(Controller):
    """Probe endpoints for container orchestration."""

    path = ""
    tags: ClassVar[list[str]] = ["Health"]

    @get("/health", exclude_from_rate_limit=True)
    async def health(
        self,
        gateway: SessionGateway,
        registry: ConnectionRegistry,
        room_manager: RoomManager,
    ) -> dict[str, Any]:
        """Liveness probe endpoint.

        Returns:
            Overall status with per-component details.
        """
        relay = ComponentHealth(
            name="relay",
            status=HealthStatus.HEALTHY,
            message=f"{registry.total_connections} connections in {room_manager.active_rooms} rooms",
        )
        return HealthReport(components=[relay, _auth_health(gateway)]).to_dict()

    @get("/ready", exclude_from_rate_limit=True)
    async def ready(self, gateway: SessionGateway) -> dict[str, Any]:
        """Readiness probe endpoint.

        The relay has no external dependencies. It is ready once it can
        authenticate clients.

        Returns:
            Readiness flag with the individual checks.
        """
        checks = {"application": True, "auth": gateway.accepts_connections}
        return {
            "ready": all(checks.values()),
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        }
