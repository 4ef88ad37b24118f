"""HTTP API for archsync: room presence, relay stats and health probes."""

from __future__ import annotations

from archsync.web.controllers import RoomController, StatsController
from archsync.web.health import HealthController
from archsync.web.router import create_router

__all__ = [
    "HealthController",
    "RoomController",
    "StatsController",
    "create_router",
]
