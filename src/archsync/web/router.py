"""Router configuration for the archsync API."""

from __future__ import annotations

from litestar import Router

from archsync.web.controllers import RoomController, StatsController


def create_router(path: str = "/api") -> Router:
    """Create the archsync API router.

    Args:
        path: The base path for all API routes. Defaults to "/api".

    Returns:
        A configured Litestar Router instance.

    Example:
        >>> router = create_router("/api/v1")
    """
    return Router(
        path=path,
        route_handlers=[RoomController, StatsController],
    )
