"""Main Litestar application for archsync.

This module provides the application factory and a configured app instance
for running the relay as a standalone service.
"""

from __future__ import annotations

from litestar import Litestar
from litestar.config.cors import CORSConfig
from litestar.openapi import OpenAPIConfig
from litestar.openapi.plugins import ScalarRenderPlugin, SwaggerRenderPlugin

from archsync import __version__
from archsync.core.error_handling import get_exception_handlers
from archsync.core.logging import CorrelationIdMiddleware, RequestLoggingMiddleware, configure_logging
from archsync.core.rate_limit import RateLimitSettings, get_rate_limit_middleware
from archsync.plugin import ArchsyncPlugin, RelayConfig
from archsync.web.health import HealthController


def create_app(
    config: RelayConfig | None = None,
    *,
    rate_limit: RateLimitSettings | None = None,
) -> Litestar:
    """Create and configure the Litestar application.

    Args:
        config: Relay configuration. Loaded from the environment if None.
        rate_limit: HTTP rate limit settings. Loaded from the environment if None.

    Returns:
        Configured Litestar application instance.
    """
    if config is None:
        config = RelayConfig.from_env()

    configure_logging(debug=config.debug, json_logs=config.json_logs)

    middleware: list = [CorrelationIdMiddleware, RequestLoggingMiddleware]

    rate_limit_config = get_rate_limit_middleware(rate_limit)
    if rate_limit_config:
        middleware.append(rate_limit_config.middleware)

    return Litestar(
        route_handlers=[HealthController],
        plugins=[ArchsyncPlugin(config)],
        debug=config.debug,
        middleware=middleware,
        exception_handlers=get_exception_handlers(),
        cors_config=CORSConfig(allow_origins=[config.frontend_url], allow_credentials=True),
        openapi_config=OpenAPIConfig(
            title="archsync relay API",
            version=__version__,
            description="Real-time relay for collaborative architecture design sessions",
            path="/schema",
            render_plugins=[ScalarRenderPlugin(path="/"), SwaggerRenderPlugin(path="/swagger")],
            use_handler_docstrings=True,
        ),
    )


# Default application instance for uvicorn
app = create_app()
