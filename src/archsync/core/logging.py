"""structlog setup and ASGI logging middleware for archsync.

HTTP requests and websocket sessions both get a correlation ID bound to the
structlog context. Websocket sessions additionally carry their connection and
user IDs once the handshake succeeds, so every relay log line can be traced
back to one client.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send

CORRELATION_HEADERS = (b"x-correlation-id", b"x-request-id")

# Design payloads are opaque and may be megabytes long.
_PAYLOAD_KEYS = frozenset({"payload"})


def summarize_payloads(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace relayed payloads in a log event with their type name."""
    for key in _PAYLOAD_KEYS & event_dict.keys():
        event_dict[key] = f"<{type(event_dict[key]).__name__}>"
    return event_dict


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog for the relay.

    Args:
        debug: Log at debug level, which includes one line per relayed update.
        json_logs: Render JSON lines instead of the colored console format.
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        summarize_payloads,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_connection(connection_id: str, user_id: str) -> None:
    """Attach a websocket session's identity to the current log context."""
    structlog.contextvars.bind_contextvars(connection_id=connection_id, user_id=user_id)


def _correlation_id_from(scope: Scope) -> str:
    headers = dict(scope.get("headers", []))
    for name in CORRELATION_HEADERS:
        value = headers.get(name, b"").decode()
        if value:
            return value
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Bind a correlation ID to every HTTP request and websocket session.

    The ID is taken from ``X-Correlation-ID`` or ``X-Request-ID`` if the
    client sent one. It is stored in ``scope["state"]`` for the error
    handlers and echoed on HTTP responses.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope["type"]
        if scope_type not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = _correlation_id_from(scope)
        scope.setdefault("state", {})["correlation_id"] = correlation_id

        client = scope.get("client")
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            transport=scope_type,
            path=scope.get("path", ""),
            client_ip=client[0] if client else None,
        )

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), (b"x-correlation-id", correlation_id.encode())]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            structlog.contextvars.clear_contextvars()


class RequestLoggingMiddleware:
    """Log the outcome and duration of each HTTP request.

    Websocket sessions are long-lived and are logged by the gateway instead.
    """

    def __init__(self, app: ASGIApp, *, exclude_paths: set[str] | None = None) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            exclude_paths: Paths that are never logged, such as probes.
        """
        self.app = app
        self.exclude_paths = exclude_paths or {"/health", "/ready"}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        logger = structlog.get_logger(__name__)
        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception("Request failed with exception")
            raise
        finally:
            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "Request completed",
                method=scope.get("method", ""),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
