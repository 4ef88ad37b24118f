"""HTTP rate limiting for the archsync presence API.

Only HTTP requests are limited. Frames on an open websocket are not requests
and never count against a client's budget.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, get_args

from litestar.middleware.rate_limit import RateLimitConfig

TimeUnit = Literal["second", "minute", "hour", "day"]


@dataclass
class RateLimitSettings:
    """Rate limiting settings.

    Attributes:
        enabled: Whether rate limiting is enabled.
        limit: Requests allowed per client per ``window``.
        window: Length of the rate limit window.
        exempt_paths: Path patterns that are never limited.
    """

    enabled: bool = True
    limit: int = 100
    window: TimeUnit = "minute"
    exempt_paths: tuple[str, ...] = ("/health", "/ready", "/schema")

    @classmethod
    def from_env(cls) -> RateLimitSettings:
        """Create settings from environment variables.

        Environment variables:
            RATE_LIMIT_ENABLED: Set to "false" to disable rate limiting.
            RATE_LIMIT_PER_MINUTE: Requests per window (default: 100).
            RATE_LIMIT_WINDOW: second, minute, hour or day (default: minute).

        Raises:
            ValueError: If ``RATE_LIMIT_WINDOW`` is not a known unit.
        """
        window = os.environ.get("RATE_LIMIT_WINDOW", "minute")
        if window not in get_args(TimeUnit):
            msg = f"Invalid RATE_LIMIT_WINDOW: {window}"
            raise ValueError(msg)
        return cls(
            enabled=os.environ.get("RATE_LIMIT_ENABLED", "true").lower() != "false",
            limit=int(os.environ.get("RATE_LIMIT_PER_MINUTE", "100")),
            window=window,  # type: ignore[arg-type]
        )

    def to_config(self) -> RateLimitConfig:
        """Build the Litestar rate limit configuration.

        Handlers opt out individually with ``exclude_from_rate_limit=True``.
        """
        return RateLimitConfig(
            rate_limit=(self.window, self.limit),
            exclude=list(self.exempt_paths),
            exclude_opt_key="exclude_from_rate_limit",
        )


def get_rate_limit_middleware(settings: RateLimitSettings | None = None) -> RateLimitConfig | None:
    """Get the rate limit configuration if rate limiting is enabled.

    Args:
        settings: Rate limit settings. If None, loads from environment.

    Returns:
        RateLimitConfig if rate limiting is enabled, None otherwise.
    """
    settings = settings or RateLimitSettings.from_env()
    return settings.to_config() if settings.enabled else None
