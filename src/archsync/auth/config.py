"""Handshake authentication configuration for archsync."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def parse_token_map(raw: str) -> dict[str, str]:
    """Parse ``"token:user,token2:user2"`` into a token to user ID mapping.

    Entries without a ``:`` or with an empty side are ignored.

    Args:
        raw: The comma-separated token list.

    Returns:
        Mapping of token to user ID.
    """
    tokens: dict[str, str] = {}
    for entry in raw.split(","):
        token, sep, user_id = entry.strip().partition(":")
        if sep and token.strip() and user_id.strip():
            tokens[token.strip()] = user_id.strip()
    return tokens


@dataclass
class AuthConfig:
    """Configuration for websocket handshake authentication.

    Environment variables:
        ARCHSYNC_AUTH_TOKENS: Static tokens as ``token:user_id`` pairs, comma separated.
        ARCHSYNC_ALLOW_GUESTS: Accept a ``user_id`` query parameter without a token.
    """

    tokens: dict[str, str] = field(default_factory=lambda: parse_token_map(os.getenv("ARCHSYNC_AUTH_TOKENS", "")))
    allow_guests: bool = field(
        default_factory=lambda: os.getenv("ARCHSYNC_ALLOW_GUESTS", "false").lower() in ("true", "1", "yes")
    )
    token_query_param: str = "token"
    guest_query_param: str = "user_id"

    @property
    def tokens_enabled(self) -> bool:
        """Check if any static token is configured."""
        return bool(self.tokens)
