"""Handshake authentication for archsync."""

from __future__ import annotations

from archsync.auth.config import AuthConfig
from archsync.auth.service import (
    Authenticator,
    ChainAuthenticator,
    DenyAllAuthenticator,
    GuestAuthenticator,
    HandshakeCredentials,
    TokenAuthenticator,
    create_authenticator,
)

__all__ = [
    "AuthConfig",
    "Authenticator",
    "ChainAuthenticator",
    "DenyAllAuthenticator",
    "GuestAuthenticator",
    "HandshakeCredentials",
    "TokenAuthenticator",
    "create_authenticator",
]
