"""Delegated handshake authenticators.

The relay never manages identities itself. An :class:`Authenticator` turns the
credentials presented on the websocket handshake into a verified user ID or
rejects them with :class:`~archsync.exceptions.AuthFailedError`.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from archsync.auth.config import AuthConfig
from archsync.exceptions import AuthFailedError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = structlog.get_logger(__name__)


@dataclass
class HandshakeCredentials:
    """Credentials presented by a client when it connects.

    Attributes:
        token: Bearer token from the query string or ``Authorization`` header.
        user_id: Self-declared user ID, only honoured for guests.
        client_ip: Remote address, for logging.
    """

    token: str | None = None
    user_id: str | None = None
    client_ip: str | None = None

    @classmethod
    def from_handshake(
        cls,
        query: Mapping[str, str],
        headers: Mapping[str, str],
        client_ip: str | None = None,
        config: AuthConfig | None = None,
    ) -> HandshakeCredentials:
        """Build credentials from handshake query parameters and headers.

        Args:
            query: The websocket URL's query parameters.
            headers: The handshake request headers.
            client_ip: Remote address.
            config: Parameter names to read. Defaults to :class:`AuthConfig`.

        Returns:
            The extracted credentials.
        """
        config = config or AuthConfig()
        token = query.get(config.token_query_param)
        if not token:
            authorization = headers.get("authorization", "")
            scheme, _, value = authorization.partition(" ")
            if scheme.lower() == "bearer" and value.strip():
                token = value.strip()
        return cls(
            token=token or None,
            user_id=query.get(config.guest_query_param) or None,
            client_ip=client_ip,
        )


@runtime_checkable
class Authenticator(Protocol):
    """Verifies handshake credentials."""

    async def authenticate(self, credentials: HandshakeCredentials) -> str:
        """Return the verified user ID.

        Raises:
            AuthFailedError: If the credentials are rejected.
        """
        ...


class TokenAuthenticator:
    """Accepts a fixed set of bearer tokens, each bound to one user ID."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        """Initialize the authenticator.

        Args:
            tokens: Mapping of token to user ID.
        """
        self._tokens = dict(tokens)

    async def authenticate(self, credentials: HandshakeCredentials) -> str:
        """Look up the user bound to the presented token."""
        if not credentials.token:
            msg = "Missing token"
            raise AuthFailedError(msg)
        for token, user_id in self._tokens.items():
            if hmac.compare_digest(token.encode(), credentials.token.encode()):
                return user_id
        logger.info("Rejected handshake token", client_ip=credentials.client_ip)
        msg = "Invalid token"
        raise AuthFailedError(msg)


class GuestAuthenticator:
    """Trusts a self-declared user ID. Intended for local development."""

    async def authenticate(self, credentials: HandshakeCredentials) -> str:
        """Return the declared user ID."""
        user_id = (credentials.user_id or "").strip()
        if not user_id:
            msg = "Missing user_id"
            raise AuthFailedError(msg)
        return f"guest:{user_id}"


class DenyAllAuthenticator:
    """Rejects every handshake; used when no authenticator is configured."""

    async def authenticate(self, credentials: HandshakeCredentials) -> str:
        """Always reject."""
        msg = "No authenticator configured"
        raise AuthFailedError(msg)


class ChainAuthenticator:
    """Tries several authenticators in order and returns the first success."""

    def __init__(self, authenticators: Sequence[Authenticator]) -> None:
        """Initialize the chain.

        Args:
            authenticators: Authenticators to try, in order.
        """
        self._authenticators = list(authenticators)

    async def authenticate(self, credentials: HandshakeCredentials) -> str:
        """Return the user ID from the first authenticator that accepts."""
        last_error = AuthFailedError()
        for authenticator in self._authenticators:
            try:
                return await authenticator.authenticate(credentials)
            except AuthFailedError as e:
                last_error = e
        raise last_error


def create_authenticator(config: AuthConfig | None = None) -> Authenticator:
    """Build the authenticator described by ``config``.

    Token authentication is tried before guest access when both are enabled.

    Args:
        config: Authentication settings. Loaded from the environment if None.

    Returns:
        The configured authenticator.
    """
    config = config or AuthConfig()
    authenticators: list[Authenticator] = []
    if config.tokens_enabled:
        authenticators.append(TokenAuthenticator(config.tokens))
    if config.allow_guests:
        authenticators.append(GuestAuthenticator())

    if not authenticators:
        logger.warning("No handshake authenticator configured, all connections will be rejected")
        return DenyAllAuthenticator()
    if len(authenticators) == 1:
        return authenticators[0]
    return ChainAuthenticator(authenticators)
