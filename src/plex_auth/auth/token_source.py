"""Token sources and their composition.

Every source implements TokenSource (async token()). Sources are composed
by wrapping:

    CachingTokenSource
      -> [ServerTokenSource]         media server token from the directory
        -> JWTTokenSource            if a secure data store is configured
          -> RegistrarTokenSource    credentials or PIN registration

create_token_source() builds this chain from the configured options. A
fixed token short-circuits it entirely.
"""

from __future__ import annotations

__all__ = [
    "CachingTokenSource",
    "FixedTokenSource",
    "RegistrarTokenSource",
    "ServerTokenSource",
    "TokenSource",
    "create_token_source",
]

import asyncio
import logging

import httpx

from plex_auth.auth.directory import PlexTVClient
from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.auth.jwt_flow import JWTTokenSource
from plex_auth.auth.protocol import Registrar, TokenSource
from plex_auth.config import AuthConfig
from plex_auth.constants import APP_NAME
from plex_auth.exceptions import NoTokenSourceError, ServerNotFoundError
from plex_auth.storage.secure_data import SecureDataStore
from plex_auth.token import Token

_logger = logging.getLogger(f"{APP_NAME}.auth.token_source")


class FixedTokenSource:
    """Always returns the same token."""

    def __init__(self, token: str) -> None:
        self._token = Token(token)

    async def token(self) -> Token:
        return self._token


class RegistrarTokenSource:
    """Registers the device on every call. Wrap in CachingTokenSource."""

    def __init__(self, registrar: Registrar) -> None:
        self._registrar = registrar

    async def token(self) -> Token:
        return Token(await self._registrar.register())


def _consume_exception(task: asyncio.Task[Token]) -> None:
    # Failures are delivered to the waiting callers; mark them retrieved
    # in case every caller was cancelled.
    if not task.cancelled():
        task.exception()


class CachingTokenSource:
    """Caches the token of an inner source while it is valid.

    Concurrent callers that find no valid token share a single fetch and
    all observe its outcome. A successful token is cached; a failure is
    not, so the next call fetches again. A caller cancelled while waiting
    does not cancel the shared fetch while other callers still wait for
    it; when the last waiting caller leaves, the fetch is cancelled.
    """

    def __init__(self, inner: TokenSource) -> None:
        self._inner = inner
        self._token: Token | None = None
        self._inflight: asyncio.Task[Token] | None = None
        self._waiters = 0
        self._lock = asyncio.Lock()

    async def token(self) -> Token:
        async with self._lock:
            if self._token is not None and self._token.is_valid():
                return self._token
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._fetch())
                self._inflight.add_done_callback(_consume_exception)
                self._waiters = 0
            task = self._inflight
            self._waiters += 1
        try:
            return await asyncio.shield(task)
        finally:
            self._leave(task)

    def _leave(self, task: asyncio.Task[Token]) -> None:
        if task is not self._inflight:
            return
        self._waiters -= 1
        if self._waiters == 0 and not task.done():
            _logger.debug(
                {
                    "event": "token_fetch_abandoned",
                    "message": "All callers left, cancelling token fetch",
                }
            )
            self._inflight = None
            task.cancel()

    async def _fetch(self) -> Token:
        try:
            token = Token(await self._inner.token())
            self._token = token
            return token
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None


class ServerTokenSource:
    """Returns the access token of a Plex Media Server.

    Each call gets an account credential from inner, lists the account's
    media servers and returns the token of the one named server_name (the
    first server if server_name is ""). The directory is not cached.
    """

    def __init__(self, inner: TokenSource, directory: PlexTVClient, server_name: str = "") -> None:
        self._inner = inner
        self._directory = directory
        self._server_name = server_name

    async def token(self) -> Token:
        """Resolve the media server token.

        Raises:
            ServerNotFoundError: If no matching media server is registered.
        """
        credential = await self._inner.token()
        servers = await self._directory.media_servers(credential)
        for server in servers:
            if not self._server_name or server.name == self._server_name:
                _logger.debug(
                    {
                        "event": "server_token_resolved",
                        "message": f"Resolved token for media server {server.name!r}",
                        "client_identifier": server.client_identifier,
                    }
                )
                return Token(server.token)
        raise ServerNotFoundError(self._server_name)


def create_token_source(
    config: AuthConfig,
    *,
    token: str | None = None,
    registrar: Registrar | None = None,
    secure_store: SecureDataStore | None = None,
    media_server: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    logger: logging.Logger | None = None,
) -> TokenSource:
    """Build a token source from the configured options.

    Args:
        config: Auth configuration.
        token: Fixed token. When set, all other options are ignored.
        registrar: Registers the device (CredentialsRegistrar, PINRegistrar).
        secure_store: Enables JWT authentication, persisting key material here.
        media_server: Return the token of this media server instead of the
            account token ("" selects the first server).
        http_client: httpx client for auth service requests.
        logger: Logger for JWT setup events.

    Returns:
        FixedTokenSource for a fixed token, otherwise a CachingTokenSource
        wrapping [ServerTokenSource ->] JWTTokenSource / RegistrarTokenSource.

    Raises:
        NoTokenSourceError: If neither token, registrar nor secure store is given.

    Example:
        client = AuthHTTPClient(config)
        source = create_token_source(
            config,
            registrar=PINRegistrar(client, show_pin),
            secure_store=create_secure_data_store(config),
        )
        token = await source.token()
    """
    if token:
        return FixedTokenSource(token)

    source: TokenSource
    if secure_store is not None:
        client = AuthHTTPClient(config, http_client)
        source = JWTTokenSource(client, secure_store, registrar=registrar, logger=logger)
    elif registrar is not None:
        client = AuthHTTPClient(config, http_client)
        source = RegistrarTokenSource(registrar)
    else:
        raise NoTokenSourceError("configure a token, a registrar or a secure data store")

    if media_server is not None:
        source = ServerTokenSource(source, PlexTVClient(client), media_server)

    return CachingTokenSource(source)
