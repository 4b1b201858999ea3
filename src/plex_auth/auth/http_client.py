"""HTTP client for the Plex auth service.

Wraps an httpx.AsyncClient with the behavior every auth service call
shares:
- client identifier and device identity headers on every request
- optional credential header (X-Plex-Token)
- exact status check, with non-matching responses decoded into
  AuthServiceError subclasses
- httpx failures mapped to TransportError / AuthTimeoutError

The httpx client is passed in explicitly (e.g. with a MockTransport for
tests). If none is given, one is created and owned by this instance.
"""

from __future__ import annotations

__all__ = [
    "USER_AGENT",
    "AuthHTTPClient",
]

import json
import logging
from typing import Any

import httpx

from plex_auth import __version__
from plex_auth.config import AuthConfig
from plex_auth.constants import APP_NAME, CLIENT_ID_HEADER, TOKEN_HEADER
from plex_auth.exceptions import (
    AuthServiceError,
    AuthTimeoutError,
    DecodeError,
    TransportError,
)
from plex_auth.token import Token

# User-Agent header for auth service requests (informational)
USER_AGENT = f"{APP_NAME}/{__version__}"

_logger = logging.getLogger(f"{APP_NAME}.auth.http")


class AuthHTTPClient:
    """Sends requests to the auth service on behalf of one configuration.

    Usage:
        async with AuthHTTPClient(config) as client:
            response = await client.request("GET", client.v2("/api/v2/auth/nonce"))
    """

    def __init__(
        self,
        config: AuthConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            config: Auth configuration (endpoints, client ID, device).
            http_client: Optional httpx client (for testing or custom transports).
        """
        self._config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.http_timeout_seconds)
        self._owns_client = http_client is None

    @property
    def config(self) -> AuthConfig:
        return self._config

    async def __aenter__(self) -> "AuthHTTPClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    def legacy(self, path: str) -> str:
        """URL of a legacy endpoint."""
        return self._config.url.rstrip("/") + path

    def v2(self, path: str) -> str:
        """URL of a v2 endpoint."""
        return self._config.v2_url.rstrip("/") + path

    def _headers(self, token: Token | None, extra: dict[str, str] | None) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Language": "en-US",
            "User-Agent": USER_AGENT,
            CLIENT_ID_HEADER: self._config.client_id,
        }
        headers.update(self._config.device.headers())
        if token:
            headers[TOKEN_HEADER] = str(token)
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        url: str,
        *,
        expected_status: int = 200,
        token: Token | None = None,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """Send a request and check its status.

        Args:
            method: HTTP method.
            url: Absolute URL (see legacy() / v2()).
            expected_status: The only status treated as success.
            token: Credential to send as X-Plex-Token.
            headers: Additional headers (override defaults).
            data: Form fields (sent url-encoded).
            json_body: JSON body.

        Returns:
            The response, with its body read.

        Raises:
            AuthTimeoutError: If the request timed out.
            TransportError: If the auth service could not be reached.
            AuthServiceError: If the status differs from expected_status.
        """
        try:
            response = await self._client.request(
                method,
                url,
                headers=self._headers(token, headers),
                data=data,
                json=json_body,
            )
        except httpx.TimeoutException as e:
            raise AuthTimeoutError(f"{method} {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {type(e).__name__}: {e}") from e

        if response.status_code != expected_status:
            error = AuthServiceError.from_response(response)
            _logger.debug(
                {
                    "event": "auth_service_rejected",
                    "message": f"{method} {url}: {error.reason}",
                    "status_code": error.status_code,
                    "error_type": type(error).__name__,
                }
            )
            raise error
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            DecodeError: If the body is not valid JSON.
            (plus everything request() raises)
        """
        response = await self.request(method, url, **kwargs)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"decode {url}: {e}") from e
