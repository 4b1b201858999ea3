"""PIN registration flow.

Registers the device without handling the user's password. The user
confirms a short code out-of-band (browser, another device) while this
client polls the auth service.

Flow:
1. Request a PIN (Requested)
2. Hand the code and confirmation URL to the caller's callback
3. Poll the PIN until it carries a token (Polling -> Confirmed)
4. Stop when the PIN expires (Expired) or the caller's deadline or
   cancellation fires (Cancelled)

The wait between polls is an asyncio.sleep(), so cancellation interrupts
it immediately.
"""

from __future__ import annotations

__all__ = [
    "PINCallback",
    "PINFlow",
    "PINRegistrar",
    "PINResponse",
    "ValidatePINResponse",
    "register_with_pin",
]

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.constants import APP_NAME, DEFAULT_PIN_POLL_INTERVAL_SECONDS, PINS_PATH
from plex_auth.exceptions import (
    AuthServiceError,
    AuthTimeoutError,
    DecodeError,
    PINExpiredError,
    TransportError,
)
from plex_auth.token import Token

_logger = logging.getLogger(f"{APP_NAME}.auth.pin")

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class PINResponse(BaseModel):
    """Response to a PIN request.

    Attributes:
        id: PIN identifier used for polling (don't show to user).
        code: Code the user confirms.
        expires_in: Seconds until the PIN expires (0 if not reported).
        client_identifier: Client ID the PIN was issued to.
        trusted: Whether the PIN was requested as a trusted (strong) PIN.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    code: str
    expires_in: int = Field(default=0, alias="expiresIn")
    client_identifier: str = Field(default="", alias="clientIdentifier")
    trusted: bool = False


class ValidatePINResponse(PINResponse):
    """Current state of a PIN. auth_token is set once the user confirmed it."""

    auth_token: str | None = Field(default=None, alias="authToken")


PINCallback = Callable[[PINResponse, str], "Awaitable[None] | None"]


def _decode(model: type[_ModelT], data: object, what: str) -> _ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"decode {what}: {e}") from e


class PINFlow:
    """PIN request/validation against the auth service.

    Usage:
        flow = PINFlow(client)
        pin, url = await flow.request_pin()
        print(f"Go to {url}")
        token = await flow.poll_for_token(pin, poll_interval=5)
    """

    def __init__(self, client: AuthHTTPClient) -> None:
        self._client = client

    async def request_pin(self) -> tuple[PINResponse, str]:
        """Request a new PIN.

        Returns:
            The PIN and the URL where the user confirms it.

        Raises:
            AuthServiceError: If the auth service refuses the request.
            DecodeError: If the response is malformed.
        """
        data = await self._client.request_json("POST", self._client.v2(PINS_PATH), expected_status=201)
        pin = _decode(PINResponse, data, "pin request")
        pin_url = f"{self._client.config.pin_url.rstrip('/')}/pin?pin={pin.code}"
        return pin, pin_url

    async def validate_pin(self, pin_id: int) -> tuple[Token, ValidatePINResponse]:
        """Check whether the user has confirmed a PIN.

        Returns:
            The token (empty until confirmed) and the full PIN state.
        """
        data = await self._client.request_json("GET", self._client.v2(f"{PINS_PATH}/{pin_id}"))
        response = _decode(ValidatePINResponse, data, "pin validation")
        return Token(response.auth_token or ""), response

    async def poll_for_token(
        self,
        pin: PINResponse,
        poll_interval: float | None = None,
        on_poll: Callable[[], None] | None = None,
    ) -> Token:
        """Poll until the PIN is confirmed.

        Failed or empty validation responses are retried after
        poll_interval. This loop has no deadline of its own besides the
        PIN's lifetime; wrap it in asyncio.timeout() to bound it.

        Args:
            pin: PIN from request_pin().
            poll_interval: Seconds between polls (default 15).
            on_poll: Optional callback called before each poll.

        Returns:
            Token issued for the confirmed PIN.

        Raises:
            PINExpiredError: If the PIN expired before it was confirmed.
        """
        interval = poll_interval or DEFAULT_PIN_POLL_INTERVAL_SECONDS
        deadline = time.monotonic() + pin.expires_in if pin.expires_in > 0 else None
        attempt = 0

        while True:
            attempt += 1
            if on_poll:
                on_poll()

            token = Token("")
            try:
                token, _ = await self.validate_pin(pin.id)
            except AuthServiceError as e:
                if e.status_code == 404:
                    raise PINExpiredError(f"PIN {pin.code} no longer exists") from e
                _logger.debug(
                    {
                        "event": "pin_poll_failed",
                        "message": f"PIN validation rejected: {e.reason}",
                        "attempt": attempt,
                        "status_code": e.status_code,
                    }
                )
            except (TransportError, AuthTimeoutError, DecodeError) as e:
                _logger.debug(
                    {
                        "event": "pin_poll_failed",
                        "message": f"PIN validation failed: {e}",
                        "attempt": attempt,
                        "error_type": type(e).__name__,
                    }
                )

            if token.is_valid():
                _logger.info(
                    {
                        "event": "pin_confirmed",
                        "message": "PIN confirmed",
                        "attempt": attempt,
                    }
                )
                return token

            if deadline is not None and time.monotonic() >= deadline:
                raise PINExpiredError(f"PIN {pin.code} expired after {pin.expires_in} seconds")

            await asyncio.sleep(interval)


async def register_with_pin(
    client: AuthHTTPClient,
    callback: PINCallback,
    poll_interval: float | None = None,
    timeout: float | None = None,
) -> Token:
    """Register the device using the PIN flow.

    Requests a PIN, calls callback(pin, url) so the caller can show the
    user where to confirm it, then blocks until the PIN is confirmed.

    Args:
        client: Auth service client.
        callback: Called once with the PIN and confirmation URL. May be a
            coroutine function.
        poll_interval: Seconds between polls (default 15).
        timeout: Overall deadline in seconds. None waits until the PIN
            expires or the calling task is cancelled.

    Returns:
        Legacy token for the registered device.

    Raises:
        AuthTimeoutError: If timeout elapsed before confirmation.
        PINExpiredError: If the PIN expired before confirmation.
        AuthServiceError / DecodeError: If requesting the PIN failed.

    Example:
        def show(pin, url):
            print(f"Confirm code {pin.code} at {url}")

        token = await register_with_pin(client, show, poll_interval=5, timeout=300)
    """
    flow = PINFlow(client)
    try:
        async with asyncio.timeout(timeout):
            pin, pin_url = await flow.request_pin()
            _logger.info(
                {
                    "event": "pin_requested",
                    "message": f"Waiting for PIN confirmation at {pin_url}",
                    "expires_in": pin.expires_in,
                }
            )
            result = callback(pin, pin_url)
            if inspect.isawaitable(result):
                await result
            return await flow.poll_for_token(pin, poll_interval)
    except AuthTimeoutError:
        raise
    except TimeoutError as e:
        raise AuthTimeoutError(f"PIN not confirmed within {timeout} seconds") from e


@dataclass
class PINRegistrar:
    """Registrar that runs the PIN flow."""

    client: AuthHTTPClient
    callback: PINCallback
    poll_interval: float | None = None
    timeout: float | None = None

    async def register(self) -> Token:
        return await register_with_pin(self.client, self.callback, self.poll_interval, self.timeout)
