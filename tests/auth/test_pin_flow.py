"""Tests for PIN registration."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.auth.pin_flow import PINFlow, PINRegistrar, PINResponse, register_with_pin
from plex_auth.config import AuthConfig
from plex_auth.exceptions import AuthTimeoutError, PINExpiredError
from tests.conftest import LEGACY_TOKEN, FakePlexTV


class TestPINFlow:
    """Tests for PIN request and validation."""

    async def test_request_pin_returns_pin_and_url(self, client: AuthHTTPClient) -> None:
        # Act
        pin, url = await PINFlow(client).request_pin()

        # Assert
        assert pin.id == 42
        assert pin.code == "ABCD"
        assert pin.expires_in == 900
        assert pin.client_identifier == "test-client-id"
        assert url == "https://plex.tv/pin?pin=ABCD"

    async def test_validate_pin_empty_until_confirmed(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        # Arrange
        fake_plex.pin_confirm_after = 2
        flow = PINFlow(client)

        # Act
        first, first_response = await flow.validate_pin(42)
        second, _ = await flow.validate_pin(42)

        # Assert
        assert first == ""
        assert first_response.auth_token is None
        assert second == LEGACY_TOKEN

    async def test_poll_retries_until_confirmed(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        # Arrange
        fake_plex.pin_confirm_after = 3
        flow = PINFlow(client)
        pin, _ = await flow.request_pin()
        polls = 0

        def on_poll() -> None:
            nonlocal polls
            polls += 1

        # Act
        token = await flow.poll_for_token(pin, poll_interval=0.01, on_poll=on_poll)

        # Assert
        assert token == LEGACY_TOKEN
        assert polls == 3

    async def test_poll_survives_service_errors(self, config: AuthConfig) -> None:
        """Given a failing validation, polling continues with the next attempt."""
        # Arrange
        responses = iter(
            [
                httpx.Response(500, json={"error": "boom"}),
                httpx.Response(200, content=b"not json"),
                httpx.Response(200, json={"id": 1, "code": "C", "authToken": LEGACY_TOKEN}),
            ]
        )
        client = AuthHTTPClient(
            config, httpx.AsyncClient(transport=httpx.MockTransport(lambda request: next(responses)))
        )
        pin = PINResponse(id=1, code="C", expires_in=900)

        # Act
        token = await PINFlow(client).poll_for_token(pin, poll_interval=0.01)

        # Assert
        assert token == LEGACY_TOKEN

    async def test_expired_pin_raises(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        """Given a PIN lifetime shorter than the wait, polling stops with PINExpiredError."""
        # Arrange
        fake_plex.pin_confirm_after = None
        pin = PINResponse(id=42, code="ABCD", expires_in=1)

        # Act & Assert
        with pytest.raises(PINExpiredError):
            await PINFlow(client).poll_for_token(pin, poll_interval=0.2)

    async def test_pin_not_found_raises_expired(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        # Arrange
        fake_plex.pin_gone = True
        pin = PINResponse(id=42, code="ABCD", expires_in=900)

        # Act & Assert
        with pytest.raises(PINExpiredError):
            await PINFlow(client).poll_for_token(pin, poll_interval=0.01)


class TestRegisterWithPIN:
    """Tests for the full PIN registration."""

    async def test_callback_receives_pin_and_url(self, client: AuthHTTPClient) -> None:
        # Arrange
        received: list[tuple[PINResponse, str]] = []

        # Act
        token = await register_with_pin(client, lambda pin, url: received.append((pin, url)), poll_interval=0.01)

        # Assert
        assert token == LEGACY_TOKEN
        assert received[0][0].code == "ABCD"
        assert received[0][1] == "https://plex.tv/pin?pin=ABCD"

    async def test_async_callback_is_awaited(self, client: AuthHTTPClient) -> None:
        # Arrange
        shown = asyncio.Event()

        async def show(pin: PINResponse, url: str) -> None:
            shown.set()

        # Act
        await register_with_pin(client, show, poll_interval=0.01)

        # Assert
        assert shown.is_set()

    async def test_timeout_stops_polling_promptly(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        """Given an unconfirmed PIN and a 500ms deadline, registration fails fast."""
        # Arrange
        fake_plex.pin_confirm_after = None
        start = time.monotonic()

        # Act
        with pytest.raises(AuthTimeoutError):
            await register_with_pin(client, lambda pin, url: None, poll_interval=0.1, timeout=0.5)

        # Assert
        elapsed = time.monotonic() - start
        assert elapsed < 1.5
        assert 3 <= fake_plex.pin_polls <= 7

    async def test_caller_timeout_interrupts_wait(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        """Given a long poll interval, an outer asyncio.timeout still ends the wait."""
        # Arrange
        fake_plex.pin_confirm_after = None
        start = time.monotonic()

        # Act
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.2):
                await register_with_pin(client, lambda pin, url: None, poll_interval=30)

        # Assert
        assert time.monotonic() - start < 1.0
        assert fake_plex.pin_polls == 1

    async def test_registrar_runs_pin_flow(self, client: AuthHTTPClient) -> None:
        # Arrange
        registrar = PINRegistrar(client, lambda pin, url: None, poll_interval=0.01)

        # Act
        token = await registrar.register()

        # Assert
        assert token == LEGACY_TOKEN
