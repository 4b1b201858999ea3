"""Tests for username/password registration."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from plex_auth.auth.credentials import CredentialsRegistrar, register_with_credentials
from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.config import AuthConfig
from plex_auth.exceptions import DecodeError, UnauthorizedError
from tests.conftest import LEGACY_TOKEN, FakePlexTV


class TestRegisterWithCredentials:
    """Tests for the sign-in request and response parsing."""

    async def test_valid_credentials_return_legacy_token(
        self, client: AuthHTTPClient, fake_plex: FakePlexTV
    ) -> None:
        # Act
        token = await register_with_credentials(client, fake_plex.username, fake_plex.password)

        # Assert
        assert token == LEGACY_TOKEN
        assert token.is_legacy()
        request = fake_plex.last_request("POST /users/sign_in.xml")
        form = parse_qs(request.content.decode())
        assert form["user[login]"] == [fake_plex.username]
        assert request.headers["Accept"] == "application/xml"

    async def test_bad_credentials_raise_unauthorized(self, client: AuthHTTPClient) -> None:
        # Act & Assert
        with pytest.raises(UnauthorizedError) as exc_info:
            await register_with_credentials(client, "user@example.com", "wrong")
        assert exc_info.value.codes == [1001]

    @pytest.mark.parametrize(
        "body",
        [
            b"not xml at all",
            b'<MediaContainer authenticationToken="x" />',
            b'<user id="1" />',
            b'<!DOCTYPE user [<!ENTITY e "boom">]><user authenticationToken="&e;" />',
        ],
    )
    async def test_malformed_response_raises_decode_error(self, config: AuthConfig, body: bytes) -> None:
        # Arrange
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(201, content=body)))
        client = AuthHTTPClient(config, http_client)

        # Act & Assert
        with pytest.raises(DecodeError):
            await register_with_credentials(client, "u", "p")


class TestCredentialsRegistrar:
    """Tests for the registrar wrapper."""

    async def test_register_signs_in(self, client: AuthHTTPClient, fake_plex: FakePlexTV) -> None:
        # Arrange
        registrar = CredentialsRegistrar(client, fake_plex.username, fake_plex.password)

        # Act
        token = await registrar.register()

        # Assert
        assert token == LEGACY_TOKEN

    def test_password_not_in_repr(self, client: AuthHTTPClient) -> None:
        assert "hunter2" not in repr(CredentialsRegistrar(client, "u", "hunter2"))
