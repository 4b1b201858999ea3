"""Username/password registration.

Registers the device with the legacy sign-in endpoint. Credentials are
sent url-encoded; a successful response is an XML document:

    <user authenticationToken="..." ... />
"""

from __future__ import annotations

__all__ = [
    "CredentialsRegistrar",
    "register_with_credentials",
]

import logging
from dataclasses import dataclass, field
from xml.etree.ElementTree import ParseError

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.constants import APP_NAME, SIGN_IN_PATH
from plex_auth.exceptions import DecodeError
from plex_auth.token import Token

_logger = logging.getLogger(f"{APP_NAME}.auth.credentials")


async def register_with_credentials(client: AuthHTTPClient, username: str, password: str) -> Token:
    """Register the device using username/password credentials.

    Args:
        client: Auth service client.
        username: plex.tv username or email.
        password: plex.tv password.

    Returns:
        Legacy token for the registered device.

    Raises:
        AuthServiceError: If the auth service rejects the credentials
            (UnauthorizedError for bad credentials).
        DecodeError: If the response is not the expected XML document.
        TransportError / AuthTimeoutError: On network failure.
    """
    response = await client.request(
        "POST",
        client.legacy(SIGN_IN_PATH),
        expected_status=201,
        headers={"Accept": "application/xml"},
        data={"user[login]": username, "user[password]": password},
    )

    try:
        root = ET.fromstring(response.content)
    except (ParseError, DefusedXmlException) as e:
        raise DecodeError(f"decode sign-in response: {e}") from e

    if root.tag != "user":
        raise DecodeError(f"decode sign-in response: unexpected element <{root.tag}>")
    token = root.get("authenticationToken")
    if not token:
        raise DecodeError("decode sign-in response: missing authenticationToken")

    _logger.info({"event": "device_registered", "message": "Registered device with credentials"})
    return Token(token)


@dataclass
class CredentialsRegistrar:
    """Registrar that signs in with username/password."""

    client: AuthHTTPClient
    username: str
    password: str = field(repr=False)

    async def register(self) -> Token:
        return await register_with_credentials(self.client, self.username, self.password)
