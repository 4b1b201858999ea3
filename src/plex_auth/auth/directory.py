"""plex.tv directory client.

Queries the plex.tv account a token belongs to:
- registered_devices(): every device registered under the account
  (legacy XML endpoint)
- media_servers(): the registered devices that are Plex Media Servers
- user(): the account's user record; also refreshes this device's
  metadata on plex.tv

Each call obtains a credential from the configured token source. Media
server tokens are only available here: a JWT cannot access a server, but
the server's own token is listed in the directory.
"""

from __future__ import annotations

__all__ = [
    "Connection",
    "PlexTVClient",
    "RegisteredDevice",
    "Subscription",
    "User",
]

import logging
from datetime import datetime, timezone
from xml.etree.ElementTree import Element, ParseError

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.auth.protocol import TokenSource
from plex_auth.constants import APP_NAME, DEVICES_PATH, MEDIA_SERVER_PRODUCT, USER_PATH
from plex_auth.exceptions import DecodeError, InvalidTokenError, NoTokenSourceError
from plex_auth.token import Token

_logger = logging.getLogger(f"{APP_NAME}.auth.directory")


class Connection(BaseModel):
    """Address a registered device can be reached at."""

    uri: str


class RegisteredDevice(BaseModel):
    """Device registered under a plex.tv account (from /devices.xml).

    Attributes:
        token: Access token of the device. For a media server this is the
            token to access that server with.
        created_at / last_seen_at: UTC timestamps, None if not reported.
        connections: Addresses the device advertised.
    """

    name: str = ""
    product: str = ""
    product_version: str = ""
    platform: str = ""
    platform_version: str = ""
    device: str = ""
    model: str = ""
    vendor: str = ""
    provides: str = ""
    client_identifier: str = ""
    version: str = ""
    id: str = ""
    token: str = Field(default="", repr=False)
    public_address: str = ""
    created_at: datetime | None = None
    last_seen_at: datetime | None = None
    connections: list[Connection] = Field(default_factory=list)

    @property
    def is_media_server(self) -> bool:
        return self.product == MEDIA_SERVER_PRODUCT

    @classmethod
    def from_element(cls, element: Element) -> "RegisteredDevice":
        """Build from a <Device> element.

        Raises:
            DecodeError: If a timestamp attribute is not an epoch integer.
        """
        attrs = element.attrib
        return cls(
            name=attrs.get("name", ""),
            product=attrs.get("product", ""),
            product_version=attrs.get("productVersion", ""),
            platform=attrs.get("platform", ""),
            platform_version=attrs.get("platformVersion", ""),
            device=attrs.get("device", ""),
            model=attrs.get("model", ""),
            vendor=attrs.get("vendor", ""),
            provides=attrs.get("provides", ""),
            client_identifier=attrs.get("clientIdentifier", ""),
            version=attrs.get("version", ""),
            id=attrs.get("id", ""),
            token=attrs.get("token", ""),
            public_address=attrs.get("publicAddress", ""),
            created_at=_timestamp(attrs.get("createdAt")),
            last_seen_at=_timestamp(attrs.get("lastSeenAt")),
            connections=[Connection(uri=c.get("uri", "")) for c in element.findall("Connection")],
        )


def _timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as e:
        raise DecodeError(f"decode timestamp {value!r}: {e}") from e


class Subscription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    active: bool = False
    status: str = ""
    plan: str | None = None


class User(BaseModel):
    """plex.tv user record (subset of /api/v2/user)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = 0
    uuid: str = ""
    username: str = ""
    title: str = ""
    email: str = ""
    friendly_name: str = Field(default="", alias="friendlyName")
    auth_token: str = Field(default="", alias="authToken", repr=False)
    restricted: bool = False
    anonymous: bool = False
    home: bool = False
    guest: bool = False
    subscription: Subscription = Field(default_factory=Subscription)


class PlexTVClient:
    """Client for the plex.tv account directory.

    Usage:
        directory = PlexTVClient(client, token_source)
        for server in await directory.media_servers():
            print(server.name, [c.uri for c in server.connections])
    """

    def __init__(self, client: AuthHTTPClient, token_source: TokenSource | None = None) -> None:
        """Initialize client.

        Args:
            client: Auth service client.
            token_source: Supplies the account credential when a call is
                not given an explicit token.
        """
        self._client = client
        self._token_source = token_source

    async def _credential(self, token: Token | None) -> Token:
        if token is None:
            if self._token_source is None:
                raise NoTokenSourceError("directory client has no token source")
            token = await self._token_source.token()
        token = Token(token)
        if not token.is_valid():
            raise InvalidTokenError("directory requests require a valid token")
        return token

    async def registered_devices(self, token: Token | None = None) -> list[RegisteredDevice]:
        """List all devices registered under the account.

        Args:
            token: Account credential. Defaults to the token source's.

        Raises:
            InvalidTokenError: If the credential is invalid (nothing is sent).
            AuthServiceError: If plex.tv rejects the request.
            DecodeError: If the response is not a device list.
        """
        token = await self._credential(token)
        response = await self._client.request(
            "GET",
            self._client.legacy(DEVICES_PATH),
            token=token,
            headers={"Accept": "application/xml"},
        )

        try:
            root = ET.fromstring(response.content)
        except (ParseError, DefusedXmlException) as e:
            raise DecodeError(f"decode devices: {e}") from e
        if root.tag != "MediaContainer":
            raise DecodeError(f"decode devices: unexpected element <{root.tag}>")

        devices = [RegisteredDevice.from_element(element) for element in root.findall("Device")]
        _logger.debug(
            {"event": "devices_listed", "message": f"Found {len(devices)} registered devices"}
        )
        return devices

    async def media_servers(self, token: Token | None = None) -> list[RegisteredDevice]:
        """List the registered devices that are Plex Media Servers."""
        return [device for device in await self.registered_devices(token) if device.is_media_server]

    async def user(self, token: Token | None = None) -> User:
        """Fetch the account's user record.

        Also updates this device's metadata (X-Plex-* headers) on plex.tv.
        """
        token = await self._credential(token)
        data = await self._client.request_json("GET", self._client.legacy(USER_PATH), token=token)
        try:
            return User.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"decode user: {e}") from e
