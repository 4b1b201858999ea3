"""Shared fixtures: an in-memory plex.tv served through httpx.MockTransport.

FakePlexTV implements the endpoints the package talks to and keeps enough
state to check the protocol end to end:
- sign-in accepts one username/password and returns a legacy token
- PINs are confirmed after a configurable number of polls
- uploaded JWKs are kept per client ID; assertions are verified against them
- issued JWTs and the legacy token are accepted as X-Plex-Token
"""

from __future__ import annotations

import base64
import json
import time
import uuid
from collections import Counter
from typing import Any, AsyncIterator
from urllib.parse import parse_qs

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.config import AuthConfig, Device

LEGACY_TOKEN = "legacy-token-0000001"
SERVER1_TOKEN = "srv1-token-000000001"
SERVER2_TOKEN = "srv2-token-000000002"
CLIENT_TOKEN = "phone-token-00000003"

DEVICES_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<MediaContainer publicAddress="203.0.113.7">
  <Device name="phone" product="Plex for iOS" productVersion="8.0" clientIdentifier="phone-id"
          token="{CLIENT_TOKEN}" createdAt="1700000000" lastSeenAt="1700000500" />
  <Device name="srv1" product="Plex Media Server" productVersion="1.40.0" platform="Linux"
          clientIdentifier="srv1-id" token="{SERVER1_TOKEN}" publicAddress="203.0.113.7"
          createdAt="1700000000" lastSeenAt="1700000100">
    <Connection uri="http://192.168.0.10:32400" />
    <Connection uri="https://203.0.113.7:32400" />
  </Device>
  <Device name="srv2" product="Plex Media Server" clientIdentifier="srv2-id"
          token="{SERVER2_TOKEN}" createdAt="1700000000" lastSeenAt="1700000200" />
</MediaContainer>
"""


def _error(status: int, code: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"errors": [{"code": code, "message": message, "status": status}]})


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


class FakePlexTV:
    """In-memory plex.tv."""

    def __init__(self) -> None:
        self.username = "user@example.com"
        self.password = "secret"
        self.valid_tokens: set[str] = {LEGACY_TOKEN}

        # PIN flow: None means never confirmed
        self.pin_confirm_after: int | None = 1
        self.pin_expires_in = 900
        self.pin_gone = False
        self.pin_polls = 0

        # JWT flow
        self.jwks: dict[str, dict[str, dict[str, str]]] = {}
        self.fail_jwk_upload = False
        self.nonces: set[str] = set()
        self.token_ttl = 3600
        self.exchange_response: httpx.Response | None = None
        self._jwt_secret = "fake-plex-tv-signing-secret-0123456789"

        self.requests: list[httpx.Request] = []
        self.calls: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = f"{request.method} {request.url.path}"
        self.calls[route] += 1

        if route == "POST /users/sign_in.xml":
            return self._sign_in(request)
        if route == "POST /api/v2/pins":
            return self._request_pin(request)
        if request.method == "GET" and request.url.path.startswith("/api/v2/pins/"):
            return self._validate_pin(request)
        if route == "POST /api/v2/auth/jwk":
            return self._upload_jwk(request)
        if route == "GET /api/v2/auth/nonce":
            return self._nonce()
        if route == "POST /api/v2/auth/token":
            return self._exchange(request)
        if route == "GET /devices.xml":
            return self._devices(request)
        if route == "GET /api/v2/user":
            return self._user(request)
        return httpx.Response(404, json={"error": "not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def last_request(self, route: str) -> httpx.Request:
        method, path = route.split(" ", 1)
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return request
        raise AssertionError(f"no request for {route}")

    def _authorized(self, request: httpx.Request) -> bool:
        return request.headers.get("X-Plex-Token", "") in self.valid_tokens

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def _sign_in(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        if form.get("user[login]") != [self.username] or form.get("user[password]") != [self.password]:
            return _error(401, 1001, "User could not be authenticated")
        body = f'<?xml version="1.0" encoding="UTF-8"?>\n<user id="1" authenticationToken="{LEGACY_TOKEN}" />'
        return httpx.Response(201, content=body.encode(), headers={"Content-Type": "application/xml"})

    def _request_pin(self, request: httpx.Request) -> httpx.Response:
        self.pin_polls = 0
        return httpx.Response(
            201,
            json={
                "id": 42,
                "code": "ABCD",
                "expiresIn": self.pin_expires_in,
                "clientIdentifier": request.headers.get("X-Plex-Client-Identifier", ""),
                "trusted": False,
                "authToken": None,
            },
        )

    def _validate_pin(self, request: httpx.Request) -> httpx.Response:
        if self.pin_gone:
            return httpx.Response(404, json={"errors": [{"code": 1020, "message": "Code not found or expired"}]})
        self.pin_polls += 1
        confirmed = self.pin_confirm_after is not None and self.pin_polls >= self.pin_confirm_after
        return httpx.Response(
            200,
            json={
                "id": 42,
                "code": "ABCD",
                "expiresIn": self.pin_expires_in,
                "authToken": LEGACY_TOKEN if confirmed else None,
            },
        )

    def _upload_jwk(self, request: httpx.Request) -> httpx.Response:
        if not self._authorized(request):
            return _error(401, 1001, "User could not be authenticated")
        if self.fail_jwk_upload:
            return httpx.Response(500, json={"error": "internal error"})
        jwk = json.loads(request.content)["jwk"]
        client_id = request.headers["X-Plex-Client-Identifier"]
        self.jwks.setdefault(client_id, {})[jwk["kid"]] = jwk
        return httpx.Response(201)

    def _nonce(self) -> httpx.Response:
        nonce = str(uuid.uuid4())
        self.nonces.add(nonce)
        return httpx.Response(200, json={"nonce": nonce})

    def _exchange(self, request: httpx.Request) -> httpx.Response:
        if self.exchange_response is not None:
            return self.exchange_response

        assertion = json.loads(request.content)["jwt"]
        client_id = request.headers["X-Plex-Client-Identifier"]
        kid = jwt.get_unverified_header(assertion).get("kid", "")
        jwk = self.jwks.get(client_id, {}).get(kid)
        if jwk is None:
            return _error(498, 1097, "Could not find JWK")

        public_key = Ed25519PublicKey.from_public_bytes(_b64url_decode(jwk["x"]))
        try:
            claims = jwt.decode(assertion, public_key, algorithms=["EdDSA"], audience="plex.tv", issuer=client_id)
        except jwt.PyJWTError as e:
            return httpx.Response(401, json={"error": f"invalid assertion: {e}"})
        if claims.get("nonce") not in self.nonces:
            return httpx.Response(401, json={"error": "invalid nonce"})
        self.nonces.discard(claims["nonce"])

        now = int(time.time())
        token = jwt.encode(
            {"iat": now, "exp": now + self.token_ttl, "jti": str(uuid.uuid4()), "scope": claims["scope"]},
            self._jwt_secret,
            algorithm="HS256",
        )
        self.valid_tokens.add(token)
        return httpx.Response(200, json={"auth_token": token})

    def _devices(self, request: httpx.Request) -> httpx.Response:
        if not self._authorized(request):
            return _error(401, 1001, "User could not be authenticated")
        return httpx.Response(200, content=DEVICES_XML.encode(), headers={"Content-Type": "application/xml"})

    def _user(self, request: httpx.Request) -> httpx.Response:
        if not self._authorized(request):
            return _error(401, 1001, "User could not be authenticated")
        body: dict[str, Any] = {
            "id": 1,
            "uuid": "abc123",
            "username": "user",
            "title": "User",
            "email": self.username,
            "friendlyName": "Plex User",
            "authToken": LEGACY_TOKEN,
            "home": True,
            "subscription": {"active": True, "status": "Active", "plan": "lifetime", "features": []},
            "profile": {"autoSelectAudio": True},
        }
        return httpx.Response(200, json=body)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_plex() -> FakePlexTV:
    """Fresh fake plex.tv per test."""
    return FakePlexTV()


@pytest.fixture
def config() -> AuthConfig:
    """Configuration with a fixed client ID and a device identity."""
    return AuthConfig(
        client_id="test-client-id",
        device=Device(product="plex-auth-tests", version="1.0", device_name="pytest"),
    )


@pytest.fixture
async def http_client(fake_plex: FakePlexTV) -> AsyncIterator[httpx.AsyncClient]:
    """httpx client routed to the fake plex.tv."""
    async with httpx.AsyncClient(transport=fake_plex.transport()) as client:
        yield client


@pytest.fixture
def client(config: AuthConfig, http_client: httpx.AsyncClient) -> AuthHTTPClient:
    """Auth service client routed to the fake plex.tv."""
    return AuthHTTPClient(config, http_client)


@pytest.fixture
def make_jwt():
    """Factory for unsigned-checked JWTs with arbitrary claims."""

    def _make(**claims: Any) -> str:
        return jwt.encode(claims, "test-secret-key-that-is-long-enough-32b", algorithm="HS256")

    return _make
