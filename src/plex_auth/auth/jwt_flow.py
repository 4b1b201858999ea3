"""Device-bound JWT authentication.

After a one-time registration (credentials or PIN), a device can mint
short-lived JWTs without user interaction:

Setup (once per client ID):
1. Generate an Ed25519 keypair
2. Upload the public key as a JWK, authenticated with the registration token
3. Persist {key_id, client_id, private_key} in the secure data store

Every token request:
4. Fetch a nonce
5. Sign an assertion {nonce, scope, aud, iss=client_id} with the private key
6. Exchange the assertion for a JWT

Once a JWT was issued for a client ID, the auth service refuses new
registrations for it. Losing the secure data therefore means a new client
ID. A JWT cannot be used to access a media server directly; resolve a
server token with ServerTokenSource.
"""

from __future__ import annotations

__all__ = [
    "JWTTokenSource",
    "exchange_assertion",
    "generate_and_upload_public_key",
    "generate_key_id",
    "public_key_to_jwk",
    "request_jwt_token",
    "request_nonce",
    "sign_assertion",
    "upload_public_key",
]

import asyncio
import base64
import hashlib
import json
import logging
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.auth.protocol import Registrar
from plex_auth.config import AuthConfig
from plex_auth.constants import (
    APP_NAME,
    JWK_PATH,
    JWT_SIGNING_ALGORITHM,
    NONCE_PATH,
    TOKEN_PATH,
)
from plex_auth.exceptions import (
    DecodeError,
    InvalidClientIDError,
    InvalidTokenError,
    NoTokenSourceError,
    PlexAuthError,
    VaultNotFoundError,
)
from plex_auth.storage.secure_data import SecureData, SecureDataStore
from plex_auth.token import Token
from plex_auth.utils.once import UntilSuccessful

_logger = logging.getLogger(f"{APP_NAME}.auth.jwt")


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _public_x(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return _b64url(raw)


# =============================================================================
# Keys
# =============================================================================


def generate_key_id(public_key: Ed25519PublicKey) -> str:
    """Key ID of a public key: its RFC 7638 JWK thumbprint (SHA-256, base64url)."""
    # Required members only, lexicographic order, no whitespace
    members = {"crv": "Ed25519", "kty": "OKP", "x": _public_x(public_key)}
    canonical = json.dumps(members, separators=(",", ":"), sort_keys=True)
    return _b64url(hashlib.sha256(canonical.encode("utf-8")).digest())


def public_key_to_jwk(public_key: Ed25519PublicKey, key_id: str) -> dict[str, str]:
    """Public JWK of an Ed25519 key, marked for EdDSA signature verification."""
    return {
        "kty": "OKP",
        "crv": "Ed25519",
        "x": _public_x(public_key),
        "kid": key_id,
        "use": "sig",
        "alg": JWT_SIGNING_ALGORITHM,
    }


async def upload_public_key(client: AuthHTTPClient, public_key: Ed25519PublicKey, token: Token) -> str:
    """Register a public key with the auth service.

    Args:
        client: Auth service client.
        public_key: Key that will verify this device's assertions.
        token: Valid token of the device (from a registrar or a previous JWT).

    Returns:
        Key ID of the uploaded key.

    Raises:
        InvalidTokenError: If token is not valid (nothing is sent).
        AuthServiceError: If the auth service rejects the key.
    """
    if not token.is_valid():
        raise InvalidTokenError("uploading a public key requires a valid token")

    key_id = generate_key_id(public_key)
    await client.request(
        "POST",
        client.v2(JWK_PATH),
        expected_status=201,
        token=token,
        json_body={"jwk": public_key_to_jwk(public_key, key_id)},
    )
    _logger.debug({"event": "public_key_uploaded", "message": "Uploaded public key", "key_id": key_id})
    return key_id


async def generate_and_upload_public_key(client: AuthHTTPClient, token: Token) -> tuple[Ed25519PrivateKey, str]:
    """Generate an Ed25519 keypair and upload its public key.

    Returns:
        The private key and the uploaded public key's ID.
    """
    private_key = Ed25519PrivateKey.generate()
    key_id = await upload_public_key(client, private_key.public_key(), token)
    return private_key, key_id


# =============================================================================
# Token requests
# =============================================================================


async def request_nonce(client: AuthHTTPClient) -> str:
    """Fetch a single-use nonce for the next assertion."""
    data = await client.request_json("GET", client.v2(NONCE_PATH))
    if not isinstance(data, dict) or not isinstance(data.get("nonce"), str):
        raise DecodeError("decode nonce: missing nonce")
    return data["nonce"]


def sign_assertion(config: AuthConfig, private_key: Ed25519PrivateKey, key_id: str, nonce: str) -> str:
    """Build and sign the assertion exchanged for a JWT.

    Claims: nonce, scope (comma-joined scopes), aud, iss (client ID).
    The kid header names the public key that verifies the signature.
    """
    claims: dict[str, Any] = {
        "nonce": nonce,
        "scope": ",".join(config.scopes),
        "aud": config.audience,
        "iss": config.client_id,
    }
    return jwt.encode(claims, private_key, algorithm=JWT_SIGNING_ALGORITHM, headers={"kid": key_id})


async def exchange_assertion(client: AuthHTTPClient, assertion: str) -> Token:
    """Exchange a signed assertion for a JWT.

    Raises:
        JWKMissingError: If the public key is no longer registered.
        TooManyRequestsError: If tokens are requested too frequently.
    """
    data = await client.request_json("POST", client.v2(TOKEN_PATH), json_body={"jwt": assertion})
    if not isinstance(data, dict) or not isinstance(data.get("auth_token"), str):
        raise DecodeError("decode token exchange: missing auth_token")
    return Token(data["auth_token"])


async def request_jwt_token(client: AuthHTTPClient, private_key: Ed25519PrivateKey, key_id: str) -> Token:
    """Mint a new JWT: fetch a nonce, sign an assertion, exchange it."""
    nonce = await request_nonce(client)
    assertion = sign_assertion(client.config, private_key, key_id, nonce)
    return await exchange_assertion(client, assertion)


# =============================================================================
# Token source
# =============================================================================


class JWTTokenSource:
    """Token source that mints a fresh JWT on every call.

    The first call loads the device's key material from the secure data
    store. If there is none (or it belongs to another client ID), the
    device is registered with the registrar, a new keypair is uploaded and
    the key material is saved. The setup runs once: concurrent first calls
    wait for a single setup, and a failed setup is retried by the next call.

    Does not cache tokens; wrap in CachingTokenSource.
    """

    def __init__(
        self,
        client: AuthHTTPClient,
        store: SecureDataStore,
        registrar: Registrar | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize token source.

        Args:
            client: Auth service client.
            store: Secure data store bound to the client ID.
            registrar: Used to register the device when no key material exists.
            logger: Logger for setup events (default: plex-auth.auth.jwt).
        """
        self._client = client
        self._store = store
        self._registrar = registrar
        self._logger = logger or _logger
        self._setup = UntilSuccessful()
        self._private_key: Ed25519PrivateKey | None = None
        self._key_id = ""

    async def token(self) -> Token:
        await self._setup.do(self._initialize)
        if self._private_key is None:
            raise PlexAuthError("JWT setup finished without a signing key")
        return await request_jwt_token(self._client, self._private_key, self._key_id)

    async def _initialize(self) -> None:
        try:
            data = await asyncio.to_thread(self._store.load)
        except InvalidClientIDError as e:
            if self._client.config.strict_client_id:
                raise
            self._logger.warning(
                {
                    "event": "client_id_mismatch",
                    "message": "Secure data belongs to another client ID. Registering again",
                    "expected": e.expected,
                    "found": e.found,
                }
            )
        except VaultNotFoundError:
            self._logger.info(
                {
                    "event": "secure_data_missing",
                    "message": "No secure data found. Registering device",
                    "path": str(self._store.path),
                }
            )
        else:
            self._private_key = data.signing_key()
            self._key_id = data.key_id
            self._logger.debug(
                {"event": "secure_data_loaded", "message": "Loaded secure data", "key_id": data.key_id}
            )
            return

        if self._registrar is None:
            raise NoTokenSourceError("JWT authentication needs a registrar to register the device")

        token = await self._registrar.register()
        private_key, key_id = await generate_and_upload_public_key(self._client, token)

        data = SecureData.from_private_key(private_key, key_id, self._client.config.client_id)
        await asyncio.to_thread(self._store.save, data)

        self._private_key = private_key
        self._key_id = key_id
        self._logger.info(
            {
                "event": "jwt_setup_complete",
                "message": "Registered device for JWT authentication",
                "key_id": key_id,
            }
        )
