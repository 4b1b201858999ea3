"""Authentication against plex.tv.

Registration:
- CredentialsRegistrar: username/password
- PINRegistrar: user confirms a PIN out-of-band

Token sources:
- FixedTokenSource, RegistrarTokenSource, JWTTokenSource,
  ServerTokenSource, CachingTokenSource
- create_token_source(): builds the chain from options

Directory:
- PlexTVClient: registered devices, media servers, user
"""

from plex_auth.auth.credentials import CredentialsRegistrar, register_with_credentials
from plex_auth.auth.directory import PlexTVClient, RegisteredDevice, User
from plex_auth.auth.http_client import AuthHTTPClient
from plex_auth.auth.jwt_flow import JWTTokenSource
from plex_auth.auth.pin_flow import PINFlow, PINRegistrar, PINResponse, register_with_pin
from plex_auth.auth.protocol import Registrar, TokenSource
from plex_auth.auth.token_source import (
    CachingTokenSource,
    FixedTokenSource,
    RegistrarTokenSource,
    ServerTokenSource,
    create_token_source,
)

__all__ = [
    "AuthHTTPClient",
    "CachingTokenSource",
    "CredentialsRegistrar",
    "FixedTokenSource",
    "JWTTokenSource",
    "PINFlow",
    "PINRegistrar",
    "PINResponse",
    "PlexTVClient",
    "RegisteredDevice",
    "Registrar",
    "RegistrarTokenSource",
    "ServerTokenSource",
    "TokenSource",
    "User",
    "create_token_source",
    "register_with_credentials",
    "register_with_pin",
]
