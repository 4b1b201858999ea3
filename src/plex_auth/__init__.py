"""plex-auth: authenticate clients against plex.tv and Plex Media Servers.

Quick start:
    config = default_config().with_device(Device(product="my-app", version="1.0"))
    client = AuthHTTPClient(config)
    source = create_token_source(
        config,
        registrar=CredentialsRegistrar(client, "user", "password"),
        secure_store=create_secure_data_store(config),
        media_server="",
    )
    token = await source.token()
"""

# Defined before the imports below: submodules read it at import time
__version__ = "0.1.0"

from plex_auth.auth import (
    AuthHTTPClient,
    CachingTokenSource,
    CredentialsRegistrar,
    FixedTokenSource,
    JWTTokenSource,
    PINRegistrar,
    PlexTVClient,
    Registrar,
    RegistrarTokenSource,
    ServerTokenSource,
    TokenSource,
    create_token_source,
)
from plex_auth.config import AuthConfig, Device, default_config
from plex_auth.storage import SecureDataStore, create_secure_data_store
from plex_auth.token import Token
from plex_auth.utils.logging import configure_logging

__all__ = [
    "AuthConfig",
    "AuthHTTPClient",
    "CachingTokenSource",
    "CredentialsRegistrar",
    "Device",
    "FixedTokenSource",
    "JWTTokenSource",
    "PINRegistrar",
    "PlexTVClient",
    "Registrar",
    "RegistrarTokenSource",
    "SecureDataStore",
    "ServerTokenSource",
    "Token",
    "TokenSource",
    "__version__",
    "configure_logging",
    "create_secure_data_store",
    "create_token_source",
    "default_config",
]
