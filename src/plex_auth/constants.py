"""Constants for plex-auth.

Endpoints, header names, timeouts and sizes shared across the package.
Everything that could plausibly need tuning lives here rather than in the
modules that use it.
"""

from __future__ import annotations

__all__ = [
    # Application identity
    "APP_NAME",
    "DEFAULT_STORE_DIR",
    # Auth service endpoints
    "DEFAULT_AUTH_URL",
    "DEFAULT_V2_URL",
    "DEFAULT_PIN_URL",
    "DEFAULT_AUDIENCE",
    "DEFAULT_SCOPES",
    "SIGN_IN_PATH",
    "PINS_PATH",
    "JWK_PATH",
    "NONCE_PATH",
    "TOKEN_PATH",
    "DEVICES_PATH",
    "USER_PATH",
    # Headers
    "CLIENT_ID_HEADER",
    "TOKEN_HEADER",
    # HTTP
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    # Tokens
    "LEGACY_TOKEN_LENGTH",
    "CLOCK_SKEW_TOLERANCE_SECONDS",
    "JWT_SIGNING_ALGORITHM",
    # PIN flow
    "DEFAULT_PIN_POLL_INTERVAL_SECONDS",
    # Directory
    "MEDIA_SERVER_PRODUCT",
    # Error codes
    "ERROR_CODE_UNAUTHORIZED",
    "ERROR_CODE_TOO_MANY_REQUESTS",
    "ERROR_CODE_JWK_MISSING",
    # Vault
    "VAULT_FORMAT_VERSION",
    "VAULT_SALT_SIZE",
    "VAULT_KEY_SIZE",
    "VAULT_NONCE_SIZE",
    "VAULT_FILE_SUFFIX",
    # Keychain
    "KEYRING_SERVICE",
    "PASSPHRASE_BYTES",
]

from pathlib import Path

from platformdirs import user_config_dir

# ============================================================================
# Application Identity
# ============================================================================

# Used for logger names, keychain service name and directory names
APP_NAME: str = "plex-auth"

# Default location for encrypted secure data files (one per client ID)
# - macOS: ~/Library/Application Support/plex-auth/
# - Linux: ~/.config/plex-auth/
# - Windows: %APPDATA%\plex-auth\
DEFAULT_STORE_DIR: Path = Path(user_config_dir(APP_NAME))

# ============================================================================
# Auth Service Endpoints
# ============================================================================

# Legacy endpoints (sign-in, device directory, user)
DEFAULT_AUTH_URL: str = "https://plex.tv"

# v2 endpoints (PINs, JWK, nonce, token exchange)
DEFAULT_V2_URL: str = "https://clients.plex.tv"

# Host of the user-facing PIN confirmation page
DEFAULT_PIN_URL: str = "https://plex.tv"

# Audience claim of signed assertions
DEFAULT_AUDIENCE: str = "plex.tv"

DEFAULT_SCOPES: tuple[str, ...] = ("username", "email", "friendly_name", "restricted", "anonymous")

SIGN_IN_PATH: str = "/users/sign_in.xml"
PINS_PATH: str = "/api/v2/pins"
JWK_PATH: str = "/api/v2/auth/jwk"
NONCE_PATH: str = "/api/v2/auth/nonce"
TOKEN_PATH: str = "/api/v2/auth/token"
DEVICES_PATH: str = "/devices.xml"
USER_PATH: str = "/api/v2/user"

# ============================================================================
# Headers
# ============================================================================

CLIENT_ID_HEADER: str = "X-Plex-Client-Identifier"
TOKEN_HEADER: str = "X-Plex-Token"

# ============================================================================
# HTTP
# ============================================================================

DEFAULT_HTTP_TIMEOUT_SECONDS: float = 15.0

# ============================================================================
# Tokens
# ============================================================================

# Legacy tokens are opaque 20-character strings
LEGACY_TOKEN_LENGTH: int = 20

# plex.tv's clock may drift from ours; iat/nbf this far in the future are accepted
CLOCK_SKEW_TOLERANCE_SECONDS: int = 60

JWT_SIGNING_ALGORITHM: str = "EdDSA"

# ============================================================================
# PIN Flow
# ============================================================================

DEFAULT_PIN_POLL_INTERVAL_SECONDS: float = 15.0

# ============================================================================
# Directory
# ============================================================================

# Product name of registered devices that are media servers
MEDIA_SERVER_PRODUCT: str = "Plex Media Server"

# ============================================================================
# Auth Service Error Codes
# ============================================================================

ERROR_CODE_UNAUTHORIZED: int = 1001
ERROR_CODE_TOO_MANY_REQUESTS: int = 1003
# Public key for the JWT assertion not found (device removed from plex.tv)
ERROR_CODE_JWK_MISSING: int = 1097

# ============================================================================
# Vault
# ============================================================================

VAULT_FORMAT_VERSION: int = 1

# Salt size matches the SHA-256 digest size
VAULT_SALT_SIZE: int = 32

# AES-256
VAULT_KEY_SIZE: int = 32

# AES-GCM standard nonce size
VAULT_NONCE_SIZE: int = 12

VAULT_FILE_SUFFIX: str = ".vault"

# ============================================================================
# Keychain
# ============================================================================

KEYRING_SERVICE: str = APP_NAME

# Random bytes behind a generated vault passphrase
PASSPHRASE_BYTES: int = 32
