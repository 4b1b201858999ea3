"""Custom exceptions for plex-auth.

All exceptions raised by this package derive from PlexAuthError.
They are organized by what the caller can do about them:

Transport (network never reached the auth service, or timed out):
    - TransportError: DNS/TLS/connection failure
    - AuthTimeoutError: HTTP timeout or PIN confirmation deadline

Auth service rejections (service answered with a non-success status):
    - AuthServiceError: base, carries status and decoded reason
    - UnauthorizedError: credentials rejected
    - TooManyRequestsError: rate limited, back off
    - JWKMissingError: signing key no longer registered, re-register

Local state:
    - InvalidTokenError: operation needs a valid credential
    - InvalidClientIDError: stored secure data belongs to another client
    - VaultNotFoundError / VaultFormatError / DecryptionError: vault file
    - PassphraseUnavailableError: keychain could not supply a passphrase

Flow outcomes:
    - NoTokenSourceError: nothing configured to obtain a credential
    - ServerNotFoundError: requested media server not in the directory
    - PINExpiredError: PIN expired before it was confirmed

Usage:
    from plex_auth.exceptions import AuthServiceError, TooManyRequestsError
"""

from __future__ import annotations

__all__ = [
    "AuthServiceError",
    "AuthTimeoutError",
    "DecodeError",
    "DecryptionError",
    "InvalidClientIDError",
    "InvalidTokenError",
    "JWKMissingError",
    "NoTokenSourceError",
    "PINExpiredError",
    "PassphraseUnavailableError",
    "PlexAuthError",
    "ServerNotFoundError",
    "TooManyRequestsError",
    "TransportError",
    "UnauthorizedError",
    "VaultFormatError",
    "VaultNotFoundError",
]

import json
from typing import TYPE_CHECKING

from plex_auth.constants import (
    ERROR_CODE_JWK_MISSING,
    ERROR_CODE_TOO_MANY_REQUESTS,
    ERROR_CODE_UNAUTHORIZED,
)

if TYPE_CHECKING:
    import httpx


class PlexAuthError(Exception):
    """Base exception for all plex-auth errors."""


# =============================================================================
# Transport
# =============================================================================


class TransportError(PlexAuthError):
    """The auth service could not be reached (DNS, TLS, connection refused...)."""


class AuthTimeoutError(PlexAuthError, TimeoutError):
    """An operation gave up before the auth service answered.

    Raised when:
    - An HTTP request to the auth service times out
    - A PIN was not confirmed before the caller's deadline

    Subclasses TimeoutError so `except TimeoutError` also catches deadlines
    set with asyncio.timeout() around any call in this package.
    """


# =============================================================================
# Auth service rejections
# =============================================================================


class AuthServiceError(PlexAuthError):
    """The auth service answered with an unexpected HTTP status.

    Attributes:
        status_code: HTTP status code.
        status: HTTP status line (e.g. "401 Unauthorized").
        reason: Decoded error message(s), or the status line if the body
            carried none.
        body: Raw response body.
        errors: (code, message) pairs from an `errors[]` body, if any.
    """

    def __init__(
        self,
        *,
        status_code: int,
        status: str,
        reason: str,
        body: bytes = b"",
        errors: list[tuple[int, str]] | None = None,
    ) -> None:
        self.status_code = status_code
        self.status = status
        self.reason = reason
        self.body = body
        self.errors = errors or []
        super().__init__(f"plex: {reason or status}")

    @property
    def codes(self) -> list[int]:
        """Error codes reported by the auth service."""
        return [code for code, _ in self.errors]

    @classmethod
    def from_response(cls, response: "httpx.Response") -> "AuthServiceError":
        """Build the most specific AuthServiceError for a response.

        The body is decoded when it is JSON with either an `error` string or
        an `errors` list of {code, message}. Known codes select a subclass.

        Args:
            response: Response with a non-success status.

        Returns:
            AuthServiceError (or subclass) describing the rejection.
        """
        status = f"{response.status_code} {response.reason_phrase}".strip()
        body = response.content

        error_text = ""
        errors: list[tuple[int, str]] = []
        try:
            data = json.loads(body) if body else None
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None

        if isinstance(data, dict):
            if isinstance(data.get("error"), str):
                error_text = data["error"]
            elif isinstance(data.get("errors"), list):
                for entry in data["errors"]:
                    if isinstance(entry, dict):
                        errors.append((_error_code(entry.get("code")), str(entry.get("message", ""))))

        if error_text:
            reason = error_text
        elif errors:
            reason = ", ".join(f"{code} - {message}" for code, message in errors)
        else:
            reason = status

        error_class = _error_class_for(response.status_code, [code for code, _ in errors])
        return error_class(
            status_code=response.status_code,
            status=status,
            reason=reason,
            body=body,
            errors=errors,
        )


class UnauthorizedError(AuthServiceError):
    """The auth service could not authenticate the user or credential."""


class TooManyRequestsError(AuthServiceError):
    """The auth service rate limit was reached.

    Typically seen when minting JWTs too frequently. Back off before retrying.
    """


class JWKMissingError(AuthServiceError):
    """The auth service has no public key to verify a signed assertion.

    Usually the registered device for this client ID was removed on plex.tv.
    Recovery requires a new client ID and a new keypair.
    """


_ERRORS_BY_CODE: dict[int, type[AuthServiceError]] = {
    ERROR_CODE_UNAUTHORIZED: UnauthorizedError,
    ERROR_CODE_TOO_MANY_REQUESTS: TooManyRequestsError,
    ERROR_CODE_JWK_MISSING: JWKMissingError,
}

_ERRORS_BY_STATUS: dict[int, type[AuthServiceError]] = {
    401: UnauthorizedError,
    429: TooManyRequestsError,
}


def _error_code(value: object) -> int:
    """Numeric code of an `errors[]` entry; 0 when absent or not an integer."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def _error_class_for(status_code: int, codes: list[int]) -> type[AuthServiceError]:
    for code in codes:
        if code in _ERRORS_BY_CODE:
            return _ERRORS_BY_CODE[code]
    return _ERRORS_BY_STATUS.get(status_code, AuthServiceError)


# =============================================================================
# Decoding and local state
# =============================================================================


class DecodeError(PlexAuthError):
    """A response body or stored payload could not be decoded."""


class InvalidTokenError(PlexAuthError):
    """An operation that requires a valid credential was given an invalid one.

    Raised before any network call is made.
    """


class InvalidClientIDError(PlexAuthError):
    """Stored secure data was registered under a different client ID.

    The stored private key and key ID cannot mint tokens for the current
    client ID. Recoverable by re-registering the device.

    Attributes:
        expected: Client ID of the current configuration.
        found: Client ID recorded in the secure data.
    """

    def __init__(self, expected: str, found: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"secure data belongs to client ID {found!r}, expected {expected!r}")


class VaultNotFoundError(PlexAuthError, FileNotFoundError):
    """The vault file does not exist."""


class VaultFormatError(PlexAuthError):
    """The vault file is not a recognized vault record.

    Raised when:
    - The file is not JSON or lacks a version
    - The version is not supported by this release
    """


class DecryptionError(PlexAuthError):
    """The vault could not be decrypted.

    Either the passphrase is wrong or the file was corrupted or tampered
    with. The underlying cause is chained.
    """


class PassphraseUnavailableError(PlexAuthError):
    """The OS keychain could not provide a vault passphrase."""


# =============================================================================
# Flow outcomes
# =============================================================================


class NoTokenSourceError(PlexAuthError):
    """A token source needs an underlying credential source but none was configured.

    This is a configuration error. Retrying will not help.
    """


class ServerNotFoundError(PlexAuthError):
    """No media server with the requested name is registered.

    Attributes:
        server_name: Name that was requested ("" means any server).
    """

    def __init__(self, server_name: str) -> None:
        self.server_name = server_name
        if server_name:
            super().__init__(f"no media server {server_name!r} found")
        else:
            super().__init__("no media server found")


class PINExpiredError(PlexAuthError):
    """The PIN expired before the user confirmed it."""
