"""Vault passphrase kept in the OS keychain.

The passphrase that protects a client's secure data is a random secret
generated on first use and stored via keyring:
- macOS: Keychain
- Windows: Credential Locker
- Linux: Secret Service (GNOME Keyring, KDE Wallet)

One entry per client ID: service "plex-auth", user "vault:<client_id>".
"""

from __future__ import annotations

__all__ = [
    "KeychainPassphrase",
    "is_keyring_available",
]

import logging
import secrets

import keyring
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError, PasswordDeleteError

from plex_auth.constants import APP_NAME, KEYRING_SERVICE, PASSPHRASE_BYTES
from plex_auth.exceptions import PassphraseUnavailableError

_logger = logging.getLogger(f"{APP_NAME}.storage.passphrase")


def is_keyring_available(test_service_suffix: str = "test") -> bool:
    """Check if keyring backend is available and functional.

    Performs a test write/read/delete cycle to verify the keyring
    is working correctly.

    Args:
        test_service_suffix: Suffix for the test service name.
            Default "test" creates "{APP_NAME}-test" service.

    Returns:
        True if keyring can store/retrieve secrets.
    """
    try:
        backend = keyring.get_keyring()
        if isinstance(backend, FailKeyring):
            _logger.debug(
                {
                    "event": "keyring_unavailable",
                    "reason": "fail_backend",
                    "message": "Keyring using FailKeyring backend (no usable backend found)",
                }
            )
            return False

        test_service = f"{APP_NAME}-{test_service_suffix}"
        test_user = "availability-check"
        test_value = "test"

        keyring.set_password(test_service, test_user, test_value)
        result = keyring.get_password(test_service, test_user)
        keyring.delete_password(test_service, test_user)

        return result == test_value

    except KeyringError as e:
        _logger.debug(
            {
                "event": "keyring_unavailable",
                "reason": "keyring_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False
    except Exception as e:
        # DBus errors on Linux, permission issues
        _logger.debug(
            {
                "event": "keyring_unavailable",
                "reason": "unexpected_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False


class KeychainPassphrase:
    """Vault passphrase for one client ID, stored in the OS keychain.

    Usage:
        passphrase = KeychainPassphrase(config.client_id).get()
    """

    def __init__(self, client_id: str) -> None:
        self._service = KEYRING_SERVICE
        self._username = f"vault:{client_id}"

    @property
    def username(self) -> str:
        return self._username

    def get(self) -> str:
        """Return the stored passphrase, generating and storing one if missing.

        Raises:
            PassphraseUnavailableError: If the keychain cannot be read or written.
        """
        try:
            passphrase = keyring.get_password(self._service, self._username)
        except Exception as e:
            raise PassphraseUnavailableError(f"Failed to access keychain: {e}") from e

        if passphrase:
            return passphrase

        passphrase = secrets.token_urlsafe(PASSPHRASE_BYTES)
        try:
            keyring.set_password(self._service, self._username, passphrase)
        except Exception as e:
            raise PassphraseUnavailableError(f"Failed to save passphrase to keychain: {e}") from e

        _logger.info(
            {
                "event": "vault_passphrase_created",
                "message": "Generated new vault passphrase in keychain",
                "keyring_user": self._username,
            }
        )
        return passphrase

    def delete(self) -> None:
        """Remove the passphrase from the keychain (no-op if missing)."""
        try:
            keyring.delete_password(self._service, self._username)
        except PasswordDeleteError:
            pass
        except Exception as e:
            raise PassphraseUnavailableError(f"Failed to delete passphrase from keychain: {e}") from e
