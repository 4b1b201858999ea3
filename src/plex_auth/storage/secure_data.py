"""Secure data for JWT authentication.

SecureData is what a device needs to mint JWTs without user interaction:
the Ed25519 private key, the ID of its uploaded public key, and the client
ID it was registered under. It is kept in a Vault.

SecureDataStore binds a vault to the current client ID: secure data
written under another client ID is reported as InvalidClientIDError
instead of being returned.
"""

from __future__ import annotations

__all__ = [
    "SecureData",
    "SecureDataStore",
    "create_secure_data_store",
]

import base64
import binascii
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from pydantic import BaseModel, ConfigDict, Field

from plex_auth.config import AuthConfig
from plex_auth.constants import DEFAULT_STORE_DIR, VAULT_FILE_SUFFIX
from plex_auth.exceptions import DecodeError, InvalidClientIDError, PassphraseUnavailableError
from plex_auth.storage.passphrase import KeychainPassphrase, is_keyring_available
from plex_auth.storage.vault import Vault


class SecureData(BaseModel):
    """Key material of a registered device.

    Attributes:
        key_id: ID of the uploaded public key (JWK thumbprint).
        client_id: Client ID the key was registered under.
        private_key: Base64 raw Ed25519 private key (32-byte seed).
    """

    model_config = ConfigDict(populate_by_name=True)

    key_id: str = Field(alias="key-id")
    client_id: str = Field(alias="client-id")
    private_key: str = Field(alias="private-key", repr=False)

    def signing_key(self) -> Ed25519PrivateKey:
        """Decode the stored private key.

        Raises:
            DecodeError: If the stored key is not a base64 32-byte seed.
        """
        try:
            seed = base64.b64decode(self.private_key, validate=True)
            # Some tools store seed || public key
            if len(seed) == 64:
                seed = seed[:32]
            return Ed25519PrivateKey.from_private_bytes(seed)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"decode private key: {e}") from e

    @classmethod
    def from_private_key(cls, private_key: Ed25519PrivateKey, key_id: str, client_id: str) -> "SecureData":
        seed = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return cls(
            key_id=key_id,
            client_id=client_id,
            private_key=base64.b64encode(seed).decode("ascii"),
        )


class SecureDataStore:
    """Secure data of one client ID, persisted in an encrypted vault."""

    def __init__(self, path: Path, passphrase: str, client_id: str) -> None:
        """Initialize store.

        Args:
            path: Vault file location.
            passphrase: Vault passphrase.
            client_id: Client ID the stored data must belong to.
        """
        self._vault: Vault[SecureData] = Vault(path, passphrase, SecureData)
        self._client_id = client_id

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def path(self) -> Path:
        return self._vault.path

    def load(self) -> SecureData:
        """Load secure data for this client ID.

        Raises:
            VaultNotFoundError: If nothing was saved yet.
            InvalidClientIDError: If the data belongs to another client ID.
            VaultFormatError / DecryptionError / DecodeError: See Vault.load().
        """
        data = self._vault.load()
        if data.client_id != self._client_id:
            raise InvalidClientIDError(expected=self._client_id, found=data.client_id)
        return data

    def save(self, data: SecureData) -> None:
        self._vault.save(data)

    def exists(self) -> bool:
        return self._vault.exists()

    def delete(self) -> None:
        self._vault.delete()


def create_secure_data_store(
    config: AuthConfig,
    path: Path | None = None,
    passphrase: str | None = None,
) -> SecureDataStore:
    """Create the secure data store for a configuration.

    Args:
        config: Auth configuration (its client ID selects the store).
        path: Vault file. Defaults to <user config dir>/plex-auth/<client_id>.vault.
        passphrase: Vault passphrase. Defaults to a keychain-managed one.

    Returns:
        SecureDataStore bound to config.client_id.

    Raises:
        PassphraseUnavailableError: If no passphrase was given and the
            keychain cannot supply one.
    """
    if path is None:
        path = DEFAULT_STORE_DIR / f"{config.client_id}{VAULT_FILE_SUFFIX}"
    if passphrase is None:
        if not is_keyring_available():
            raise PassphraseUnavailableError("no usable OS keychain; pass an explicit vault passphrase")
        passphrase = KeychainPassphrase(config.client_id).get()
    return SecureDataStore(path, passphrase, config.client_id)
