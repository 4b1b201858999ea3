"""Encrypted persistence of device key material.

- vault: encrypted, versioned single-value file
- secure_data: client-ID-aware store of JWT key material
- passphrase: vault passphrase kept in the OS keychain
"""

from plex_auth.storage.passphrase import KeychainPassphrase, is_keyring_available
from plex_auth.storage.secure_data import SecureData, SecureDataStore, create_secure_data_store
from plex_auth.storage.vault import Vault

__all__ = [
    "KeychainPassphrase",
    "SecureData",
    "SecureDataStore",
    "Vault",
    "create_secure_data_store",
    "is_keyring_available",
]
