"""Encrypted, versioned on-disk vault.

A vault file holds one JSON-serializable value, encrypted with a key
derived from a passphrase. The on-disk record is JSON:

    {"version": 1, "salt": "<base64>", "data": "<base64>"}

Version 1:
- key: HKDF-SHA256(passphrase, salt) -> 32 bytes
- data: 12-byte nonce || AES-256-GCM ciphertext (tag appended)

A fresh salt and nonce are generated on every save. The file is written
atomically with owner-only permissions (0600, parent 0700).

GCM authentication means a wrong passphrase and a tampered file look the
same: both raise DecryptionError.
"""

from __future__ import annotations

__all__ = [
    "Vault",
    "VaultRecord",
]

import base64
import binascii
import json
import logging
import os
import threading
from pathlib import Path
from typing import Generic, TypeVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import BaseModel, TypeAdapter, ValidationError

from plex_auth.constants import (
    APP_NAME,
    VAULT_FORMAT_VERSION,
    VAULT_KEY_SIZE,
    VAULT_NONCE_SIZE,
    VAULT_SALT_SIZE,
)
from plex_auth.exceptions import (
    DecodeError,
    DecryptionError,
    VaultFormatError,
    VaultNotFoundError,
)
from plex_auth.utils.file_helpers import write_secure_file

T = TypeVar("T")

_logger = logging.getLogger(f"{APP_NAME}.storage.vault")


class VaultRecord(BaseModel):
    """On-disk vault record. salt and data are base64 (standard alphabet)."""

    version: int
    salt: str = ""
    data: str = ""


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=VAULT_KEY_SIZE, salt=salt, info=None)
    return hkdf.derive(passphrase.encode("utf-8"))


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise VaultFormatError(f"vault {field} is not valid base64") from e


class Vault(Generic[T]):
    """Encrypted single-value store.

    Values are serialized with a pydantic TypeAdapter, so any type pydantic
    can validate works (models, dicts, lists, scalars).

    Thread-safety:
    - save(), load(), exists() and delete() are serialized by a lock
    - load() returns the value cached by the last save() or load()

    Usage:
        vault = Vault(path, passphrase, SecureData)
        vault.save(data)
        data = vault.load()
    """

    def __init__(self, path: Path, passphrase: str, payload_type: type[T]) -> None:
        """Initialize vault.

        Args:
            path: Vault file location.
            passphrase: Secret the encryption key is derived from.
            payload_type: Type of the stored value.
        """
        self._path = Path(path)
        self._passphrase = passphrase
        self._adapter: TypeAdapter[T] = TypeAdapter(payload_type)
        self._lock = threading.Lock()
        self._cached: T | None = None
        self._has_cached = False

    @property
    def path(self) -> Path:
        return self._path

    def save(self, value: T) -> None:
        """Encrypt and persist value, replacing any previous content.

        Raises:
            OSError: If the file cannot be written.
        """
        plaintext = self._adapter.dump_json(value, by_alias=True)
        salt = os.urandom(VAULT_SALT_SIZE)
        nonce = os.urandom(VAULT_NONCE_SIZE)
        ciphertext = AESGCM(_derive_key(self._passphrase, salt)).encrypt(nonce, plaintext, None)

        record = VaultRecord(
            version=VAULT_FORMAT_VERSION,
            salt=base64.b64encode(salt).decode("ascii"),
            data=base64.b64encode(nonce + ciphertext).decode("ascii"),
        )

        with self._lock:
            write_secure_file(self._path, record.model_dump_json().encode("utf-8"))
            self._cached = value
            self._has_cached = True

        _logger.debug({"event": "vault_saved", "message": f"Saved vault {self._path}"})

    def load(self) -> T:
        """Load and decrypt the stored value.

        Returns:
            The stored value (cached after the first successful load).

        Raises:
            VaultNotFoundError: If the vault file does not exist.
            VaultFormatError: If the file is not a supported vault record.
            DecryptionError: If the passphrase is wrong or the data was modified.
            DecodeError: If the decrypted payload is not a valid value.
        """
        with self._lock:
            if self._has_cached:
                return self._cached  # type: ignore[return-value]

            try:
                raw = self._path.read_bytes()
            except FileNotFoundError as e:
                raise VaultNotFoundError(f"vault not found: {self._path}") from e

            record = self._parse_record(raw)
            plaintext = self._decrypt(record)

            try:
                value = self._adapter.validate_json(plaintext)
            except ValidationError as e:
                raise DecodeError(f"decode vault payload: {e}") from e

            self._cached = value
            self._has_cached = True
            return value

    def exists(self) -> bool:
        """Check if the vault file exists."""
        with self._lock:
            return self._path.exists()

    def delete(self) -> None:
        """Delete the vault file (if any) and clear the cache."""
        with self._lock:
            self._path.unlink(missing_ok=True)
            self._cached = None
            self._has_cached = False

    def _parse_record(self, raw: bytes) -> VaultRecord:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise VaultFormatError(f"vault {self._path} is not valid JSON") from e

        if not isinstance(data, dict) or "version" not in data:
            raise VaultFormatError(f"vault {self._path} has no version")

        try:
            record = VaultRecord.model_validate(data)
        except ValidationError as e:
            raise VaultFormatError(f"vault {self._path} is malformed: {e}") from e

        if record.version != VAULT_FORMAT_VERSION:
            raise VaultFormatError(f"unsupported vault version {record.version}")
        return record

    def _decrypt(self, record: VaultRecord) -> bytes:
        salt = _b64decode(record.salt, "salt")
        data = _b64decode(record.data, "data")
        if len(data) < VAULT_NONCE_SIZE:
            raise DecryptionError("vault data is shorter than the nonce")

        nonce, ciphertext = data[:VAULT_NONCE_SIZE], data[VAULT_NONCE_SIZE:]
        try:
            return AESGCM(_derive_key(self._passphrase, salt)).decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionError(f"cannot decrypt vault {self._path}: wrong passphrase or corrupted data") from e
