"""Tests for the keychain-backed vault passphrase."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError, PasswordDeleteError

from plex_auth.exceptions import PassphraseUnavailableError
from plex_auth.storage.passphrase import KeychainPassphrase, is_keyring_available


class InMemoryKeyring:
    """Dict-backed stand-in for the keyring module functions."""

    def __init__(self) -> None:
        self.store: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.store.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.store[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if (service, username) not in self.store:
            raise PasswordDeleteError("not found")
        del self.store[(service, username)]


@pytest.fixture
def memory_keyring():
    backend = InMemoryKeyring()
    with (
        patch("keyring.get_password", backend.get_password),
        patch("keyring.set_password", backend.set_password),
        patch("keyring.delete_password", backend.delete_password),
    ):
        yield backend


class TestKeychainPassphrase:
    """Tests for passphrase generation and reuse."""

    def test_generates_and_stores_on_first_use(self, memory_keyring: InMemoryKeyring) -> None:
        # Act
        passphrase = KeychainPassphrase("client-a").get()

        # Assert
        assert len(passphrase) >= 32
        assert memory_keyring.store[("plex-auth", "vault:client-a")] == passphrase

    def test_reuses_stored_passphrase(self, memory_keyring: InMemoryKeyring) -> None:
        # Arrange
        first = KeychainPassphrase("client-a").get()

        # Act
        second = KeychainPassphrase("client-a").get()

        # Assert
        assert first == second

    def test_separate_passphrase_per_client(self, memory_keyring: InMemoryKeyring) -> None:
        assert KeychainPassphrase("client-a").get() != KeychainPassphrase("client-b").get()

    def test_delete_is_idempotent(self, memory_keyring: InMemoryKeyring) -> None:
        # Arrange
        passphrase = KeychainPassphrase("client-a")
        passphrase.get()

        # Act
        passphrase.delete()
        passphrase.delete()

        # Assert
        assert memory_keyring.store == {}

    def test_keychain_failure_raises_unavailable(self) -> None:
        # Arrange
        with patch("keyring.get_password", side_effect=KeyringError("locked")):
            # Act & Assert
            with pytest.raises(PassphraseUnavailableError):
                KeychainPassphrase("client-a").get()


class TestIsKeyringAvailable:
    """Tests for the keyring availability probe."""

    def test_fail_backend_is_unavailable(self) -> None:
        with patch("keyring.get_keyring", return_value=FailKeyring()):
            assert is_keyring_available() is False

    def test_working_backend_is_available(self, memory_keyring: InMemoryKeyring) -> None:
        with patch("keyring.get_keyring", return_value=MagicMock()):
            assert is_keyring_available() is True

    def test_backend_error_is_unavailable(self) -> None:
        with (
            patch("keyring.get_keyring", return_value=MagicMock()),
            patch("keyring.set_password", side_effect=KeyringError("boom")),
        ):
            assert is_keyring_available() is False
