"""Configuration for plex-auth.

Defines the device identity sent to the auth service and the immutable
AuthConfig that every flow is built from. There is no shared module-level
default: call default_config() to get a fresh configuration, then derive
variants with the with_* methods, which return modified copies.

Example usage:
    config = default_config().with_device(
        Device(product="my-app", version="1.0", device_name="living room")
    )

    # Persist so the client ID survives restarts
    config.save_to_file(config_path)
    config = AuthConfig.load_from_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AuthConfig",
    "Device",
    "default_config",
]

import json
import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from plex_auth.constants import (
    DEFAULT_AUDIENCE,
    DEFAULT_AUTH_URL,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_PIN_URL,
    DEFAULT_SCOPES,
    DEFAULT_V2_URL,
)
from plex_auth.utils.file_helpers import (
    load_validated_json,
    require_file_exists,
    write_secure_file,
)


class Device(BaseModel):
    """Describes the client device to the auth service.

    Each non-empty field is sent as an X-Plex-* header. The attributes are
    recorded when the device registers; later changes are not reflected in
    the registered device on plex.tv.

    Attributes:
        product: Name of the client product (X-Plex-Product).
        version: Client application version (X-Plex-Version).
        platform: Operating system or runtime (X-Plex-Platform).
        platform_version: Version of the platform (X-Plex-Platform-Version).
        device: Friendly name of the device type (X-Plex-Device).
        model: Less friendly device model identifier (X-Plex-Model).
        device_vendor: Device vendor (X-Plex-Device-Vendor).
        device_name: Friendly name for this client (X-Plex-Device-Name).
        provides: Type of device, e.g. "controller" (X-Plex-Provides).
    """

    model_config = ConfigDict(frozen=True)

    product: str = ""
    version: str = ""
    platform: str = ""
    platform_version: str = ""
    device: str = ""
    model: str = ""
    device_vendor: str = ""
    device_name: str = ""
    provides: str = ""

    def headers(self) -> dict[str, str]:
        """Identity headers for every request, skipping empty fields."""
        headers = {
            "X-Plex-Product": self.product,
            "X-Plex-Version": self.version,
            "X-Plex-Platform": self.platform,
            "X-Plex-Platform-Version": self.platform_version,
            "X-Plex-Device": self.device,
            "X-Plex-Model": self.model,
            "X-Plex-Device-Vendor": self.device_vendor,
            "X-Plex-Device-Name": self.device_name,
            "X-Plex-Provides": self.provides,
        }
        return {key: value for key, value in headers.items() if value}


class AuthConfig(BaseModel):
    """Configuration required to authenticate with the auth service.

    Immutable: use with_client_id(), with_device() and with_scopes() to
    derive a modified copy.

    Attributes:
        url: Base URL of the legacy endpoints (sign-in, devices, user).
        v2_url: Base URL of the v2 endpoints (PINs, JWK, nonce, token).
        pin_url: Host of the user-facing PIN confirmation page.
        client_id: Unique identifier of this client installation.
        device: Device identity sent with every request.
        scopes: Scopes requested in signed assertions.
        audience: Audience of signed assertions.
        http_timeout_seconds: Timeout for each HTTP request.
        strict_client_id: If True, secure data registered under another
            client ID is an error instead of being overwritten by a new
            registration.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(default=DEFAULT_AUTH_URL, min_length=1)
    v2_url: str = Field(default=DEFAULT_V2_URL, min_length=1)
    pin_url: str = Field(default=DEFAULT_PIN_URL, min_length=1)
    client_id: str = Field(min_length=1)
    device: Device = Field(default_factory=Device)
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    audience: str = DEFAULT_AUDIENCE
    http_timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    strict_client_id: bool = False

    def with_client_id(self, client_id: str) -> "AuthConfig":
        """Return a copy with a different client ID."""
        return self.model_copy(update={"client_id": client_id})

    def with_device(self, device: Device) -> "AuthConfig":
        """Return a copy with a different device identity."""
        return self.model_copy(update={"device": device})

    def with_scopes(self, *scopes: str) -> "AuthConfig":
        """Return a copy requesting different scopes."""
        return self.model_copy(update={"scopes": tuple(scopes)})

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file with owner-only permissions.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        body = json.dumps(self.model_dump(mode="json"), indent=2)
        write_secure_file(config_path, body.encode("utf-8"))

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AuthConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AuthConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If config file is invalid or missing required fields.
        """
        require_file_exists(config_path, file_type="configuration")
        return load_validated_json(config_path, cls, file_type="config")


def default_config() -> AuthConfig:
    """Create a configuration with default endpoints and a new random client ID.

    Every call generates a fresh client ID. Persist the result (or pass a
    known client ID via with_client_id) when the client ID must be stable,
    which is required for JWT authentication.
    """
    return AuthConfig(client_id=str(uuid.uuid4()))
