"""Protocol definitions for token sources and registrars.

Token sources are composed by wrapping, never by inheritance: each
implementation is an independent class that satisfies TokenSource
structurally and, where it needs one, holds an inner source.

Registrars perform a one-time device registration and return a legacy
token. Any object with a matching register() coroutine qualifies.
"""

from __future__ import annotations

__all__ = [
    "Registrar",
    "TokenSource",
]

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from plex_auth.token import Token


@runtime_checkable
class TokenSource(Protocol):
    """Something that can produce an authentication token.

    Thread-safety:
    - token() may be awaited concurrently by any number of tasks
    """

    async def token(self) -> "Token":
        """Return a token, obtaining one if needed."""
        ...


@runtime_checkable
class Registrar(Protocol):
    """Registers this device with the auth service and returns a token."""

    async def register(self) -> "Token":
        """Run the registration flow."""
        ...
