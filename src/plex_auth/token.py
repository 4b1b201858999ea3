"""Plex authentication token.

A Token is either a legacy token (opaque 20-character string, valid until
revoked) or a JWT issued by the auth service (time-bounded). Validity is
decided locally: legacy tokens are always valid, JWTs are valid until their
`exp` claim. Signatures are never verified client-side.
"""

from __future__ import annotations

__all__ = ["Token"]

import time
from datetime import datetime, timezone
from typing import Any

import jwt

from plex_auth.constants import CLOCK_SKEW_TOLERANCE_SECONDS, LEGACY_TOKEN_LENGTH

# Claims are read without verifying the signature. iat/nbf are still
# checked so a token from a badly skewed clock is rejected.
_UNVERIFIED_OPTIONS: dict[str, Any] = {
    "verify_signature": False,
    "verify_exp": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_iat": True,
    "verify_nbf": True,
}


class Token(str):
    """Plex authentication token.

    Note: JWTs cannot be used to access Plex Media Servers; use the server
    token resolved from the device directory for that.
    """

    def is_legacy(self) -> bool:
        """True if this is a legacy (20-character) token."""
        return len(self) == LEGACY_TOKEN_LENGTH

    def is_jwt(self) -> bool:
        """True if this parses as a JWT. Expired JWTs still count."""
        try:
            jwt.decode(str(self), options={"verify_signature": False})
        except jwt.PyJWTError:
            return False
        return True

    def is_valid(self) -> bool:
        """True if the token can be used.

        Legacy tokens are always valid. A JWT is valid if it parses, has an
        `exp` claim and has not expired.
        """
        if self.is_legacy():
            return True
        claims = self._claims()
        if claims is None:
            return False
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return False
        return exp > time.time()

    @property
    def expires_at(self) -> datetime | None:
        """Expiry of a JWT (UTC), None for legacy or unparseable tokens."""
        if self.is_legacy():
            return None
        claims = self._claims()
        if claims is None or not isinstance(claims.get("exp"), (int, float)):
            return None
        return datetime.fromtimestamp(claims["exp"], tz=timezone.utc)

    def _claims(self) -> dict[str, Any] | None:
        if not self:
            return None
        try:
            return jwt.decode(
                str(self),
                options=_UNVERIFIED_OPTIONS,
                leeway=CLOCK_SKEW_TOLERANCE_SECONDS,
            )
        except jwt.PyJWTError:
            return None
