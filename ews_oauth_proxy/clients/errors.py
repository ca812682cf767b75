"""
Error taxonomy for calls made against the identity provider.

Callers decide what is fatal: the device-code poll loop retries transport and
protocol failures, the background refresh loop retries everything, and the
startup sequence propagates whatever it cannot recover from.
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base class for identity provider failures."""


class IdentityTransportError(AuthError):
    """Raised when the provider could not be reached or the call timed out."""


class ProtocolViolationError(AuthError):
    """Raised when the provider returns a body that cannot be interpreted."""


class ProviderRejectedError(AuthError):
    """Raised when the provider answers with a non-200 status or an error body."""

    def __init__(
        self,
        status_code: int,
        body: str,
        *,
        error: Optional[str] = None,
    ) -> None:
        super().__init__(f"provider rejected request (status {status_code}): {body}")
        self.status_code = status_code
        self.body = body
        self.error = error

    @property
    def is_invalid_grant(self) -> bool:
        """True when the refresh token itself was refused."""
        return self.error == "invalid_grant"


class AuthorizationDeniedError(AuthError):
    """Raised when device-code polling ends with a terminal error."""

    def __init__(self, error: str, description: Optional[str] = None) -> None:
        message = f"polling error: {error}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.error = error
        self.description = description


__all__ = [
    "AuthError",
    "AuthorizationDeniedError",
    "IdentityTransportError",
    "ProtocolViolationError",
    "ProviderRejectedError",
]
