"""Expose identity provider client wrappers."""

from .device_code import DeviceCodeClient
from .errors import (
    AuthError,
    AuthorizationDeniedError,
    IdentityTransportError,
    ProtocolViolationError,
    ProviderRejectedError,
)
from .identity import IdentityClient

__all__ = [
    "AuthError",
    "AuthorizationDeniedError",
    "DeviceCodeClient",
    "IdentityClient",
    "IdentityTransportError",
    "ProtocolViolationError",
    "ProviderRejectedError",
]
