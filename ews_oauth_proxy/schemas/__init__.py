"""Expose provider response schemas."""

from .oauth import DeviceAuthorization, TokenGrant

__all__ = ["DeviceAuthorization", "TokenGrant"]
