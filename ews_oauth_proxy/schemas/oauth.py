"""Pydantic models describing identity provider responses."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceAuthorization(BaseModel):
    """Device-code issuance response; discarded once the flow completes."""

    model_config = ConfigDict(extra="ignore")

    device_code: str
    user_code: str = ""
    verification_uri: str = ""
    expires_in: int = 0
    interval: int = Field(5, ge=1, description="Seconds between polling requests.")
    message: str = ""


class TokenGrant(BaseModel):
    """Token endpoint response for both the device-code and refresh grants."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0
    error: str = ""
    error_description: Optional[str] = None


__all__ = ["DeviceAuthorization", "TokenGrant"]
