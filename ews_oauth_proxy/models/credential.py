"""
Domain model for the managed OAuth credential.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Credential(BaseModel):
    """Access token, refresh token and expiry held by the token store.

    Instances are immutable; every update produces a new value.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = ""
    refresh_token: str = ""
    expires_at: Optional[datetime] = None

    def refresh_at(self, margin: timedelta) -> Optional[datetime]:
        """Return the instant renewal is due, or ``None`` when the expiry is unknown."""
        if self.expires_at is None:
            return None
        return self.expires_at - margin


__all__ = ["Credential"]
