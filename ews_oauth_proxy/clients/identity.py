"""
Identity provider token endpoint client.

Wraps the form-encoded POSTs shared by the device-code and refresh-token grants
and maps provider responses onto the ``clients.errors`` taxonomy.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx
from fastapi import status
from pydantic import ValidationError

from ews_oauth_proxy.clients.errors import (
    IdentityTransportError,
    ProtocolViolationError,
    ProviderRejectedError,
)
from ews_oauth_proxy.core.config import IdentitySettings
from ews_oauth_proxy.models.credential import Credential
from ews_oauth_proxy.schemas.oauth import TokenGrant


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def credential_from_grant(grant: TokenGrant, received_at: datetime) -> Credential:
    """Build a credential whose expiry is measured from ``received_at``."""
    return Credential(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        expires_at=received_at + timedelta(seconds=grant.expires_in),
    )


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"] or None
    return None


class IdentityClient:
    """Issue token endpoint requests for a single tenant and application."""

    def __init__(
        self,
        settings: IdentitySettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def token_endpoint(self) -> str:
        return self._endpoint(self._settings.token_url)

    def _endpoint(self, template: str) -> str:
        return template.replace("%s", self._settings.tenant_id, 1)

    def _form(self, **fields: str) -> Dict[str, str]:
        data = {"client_id": self._settings.client_id}
        if self._settings.client_secret:
            data["client_secret"] = self._settings.client_secret
        data.update(fields)
        return data

    async def _post_form(self, url: str, data: Dict[str, str]) -> httpx.Response:
        """POST ``data`` form-encoded, translating httpx failures into ``AuthError``."""
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.post(url, data=data)
        except httpx.TransportError as exc:
            raise IdentityTransportError(f"request to {url} failed: {exc!r}") from exc
        except httpx.HTTPError as exc:
            # Undecodable bodies, redirect loops and the like.
            raise ProtocolViolationError(f"unusable response from {url}: {exc!r}") from exc

    @staticmethod
    def _parse_grant(response: httpx.Response) -> TokenGrant:
        try:
            payload = response.json()
            return TokenGrant.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            raise ProtocolViolationError(
                f"unparseable token response (status {response.status_code})"
            ) from exc

    async def redeem_refresh_token(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        The returned grant's ``refresh_token`` is empty when the provider chose
        not to rotate it.
        """
        response = await self._post_form(
            self.token_endpoint,
            self._form(grant_type="refresh_token", refresh_token=refresh_token),
        )

        if response.status_code != status.HTTP_200_OK:
            raise ProviderRejectedError(
                response.status_code, response.text, error=_error_code(response)
            )

        grant = self._parse_grant(response)
        if grant.error:
            raise ProviderRejectedError(
                response.status_code, response.text, error=grant.error
            )
        if not grant.access_token:
            raise ProtocolViolationError("Refresh response did not include an access token.")
        return grant


__all__ = ["IdentityClient", "credential_from_grant", "utcnow"]
