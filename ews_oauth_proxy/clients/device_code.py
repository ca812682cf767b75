"""
OAuth2 device authorization grant.

The operator is shown a short code and a URL to complete sign-in on another
device while this client polls the token endpoint for the outcome.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import status

from ews_oauth_proxy.clients.errors import (
    AuthError,
    AuthorizationDeniedError,
    IdentityTransportError,
    ProtocolViolationError,
    ProviderRejectedError,
)
from ews_oauth_proxy.clients.identity import IdentityClient, credential_from_grant, utcnow
from ews_oauth_proxy.core.config import IdentitySettings
from ews_oauth_proxy.models.credential import Credential
from ews_oauth_proxy.schemas.oauth import DeviceAuthorization

logger = logging.getLogger(__name__)

Presenter = Callable[[DeviceAuthorization], None]


def print_verification_banner(authorization: DeviceAuthorization) -> None:
    """Show the sign-in instructions to the operator on stdout."""
    print("\n=======================================================")
    print("ACTION REQUIRED: Microsoft Authentication")
    print(
        authorization.message
        or f"Visit {authorization.verification_uri} and enter the code {authorization.user_code}"
    )
    print("=======================================================\n", flush=True)


class DeviceCodeClient(IdentityClient):
    """Run the device-code flow until the operator signs in or the provider gives up."""

    DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
    AUTHORIZATION_PENDING = "authorization_pending"

    def __init__(
        self,
        settings: IdentitySettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        presenter: Presenter = print_verification_banner,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(settings, transport=transport)
        self._presenter = presenter
        self._sleep = sleep
        self._clock = clock

    async def request_device_code(self) -> DeviceAuthorization:
        """Ask the provider for a device code and operator instructions."""
        response = await self._post_form(
            self._endpoint(self._settings.device_code_url),
            self._form(scope=self._settings.scope),
        )

        if response.status_code != status.HTTP_200_OK:
            raise ProviderRejectedError(response.status_code, response.text)

        try:
            return DeviceAuthorization.model_validate(response.json())
        except ValueError as exc:
            raise ProtocolViolationError("Malformed device code response.") from exc

    async def poll_for_token(self, device_code: str, interval: int) -> Credential:
        """
        Poll the token endpoint every ``interval`` seconds.

        Network failures, unparseable bodies and ``authorization_pending`` are
        all retried on the next tick; any other provider error ends the flow.
        """
        logger.info("Waiting for authentication (polling every %s seconds)", interval)
        data = self._form(grant_type=self.DEVICE_CODE_GRANT, device_code=device_code)

        while True:
            await self._sleep(interval)

            try:
                response = await self._post_form(self.token_endpoint, data)
            except (IdentityTransportError, ProtocolViolationError) as exc:
                logger.debug("Device code poll failed, retrying: %s", exc)
                continue
            received_at = self._clock()

            try:
                grant = self._parse_grant(response)
            except ProtocolViolationError as exc:
                logger.debug("Ignoring unreadable poll response: %s", exc)
                continue

            if grant.error == self.AUTHORIZATION_PENDING:
                continue
            if grant.error:
                raise AuthorizationDeniedError(grant.error, grant.error_description)
            if grant.access_token:
                return credential_from_grant(grant, received_at)

    async def authenticate(self) -> Credential:
        """Run the full device-code flow and return the minted credential."""
        authorization = await self.request_device_code()
        self._presenter(authorization)
        try:
            return await self.poll_for_token(authorization.device_code, authorization.interval)
        except AuthError:
            logger.error("Device code authentication did not complete")
            raise


__all__ = ["DeviceCodeClient", "Presenter", "print_verification_banner"]
