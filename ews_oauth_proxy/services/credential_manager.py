"""
Composition root for the credential lifecycle.

Startup restores or mints a refresh token, validates it with one eager
refresh and then leaves renewal to the background scheduler. The request path
only ever calls :meth:`CredentialManager.current_access_token`.
"""

from __future__ import annotations

import logging

from ews_oauth_proxy.clients.device_code import DeviceCodeClient
from ews_oauth_proxy.clients.errors import AuthError
from ews_oauth_proxy.services.refresh_scheduler import RefreshScheduler
from ews_oauth_proxy.services.token_store import (
    TokenRecordNotFoundError,
    TokenStore,
    TokenStoreError,
)

logger = logging.getLogger(__name__)


class CredentialManager:
    """Owns startup, renewal and read access for the process-wide credential."""

    def __init__(
        self,
        store: TokenStore,
        device_client: DeviceCodeClient,
        scheduler: RefreshScheduler,
    ) -> None:
        self._store = store
        self._device_client = device_client
        self._scheduler = scheduler

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    def current_access_token(self) -> str:
        """Access token for the next outbound request; never performs I/O."""
        return self._store.current_access_token()

    def _persist(self) -> None:
        try:
            self._store.persist()
        except TokenStoreError as exc:
            logger.warning("Token record could not be saved: %s", exc)

    async def authenticate(self) -> None:
        """Run the device-code flow and adopt the resulting credential."""
        credential = await self._device_client.authenticate()
        self._store.set(credential.access_token, credential.refresh_token, credential.expires_at)
        logger.info("Successfully authenticated! Saving token for future use.")
        self._persist()

    async def reauthenticate(self) -> None:
        """
        Sign in again while the held credential keeps serving requests.

        The store is only replaced once the device flow succeeds; a failed
        attempt leaves the previous access and refresh tokens in place.
        """
        await self.authenticate()

    async def start(self) -> None:
        """
        Bring the credential to a usable state and start background renewal.

        Raises ``AuthError`` when no working credential could be obtained.
        """
        logger.info("Initializing token manager...")

        try:
            self._store.restore()
        except TokenRecordNotFoundError:
            logger.info("No token record found at %s", self._store.path)
        except TokenStoreError as exc:
            logger.warning("Ignoring unreadable token record: %s", exc)

        if not self._store.refresh_token:
            logger.info("No valid refresh token found. Starting new device code flow.")
            await self.authenticate()
        else:
            logger.info("Loaded existing refresh token from disk.")

        try:
            await self._scheduler.refresh_once()
        except AuthError as exc:
            logger.warning(
                "Failed to refresh existing token: %s. The token may be revoked or expired. "
                "Starting new device code flow.",
                exc,
            )
            self._store.clear()
            await self.authenticate()

        self._persist()
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()


__all__ = ["CredentialManager"]
