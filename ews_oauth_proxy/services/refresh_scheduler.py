"""
Background renewal of the managed credential.

The loop alternates between waiting for the next renewal instant and
exchanging the refresh token. Failures never end the loop: they are logged
and the same exchange is retried after a fixed delay.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from ews_oauth_proxy.clients.errors import AuthError, ProviderRejectedError
from ews_oauth_proxy.clients.identity import IdentityClient, credential_from_grant, utcnow
from ews_oauth_proxy.models.credential import Credential
from ews_oauth_proxy.services.token_store import TokenStore, TokenStoreError

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Keeps the token store's access token ahead of its expiry."""

    _REFRESH_MARGIN = timedelta(minutes=5)
    _RETRY_DELAY = timedelta(minutes=1)

    def __init__(
        self,
        store: TokenStore,
        identity_client: IdentityClient,
        *,
        refresh_margin: timedelta = _REFRESH_MARGIN,
        retry_delay: timedelta = _RETRY_DELAY,
        reauthenticate_after: int = 0,
        on_reauthenticate: Optional[Callable[[], Awaitable[None]]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._identity = identity_client
        self._refresh_margin = refresh_margin
        self._retry_delay = retry_delay
        self._reauthenticate_after = reauthenticate_after
        self.on_reauthenticate = on_reauthenticate
        self._sleep = sleep
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._invalid_grant_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_refresh(self) -> float:
        """Seconds until renewal is due; zero or less means refresh now."""
        refresh_at = self._store.snapshot().refresh_at(self._refresh_margin)
        if refresh_at is None:
            return 0.0
        return (refresh_at - self._clock()).total_seconds()

    async def refresh_once(self) -> Credential:
        """Redeem the held refresh token and store the result."""
        grant = await self._identity.redeem_refresh_token(self._store.refresh_token)
        issued = credential_from_grant(grant, self._clock())
        credential = self._store.set(issued.access_token, issued.refresh_token, issued.expires_at)

        try:
            self._store.persist()
        except TokenStoreError as exc:
            logger.warning("Refreshed token could not be saved: %s", exc)

        refresh_at = credential.refresh_at(self._refresh_margin)
        logger.info(
            "Token refreshed successfully. Next refresh around %s",
            refresh_at.isoformat() if refresh_at else "now",
        )
        return credential

    async def _wait(self, seconds: float) -> bool:
        """Suspend for ``seconds``; returns True when a stop was requested meanwhile."""
        if self._sleep is not None:
            await self._sleep(seconds)
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _handle_failure(self, exc: Exception) -> None:
        if isinstance(exc, ProviderRejectedError) and exc.is_invalid_grant:
            self._invalid_grant_failures += 1
        else:
            self._invalid_grant_failures = 0

        if (
            self._reauthenticate_after
            and self.on_reauthenticate is not None
            and self._invalid_grant_failures >= self._reauthenticate_after
        ):
            logger.warning(
                "Refresh token rejected %d times in a row, starting a new device code flow",
                self._invalid_grant_failures,
            )
            self._invalid_grant_failures = 0
            try:
                await self.on_reauthenticate()
                return
            except Exception as reauth_exc:
                logger.error("Re-authentication failed: %s", reauth_exc)

        logger.warning(
            "Background refresh error: %s. Retrying in %d seconds.",
            exc,
            int(self._retry_delay.total_seconds()),
        )
        await self._wait(self._retry_delay.total_seconds())

    async def run(self) -> None:
        """Renew the credential until :meth:`stop` is called."""
        while not self._stop_event.is_set():
            delay = self.seconds_until_refresh()
            if delay > 0:
                logger.info("Sleeping %.0f seconds until next automated token refresh.", delay)
                if await self._wait(delay):
                    break
            else:
                logger.info("Token expiration is imminent, refreshing now...")

            try:
                await self.refresh_once()
            except AuthError as exc:
                await self._handle_failure(exc)
            except Exception as exc:
                # Nothing may end the loop; the next attempt reuses the same token.
                logger.exception("Unexpected error during background refresh")
                await self._handle_failure(exc)
            else:
                self._invalid_grant_failures = 0

        logger.info("Token refresh loop stopped")

    def start(self) -> asyncio.Task[None]:
        """Launch :meth:`run` as a background task."""
        if self.running:
            raise RuntimeError("Refresh scheduler is already running.")
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="token-refresh")
        return self._task

    async def stop(self) -> None:
        """Request the loop to end and wait for it."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["RefreshScheduler"]
