"""
Factory functions providing the credential lifecycle and the upstream client.

Each factory builds a process-wide singleton; routes receive them as FastAPI
dependencies so tests can override them.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

import httpx

from ews_oauth_proxy.clients import DeviceCodeClient
from ews_oauth_proxy.dependencies.config import get_app_settings
from ews_oauth_proxy.services import (
    CredentialManager,
    RefreshScheduler,
    TokenCipherService,
    TokenStore,
)


@lru_cache()
def get_token_cipher_service() -> Optional[TokenCipherService]:
    """Provide the refresh token cipher when an encryption secret is configured."""
    secret = get_app_settings().tokens.token_encryption_secret
    if not secret:
        return None
    return TokenCipherService(secret=secret)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the process-wide token store."""
    settings = get_app_settings()
    return TokenStore(settings.tokens.token_file, cipher=get_token_cipher_service())


@lru_cache()
def get_device_code_client() -> DeviceCodeClient:
    """Create a singleton identity client for the configured tenant."""
    return DeviceCodeClient(get_app_settings().identity)


@lru_cache()
def get_credential_manager() -> CredentialManager:
    """Wire store, identity client and refresh scheduler together."""
    tokens = get_app_settings().tokens
    store = get_token_store()
    device_client = get_device_code_client()
    scheduler = RefreshScheduler(
        store,
        device_client,
        refresh_margin=timedelta(seconds=tokens.refresh_margin_seconds),
        retry_delay=timedelta(seconds=tokens.retry_delay_seconds),
        reauthenticate_after=tokens.reauthenticate_after,
    )
    manager = CredentialManager(store, device_client, scheduler)
    scheduler.on_reauthenticate = manager.reauthenticate
    return manager


@lru_cache()
def get_upstream_client() -> httpx.AsyncClient:
    """Provide the shared client used to forward requests to the target server."""
    proxy = get_app_settings().proxy
    return httpx.AsyncClient(
        base_url=proxy.target_url,
        timeout=httpx.Timeout(proxy.upstream_timeout_seconds, connect=10.0),
        follow_redirects=False,
    )


__all__ = [
    "get_credential_manager",
    "get_device_code_client",
    "get_token_cipher_service",
    "get_token_store",
    "get_upstream_client",
]
