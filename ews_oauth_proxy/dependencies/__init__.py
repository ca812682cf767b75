"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_manager,
    get_device_code_client,
    get_token_cipher_service,
    get_token_store,
    get_upstream_client,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_credential_manager",
    "get_device_code_client",
    "get_token_cipher_service",
    "get_token_store",
    "get_upstream_client",
]
