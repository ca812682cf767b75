"""Service layer exports."""

from .credential_manager import CredentialManager
from .refresh_scheduler import RefreshScheduler
from .token_cipher import TokenCipherService
from .token_store import TokenRecordNotFoundError, TokenStore, TokenStoreError

__all__ = [
    "CredentialManager",
    "RefreshScheduler",
    "TokenCipherService",
    "TokenRecordNotFoundError",
    "TokenStore",
    "TokenStoreError",
]
