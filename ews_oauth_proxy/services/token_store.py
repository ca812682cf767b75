"""
Authoritative holder of the managed credential.

The request path reads the access token on every proxied request while the
refresh loop replaces the credential in the background. Only the refresh
token is ever written to disk.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from ews_oauth_proxy.models.credential import Credential
from ews_oauth_proxy.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_RECORD_FIELD = "refresh_token"
_ENCRYPTED_RECORD_FIELD = "refresh_token_encrypted"
_RECORD_MODE = 0o600


class TokenStoreError(Exception):
    """Raised when the durable token record cannot be read or written."""


class TokenRecordNotFoundError(TokenStoreError):
    """Raised when no durable token record exists yet."""


class TokenStore:
    """Thread-safe credential holder backed by a single-field JSON record."""

    def __init__(
        self,
        token_file: Path | str,
        *,
        cipher: Optional[TokenCipherService] = None,
    ) -> None:
        self._path = Path(token_file)
        self._cipher = cipher
        self._lock = threading.Lock()
        self._credential = Credential()

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> Credential:
        """
        Return the most recently stored credential.

        Reads share the writers' lock, so they are serialized, but the lock is
        held only while the snapshot reference is copied.
        """
        with self._lock:
            return self._credential

    def current_access_token(self) -> str:
        """Latest known access token; may be empty or stale."""
        return self.snapshot().access_token

    @property
    def refresh_token(self) -> str:
        return self.snapshot().refresh_token

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.snapshot().expires_at

    def set(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> Credential:
        """Replace the credential; an empty ``refresh_token`` keeps the current one."""
        with self._lock:
            self._credential = Credential(
                access_token=access_token,
                refresh_token=refresh_token or self._credential.refresh_token,
                expires_at=expires_at,
            )
            return self._credential

    def clear(self) -> None:
        """Forget the credential so the next startup step re-authenticates."""
        with self._lock:
            self._credential = Credential()

    def persist(self) -> None:
        """Overwrite the durable record with the current refresh token."""
        refresh_token = self.refresh_token
        if self._cipher is not None:
            record = {_ENCRYPTED_RECORD_FIELD: self._cipher.encrypt(refresh_token)}
        else:
            record = {_RECORD_FIELD: refresh_token}

        directory = self._path.parent
        tmp_path: Optional[str] = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            os.fchmod(fd, _RECORD_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, indent=2)
            os.replace(tmp_path, self._path)
            tmp_path = None
        except OSError as exc:
            raise TokenStoreError(f"Failed to write token record {self._path}: {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug("Refresh token written to %s", self._path)

    def restore(self) -> None:
        """
        Load the refresh token from the durable record.

        The access token and expiry stay empty, so a refresh is required
        before the credential is usable.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TokenRecordNotFoundError(f"No token record at {self._path}") from exc
        except OSError as exc:
            raise TokenStoreError(f"Failed to read token record {self._path}: {exc}") from exc

        try:
            record = json.loads(raw)
        except ValueError as exc:
            raise TokenStoreError(f"Token record {self._path} is not valid JSON") from exc
        if not isinstance(record, dict):
            raise TokenStoreError(f"Token record {self._path} has an unexpected layout")

        refresh_token = record.get(_RECORD_FIELD) or ""
        encrypted = record.get(_ENCRYPTED_RECORD_FIELD)
        if encrypted:
            if self._cipher is None:
                raise TokenStoreError(
                    "Token record is encrypted but no encryption secret is configured."
                )
            try:
                refresh_token = self._cipher.decrypt(encrypted)
            except ValueError as exc:
                raise TokenStoreError(str(exc)) from exc

        if not isinstance(refresh_token, str):
            raise TokenStoreError(f"Token record {self._path} has an unexpected layout")

        with self._lock:
            self._credential = Credential(refresh_token=refresh_token)


__all__ = ["TokenRecordNotFoundError", "TokenStore", "TokenStoreError"]
