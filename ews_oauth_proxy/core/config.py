"""
Application configuration models and helpers.

Centralizes settings management so the credential lifecycle and the proxy
surface share a consistent configuration surface. Every variable carries the
``EWS_OAUTH_PROXY_`` prefix and may also be supplied through an env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "EWS_OAUTH_PROXY_"
CONFIG_FILE_ENV = f"{ENV_PREFIX}CONFIG"
DEFAULT_CONFIG_FILE = "config.env"


def _load_env_file(path: Optional[str] = None) -> None:
    """Best-effort load key=value pairs from an env file without extra deps."""
    env_path = Path(path or os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE))
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip()
        if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
            cleaned = cleaned[1:-1]
        os.environ[key] = cleaned


_load_env_file()


class IdentitySettings(BaseSettings):
    """Identity provider endpoints and the registered application."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    tenant_id: str = "common"
    client_id: str = Field(
        "d3590ed6-52b3-4102-aeff-aad2292ab01c",
        description="Defaults to the Outlook desktop public client.",
    )
    client_secret: Optional[str] = None
    device_code_url: str = Field(
        "https://login.microsoftonline.com/%s/oauth2/v2.0/devicecode",
        description="Template; '%s' is replaced by the tenant identifier.",
    )
    token_url: str = Field(
        "https://login.microsoftonline.com/%s/oauth2/v2.0/token",
        description="Template; '%s' is replaced by the tenant identifier.",
    )
    scope: str = "https://outlook.office365.com/EWS.AccessAsUser.All offline_access"
    request_timeout_seconds: float = 10.0


class TokenSettings(BaseSettings):
    """Persistence and renewal policy for the managed credential."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    token_file: Path = Path(".token.json")
    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting the stored refresh token."
        ),
    )
    refresh_margin_seconds: int = 300
    retry_delay_seconds: int = 60
    reauthenticate_after: int = Field(
        0,
        ge=0,
        description=(
            "Consecutive invalid_grant refresh failures before the device flow is re-run. "
            "Zero retries forever."
        ),
    )


class ProxySettings(BaseSettings):
    """Listener, upstream and client gate configuration."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    listen_address: str = "127.0.0.1:8443"
    cert_file: Path = Path("certs/cert.pem")
    key_file: Path = Path("certs/key.pem")
    target_url: str = "https://outlook.office365.com"
    upstream_timeout_seconds: float = 300.0
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("target_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def basic_auth_enabled(self) -> bool:
        return bool(self.username and self.password)

    def listen_host_port(self) -> Tuple[str, int]:
        """Split ``listen_address`` into host and port; an empty host binds all interfaces."""
        host, _, port = self.listen_address.rpartition(":")
        return host or "0.0.0.0", int(port)


class AppSettings(BaseSettings):
    """Root settings object for the proxy application."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    log_level: str = "INFO"
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    tokens: TokenSettings = Field(default_factory=TokenSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "IdentitySettings",
    "ProxySettings",
    "TokenSettings",
    "get_settings",
]
