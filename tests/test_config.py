try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import os
from pathlib import Path

import pytest

from ews_oauth_proxy.__main__ import display_address
from ews_oauth_proxy.core.config import (
    AppSettings,
    IdentitySettings,
    ProxySettings,
    TokenSettings,
    _load_env_file,
)


def _clear_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("EWS_OAUTH_PROXY_"):
            monkeypatch.delenv(key, raising=False)


def _unset_until_teardown(monkeypatch: pytest.MonkeyPatch, *keys: str) -> None:
    """Unset ``keys`` so anything written to them later is undone after the test."""
    for key in keys:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


def test_defaults_match_outlook_online(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_prefixed_env(monkeypatch)

    settings = AppSettings()

    assert settings.identity.tenant_id == "common"
    assert settings.identity.client_id == "d3590ed6-52b3-4102-aeff-aad2292ab01c"
    assert settings.identity.client_secret is None
    assert settings.identity.scope.endswith("offline_access")
    assert settings.identity.request_timeout_seconds == 10.0
    assert settings.tokens.token_file == Path(".token.json")
    assert settings.tokens.refresh_margin_seconds == 300
    assert settings.tokens.retry_delay_seconds == 60
    assert settings.tokens.reauthenticate_after == 0
    assert settings.proxy.listen_address == "127.0.0.1:8443"
    assert settings.proxy.target_url == "https://outlook.office365.com"
    assert not settings.proxy.basic_auth_enabled


def test_prefixed_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_prefixed_env(monkeypatch)
    monkeypatch.setenv("EWS_OAUTH_PROXY_TENANT_ID", "contoso.onmicrosoft.com")
    monkeypatch.setenv("EWS_OAUTH_PROXY_CLIENT_SECRET", "s3cret")
    monkeypatch.setenv("EWS_OAUTH_PROXY_TOKEN_FILE", "/var/lib/proxy/token.json")
    monkeypatch.setenv("EWS_OAUTH_PROXY_REAUTHENTICATE_AFTER", "3")
    monkeypatch.setenv("EWS_OAUTH_PROXY_TARGET_URL", "https://mail.contoso.com/")
    monkeypatch.setenv("EWS_OAUTH_PROXY_USERNAME", "mailuser")
    monkeypatch.setenv("EWS_OAUTH_PROXY_PASSWORD", "pw")

    settings = AppSettings()

    assert settings.identity.tenant_id == "contoso.onmicrosoft.com"
    assert settings.identity.client_secret == "s3cret"
    assert settings.tokens.token_file == Path("/var/lib/proxy/token.json")
    assert settings.tokens.reauthenticate_after == 3
    assert settings.proxy.target_url == "https://mail.contoso.com"
    assert settings.proxy.basic_auth_enabled


def test_env_file_fills_unset_variables_only(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _clear_prefixed_env(monkeypatch)
    env_file = tmp_path / "config.env"
    env_file.write_text(
        "\n".join(
            [
                "# proxy configuration",
                "EWS_OAUTH_PROXY_TENANT_ID=\"contoso\"",
                "EWS_OAUTH_PROXY_SCOPE='https://outlook.office365.com/.default offline_access'",
                "EWS_OAUTH_PROXY_CLIENT_ID = from-file",
                "not a setting",
            ]
        )
    )
    monkeypatch.setenv("EWS_OAUTH_PROXY_CLIENT_ID", "from-environment")
    _unset_until_teardown(monkeypatch, "EWS_OAUTH_PROXY_TENANT_ID", "EWS_OAUTH_PROXY_SCOPE")

    _load_env_file(str(env_file))

    identity = IdentitySettings()
    assert identity.tenant_id == "contoso"
    assert identity.scope == "https://outlook.office365.com/.default offline_access"
    assert identity.client_id == "from-environment"


def test_env_file_path_from_config_variable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _clear_prefixed_env(monkeypatch)
    env_file = tmp_path / "proxy.env"
    env_file.write_text("EWS_OAUTH_PROXY_RETRY_DELAY_SECONDS=15\n")
    monkeypatch.setenv("EWS_OAUTH_PROXY_CONFIG", str(env_file))
    _unset_until_teardown(monkeypatch, "EWS_OAUTH_PROXY_RETRY_DELAY_SECONDS")

    _load_env_file()

    assert TokenSettings().retry_delay_seconds == 15


@pytest.mark.parametrize(
    ("listen_address", "expected_bind", "expected_display"),
    [
        ("127.0.0.1:8443", ("127.0.0.1", 8443), ("127.0.0.1:8443", "")),
        ("0.0.0.0:443", ("0.0.0.0", 443), ("127.0.0.1:443", " (or your server's IP address)")),
        (":9443", ("0.0.0.0", 9443), ("127.0.0.1:9443", " (or your server's IP address)")),
    ],
)
def test_listen_address_parsing(listen_address, expected_bind, expected_display) -> None:
    proxy = ProxySettings(listen_address=listen_address)

    assert proxy.listen_host_port() == expected_bind
    assert display_address(proxy) == expected_display
