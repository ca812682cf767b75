"""
Serve the proxy over TLS.

Usage:

    python -m ews_oauth_proxy

All settings come from ``EWS_OAUTH_PROXY_*`` environment variables or the env
file named by ``EWS_OAUTH_PROXY_CONFIG`` (default ``config.env``).
"""

from __future__ import annotations

import logging

import uvicorn

from ews_oauth_proxy.core.config import ProxySettings, get_settings
from ews_oauth_proxy.core.logging import configure_logging

logger = logging.getLogger("ews_oauth_proxy")


def display_address(proxy: ProxySettings) -> tuple[str, str]:
    """Address a mail client on this machine should use, plus a hint for remote clients."""
    host, port = proxy.listen_host_port()
    if host in ("0.0.0.0", ""):
        return f"127.0.0.1:{port}", " (or your server's IP address)"
    return f"{host}:{port}", ""


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    proxy = settings.proxy
    host, port = proxy.listen_host_port()
    shown, suffix = display_address(proxy)

    logger.info("ews-oauth-proxy starting on https://%s", proxy.listen_address)
    logger.info(
        "Point your mail client's Exchange Server URL to: https://%s/EWS/Exchange.asmx%s",
        shown,
        suffix,
    )

    uvicorn.run(
        "ews_oauth_proxy.main:app",
        host=host,
        port=port,
        ssl_certfile=str(proxy.cert_file),
        ssl_keyfile=str(proxy.key_file),
        log_config=None,
    )


if __name__ == "__main__":
    main()
