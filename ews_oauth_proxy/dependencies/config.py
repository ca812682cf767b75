"""
FastAPI dependency returning the proxy configuration.

Routes read settings through this function so tests can swap in a differently
configured client gate via ``app.dependency_overrides``.
"""

from ews_oauth_proxy.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Process-wide settings, loaded once."""
    return get_settings()


__all__ = ["get_app_settings"]
