"""
FastAPI application entrypoint for the authenticating proxy.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ews_oauth_proxy.api.routes import router as proxy_router
from ews_oauth_proxy.core.config import get_settings
from ews_oauth_proxy.core.logging import configure_logging
from ews_oauth_proxy.dependencies import get_credential_manager, get_upstream_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Obtain a working credential before serving; stop renewal on shutdown."""
    manager = get_credential_manager()
    # Failing here aborts server startup: without a credential nothing can be proxied.
    await manager.start()
    upstream = get_upstream_client()
    try:
        yield
    finally:
        await manager.stop()
        await upstream.aclose()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="EWS OAuth Proxy",
        version="0.1.0",
        description="Forwards Basic-Auth mail client traffic with an OAuth2 bearer token.",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(proxy_router)
    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
