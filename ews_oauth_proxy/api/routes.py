"""
FastAPI routes forwarding client traffic to the target server.

Whatever ``Authorization`` header the mail client sent is replaced by the
managed bearer token before the request leaves the proxy.
"""

from __future__ import annotations

import logging
import secrets
from http import HTTPStatus
from typing import Annotated, Iterable, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.background import BackgroundTask

from ews_oauth_proxy.core.config import AppSettings
from ews_oauth_proxy.dependencies import (
    get_app_settings,
    get_credential_manager,
    get_upstream_client,
)
from ews_oauth_proxy.services import CredentialManager

router = APIRouter()
logger = logging.getLogger(__name__)

_basic_auth = HTTPBasic(auto_error=False, realm="ews-oauth-proxy")

# RFC 9110 section 7.6.1 connection-specific headers, plus those rewritten here.
_HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
_REWRITTEN_REQUEST_HEADERS = frozenset({"authorization", "host", "content-length"})

_PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _filter_headers(
    headers: Iterable[tuple[str, str]], drop: frozenset[str]
) -> list[tuple[str, str]]:
    return [(name, value) for name, value in headers if name.lower() not in drop]


def require_client_credentials(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    credentials: Annotated[Optional[HTTPBasicCredentials], Depends(_basic_auth)],
) -> None:
    """Reject callers whose Basic credentials do not match the configured pair."""
    proxy = settings.proxy
    if not proxy.basic_auth_enabled:
        return

    authorized = credentials is not None and (
        secrets.compare_digest(credentials.username.encode("utf-8"), proxy.username.encode("utf-8"))
        & secrets.compare_digest(credentials.password.encode("utf-8"), proxy.password.encode("utf-8"))
    )
    if not authorized:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": 'Basic realm="ews-oauth-proxy"'},
        )


@router.api_route(
    "/{path:path}",
    methods=_PROXIED_METHODS,
    dependencies=[Depends(require_client_credentials)],
    include_in_schema=False,
)
async def forward(
    request: Request,
    path: str,
    manager: Annotated[CredentialManager, Depends(get_credential_manager)],
    upstream: Annotated[httpx.AsyncClient, Depends(get_upstream_client)],
) -> Response:
    """Relay the request upstream with the managed bearer token attached."""
    headers = _filter_headers(
        request.headers.items(), _HOP_BY_HOP_HEADERS | _REWRITTEN_REQUEST_HEADERS
    )
    headers.append(("Authorization", f"Bearer {manager.current_access_token()}"))

    body = await request.body()
    upstream_request = upstream.build_request(
        request.method,
        f"/{path}",
        params=request.query_params.multi_items(),
        headers=headers,
        content=body or None,
    )

    try:
        upstream_response = await upstream.send(upstream_request, stream=True)
    except httpx.HTTPError as exc:
        logger.warning("Proxy error forwarding %s /%s: %s", request.method, path, exc)
        return Response(status_code=HTTPStatus.BAD_GATEWAY)

    response = StreamingResponse(
        upstream_response.aiter_raw(),
        status_code=upstream_response.status_code,
        background=BackgroundTask(upstream_response.aclose),
    )
    # Repeated headers such as Set-Cookie must survive, so bypass the mapping API.
    response.raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in _filter_headers(
            upstream_response.headers.multi_items(), _HOP_BY_HOP_HEADERS
        )
    ]
    return response


__all__ = ["forward", "require_client_credentials", "router"]
