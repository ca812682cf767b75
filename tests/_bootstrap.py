"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "EWS_OAUTH_PROXY_CONFIG": str(PROJECT_ROOT / "tests" / "missing-config.env"),
    "EWS_OAUTH_PROXY_TENANT_ID": "test-tenant",
    "EWS_OAUTH_PROXY_CLIENT_ID": "test-client-id",
    "EWS_OAUTH_PROXY_TARGET_URL": "https://mail.example.com",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
