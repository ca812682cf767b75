"""
Root logger setup for the proxy process.

One line per record on stdout, shared by the server, the forwarding route and
the token lifecycle. httpx's per-request logging is kept quiet.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger at ``level`` (for example ``"DEBUG"``)."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request line at INFO, which would include token endpoints.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
