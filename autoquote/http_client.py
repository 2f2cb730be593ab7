"""
http_client.py — Shared outbound HTTP client for AutoQuote

One module-level httpx.AsyncClient with connection pooling. Two services
are called through it: the Evolution API WhatsApp gateway
(connectors/whatsapp.py) and the Claude Messages API
(utils/claude_client.py).

Business Rules:
- Single attempt per call: no retries anywhere
- Read timeout from settings.http_timeout_seconds; connecting is capped
  separately so an unreachable gateway fails fast
- Redirects are not followed: both services answer directly
- The WhatsApp connector imports `http` inside each call, so tests patch
  autoquote.http_client.http

Called by: connectors/whatsapp.py, utils/claude_client.py, main.py (shutdown)
Depends on: config.py
"""

import httpx

from . import __version__
from .config import settings

_LIMITS = httpx.Limits(
    max_connections=50,
    max_keepalive_connections=20,
    keepalive_expiry=30,
)

_TIMEOUT = httpx.Timeout(settings.http_timeout_seconds, connect=10)

http = httpx.AsyncClient(
    timeout=_TIMEOUT,
    limits=_LIMITS,
    follow_redirects=False,
    headers={"User-Agent": f"AutoQuote/{__version__}"},
)


async def close_clients():
    """Close the shared client on app shutdown (lifespan)."""
    try:
        await http.aclose()
    except RuntimeError:
        pass
