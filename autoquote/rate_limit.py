"""
rate_limit.py — Per-client request limits for AutoQuote

One slowapi Limiter keyed by client address, in-memory storage (a single
process serves the API). Every authenticated route gets the default limit;
the surfaces below carry their own.

Business Rules:
- Supplier response and counter-offer links (routers/public.py) need no
  login, so they use settings.rate_limit_public
- Login (routers/auth.py) is limited to slow down password guessing
- Document extraction and PDF rendering (routers/documents.py) call Claude
  or WeasyPrint and are limited per minute
- RATE_LIMIT_ENABLED=false turns every limit off (tests)

Called by: main.py (app.state.limiter, 429 handler), routers/public.py,
           routers/auth.py, routers/documents.py
Depends on: config.py
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

PUBLIC_LIMIT = settings.rate_limit_public
LOGIN_LIMIT = "10/minute"
DOCUMENT_LIMIT = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
