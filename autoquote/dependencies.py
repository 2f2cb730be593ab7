"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for authentication, authorization and
the application-owned abbreviation cache. All routers import from here
instead of defining their own auth logic.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if deactivated
- require_admin raises 403 if user is not an admin
- The abbreviation cache lives on app.state, one per process

Called by: all routers
Depends on: models, database
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .services.abbreviations import AbbreviationCache

log = logging.getLogger("autoquote.dependencies")


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    user = db.get(User, uid)
    if user is None:
        request.session.clear()
    return user


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if deactivated."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        request.session.clear()
        raise HTTPException(403, "Account deactivated, contact an administrator")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    """Dependency: raises 403 if user is not an admin."""
    if not user.is_admin:
        raise HTTPException(403, "Admin access required")
    return user


# ── Application state ─────────────────────────────────────────────────


def get_abbreviation_cache(request: Request) -> AbbreviationCache:
    cache = getattr(request.app.state, "abbreviations", None)
    if cache is None:
        cache = AbbreviationCache()
        request.app.state.abbreviations = cache
    return cache
