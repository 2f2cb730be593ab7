"""
routers/auth.py — Authentication & Session Routes

Email + password login into the signed session cookie, logout and the
current-user endpoint.

Business Rules:
- Email normalized to lowercase on login
- Deactivated users cannot log in
- Login is rate limited per client address

Called by: main.py (router mount)
Depends on: dependencies, services/auth_service
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import User
from ..rate_limit import LOGIN_LIMIT, limiter
from ..schemas.settings import LoginIn
from ..services.auth_service import authenticate, company_id_for

router = APIRouter(tags=["auth"])


def _user_dict(user: User, db: Session) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "is_admin": bool(user.is_admin),
        "company_id": company_id_for(db, user.id),
    }


@router.post("/auth/login")
@limiter.limit(LOGIN_LIMIT)
async def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    if not user:
        raise HTTPException(401, "Invalid email or password")
    request.session["user_id"] = user.id
    logger.info(f"User {user.id} logged in")
    return _user_dict(user, db)


@router.post("/auth/logout")
async def logout(request: Request):
    request.session.clear()
    return {"ok": True}


@router.get("/auth/me")
async def me(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return _user_dict(user, db)
