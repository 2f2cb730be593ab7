"""
auth_service.py — Password hashing and login checks

Business Rules:
- Passwords are stored as bcrypt hashes (passlib CryptContext); cost from
  settings.bcrypt_rounds
- Unknown or malformed stored hashes never verify
- Emails are normalized to lowercase
- Deactivated users cannot log in
- A user's company is the one of their first membership

Called by: routers/auth.py, routers/companies.py, scripts
Depends on: models.User, models.CompanyUser
"""

import logging

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..models import CompanyUser, User

log = logging.getLogger("autoquote.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, encoded: str | None) -> bool:
    if not encoded:
        return False
    try:
        return pwd_context.verify(password, encoded)
    except ValueError:
        return False


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        log.info(f"Login failed for {email.strip().lower()}")
        return None
    if not user.is_active:
        log.info(f"Login refused for deactivated user {user.id}")
        return None
    return user


def create_user(db: Session, email: str, password: str, name: str = "", is_admin: bool = False) -> User:
    email = email.strip().lower()
    if db.query(User).filter_by(email=email).first():
        raise ValueError(f"User {email} already exists")
    user = User(email=email, name=name or email, password_hash=hash_password(password), is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def company_id_for(db: Session, user_id: int) -> int | None:
    membership = (
        db.query(CompanyUser).filter_by(user_id=user_id).order_by(CompanyUser.id).first()
    )
    return membership.company_id if membership else None
