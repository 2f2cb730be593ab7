"""Auth, user and company membership models."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    password_hash = Column(String(255))
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    memberships = relationship(
        "CompanyUser", back_populates="user", cascade="all, delete-orphan"
    )


class Company(Base):
    """A repair shop group; users belong to companies through CompanyUser."""

    __tablename__ = "companies"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    state = Column(String(2))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    members = relationship(
        "CompanyUser", back_populates="company", cascade="all, delete-orphan"
    )


class CompanyUser(Base):
    __tablename__ = "company_users"
    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="member")  # admin | member
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    company = relationship("Company", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        Index("ix_company_users_company", "company_id"),
        Index("ix_company_users_user", "user_id"),
    )
