"""Supplier and specialization models."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from .base import Base


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30))
    area_code = Column(String(3))
    city = Column(String(100))
    state = Column(String(2))
    street = Column(String(255))
    number = Column(String(20))
    complement = Column(String(100))
    neighborhood = Column(String(100))
    zip_code = Column(String(10))
    parts_type = Column(String(20))  # genuine | aftermarket | both
    categories = Column(JSON, default=list)  # specialization tags

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_suppliers_user", "user_id"),
        Index("ix_suppliers_area_code", "area_code"),
        Index("ix_suppliers_city_state", "city", "state"),
    )

    @property
    def is_dispatchable(self) -> bool:
        return bool((self.area_code or "").strip() and (self.phone or "").strip())


class Specialization(Base):
    __tablename__ = "specializations"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_specialization_user_name"),)
