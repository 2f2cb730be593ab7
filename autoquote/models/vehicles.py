"""Vehicle and catalog part models."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(String(20))
    manufacturing_year = Column(Integer)
    model_year = Column(Integer)
    plate = Column(String(20))
    chassis = Column(String(17))
    images = Column(JSON, default=list)  # list of image URLs

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    parts = relationship("Part", back_populates="vehicle", cascade="all, delete-orphan")
    quotations = relationship(
        "Quotation", back_populates="vehicle", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_vehicles_user", "user_id"),
        Index("ix_vehicles_plate", "plate"),
    )


class Part(Base):
    """A part registered against a vehicle (catalog row, outside any quotation)."""

    __tablename__ = "parts"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(
        Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    operation = Column(String(20), nullable=False)  # replace | replace+paint
    code = Column(String(100))
    description = Column(String(500), nullable=False)
    condition = Column(String(20), default="genuine")  # genuine | new | used
    quantity = Column(Integer, nullable=False, default=1)
    painting_hours = Column(Numeric(6, 2), default=0)
    labor_hours = Column(Numeric(6, 2), default=0)
    labor_cost = Column(Numeric(12, 2), default=0)
    part_cost = Column(Numeric(12, 2), default=0)
    notes = Column(Text)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    vehicle = relationship("Vehicle", back_populates="parts")

    __table_args__ = (Index("ix_parts_vehicle", "vehicle_id"),)
