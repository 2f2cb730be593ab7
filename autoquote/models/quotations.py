"""Quotation, per-supplier QuotationRequest and CounterOffer models.

Quotation.parts is an ordered JSON list; a part's position in that list is
its identity for responses, counter-offers and purchase order items.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class Quotation(Base):
    __tablename__ = "quotations"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(
        Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    parts = Column(JSON, nullable=False, default=list)
    status = Column(String(20), default="pending")  # pending | in_progress | completed
    input_type = Column(String(10), default="manual")  # manual | bulk | report
    description = Column(Text)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    vehicle = relationship("Vehicle", back_populates="quotations")
    requests = relationship(
        "QuotationRequest",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationRequest.id",
    )
    counter_offers = relationship(
        "CounterOffer", back_populates="quotation", cascade="all, delete-orphan"
    )
    purchase_orders = relationship(
        "PurchaseOrder", back_populates="quotation", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_quotations_user", "user_id"),
        Index("ix_quotations_vehicle", "vehicle_id"),
        Index("ix_quotations_status", "status"),
    )


class QuotationRequest(Base):
    """One supplier's copy of a dispatched quotation: pending → sent → responded."""

    __tablename__ = "quotation_requests"
    id = Column(Integer, primary_key=True)
    quotation_id = Column(
        Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    status = Column(String(20), default="pending")
    cover_image = Column(String(1000))
    response_data = Column(JSON)
    last_error = Column(String(500))
    sent_at = Column(DateTime)
    responded_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    quotation = relationship("Quotation", back_populates="requests")
    supplier = relationship("Supplier")
    counter_offers = relationship(
        "CounterOffer", back_populates="request", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_qr_quotation", "quotation_id"),
        Index("ix_qr_supplier", "supplier_id"),
        Index("ix_qr_status", "status"),
    )


class CounterOffer(Base):
    """Requester's renegotiation of a responded request: pending → accepted | partially_accepted."""

    __tablename__ = "counter_offers"
    id = Column(Integer, primary_key=True)
    quotation_id = Column(
        Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False
    )
    request_id = Column(
        Integer, ForeignKey("quotation_requests.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    status = Column(String(20), default="pending")
    counter_offer_data = Column(JSON, nullable=False)
    response_data = Column(JSON)
    responded_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    quotation = relationship("Quotation", back_populates="counter_offers")
    request = relationship("QuotationRequest", back_populates="counter_offers")
    supplier = relationship("Supplier")

    __table_args__ = (
        Index("ix_counter_offers_request", "request_id"),
        Index("ix_counter_offers_quotation", "quotation_id"),
    )
