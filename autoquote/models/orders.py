"""Purchase order models."""

from datetime import datetime, timezone

from sqlalchemy import (
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


class PurchaseOrder(Base):
    """Supplier-scoped commitment to buy priced parts: pending → sending → sent."""

    __tablename__ = "purchase_orders"
    id = Column(Integer, primary_key=True)
    quotation_id = Column(
        Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="SET NULL"))
    status = Column(String(20), default="pending")
    total_amount = Column(Numeric(12, 2), default=0)
    delivery_time = Column(String(100))
    notes = Column(Text)
    last_error = Column(String(500))
    sent_at = Column(DateTime)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    quotation = relationship("Quotation", back_populates="purchase_orders")
    supplier = relationship("Supplier")
    workshop = relationship("Workshop")
    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )

    __table_args__ = (
        Index("ix_po_quotation", "quotation_id"),
        Index("ix_po_supplier", "supplier_id"),
        Index("ix_po_user", "user_id"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    id = Column(Integer, primary_key=True)
    purchase_order_id = Column(
        Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
    )
    part_description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    quotation_part_index = Column(Integer)
    request_id = Column(Integer)  # originating QuotationRequest
    notes = Column(Text)

    purchase_order = relationship("PurchaseOrder", back_populates="items")

    __table_args__ = (Index("ix_po_items_order", "purchase_order_id"),)
