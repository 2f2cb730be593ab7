"""Per-user configuration models — message templates, abbreviations, WhatsApp gateway, workshops."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from ..utils.encrypted_type import EncryptedText
from .base import Base


class MessageTemplate(Base):
    __tablename__ = "message_templates"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False, default=1)
    is_default = Column(Boolean, default=False)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("ix_message_templates_user_seq", "user_id", "sequence"),)


class TextAbbreviation(Base):
    __tablename__ = "text_abbreviations"
    id = Column(Integer, primary_key=True)
    abbreviation = Column(String(50), nullable=False)  # stored upper-case
    full_text = Column(String(255), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("user_id", "abbreviation", name="uq_abbreviation_user"),
    )


class WhatsAppConfig(Base):
    """Evolution API credentials: base URL + API key + instance name."""

    __tablename__ = "whatsapp_configs"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"))
    evolution_api_url = Column(String(500), nullable=False)
    evolution_api_key = Column(EncryptedText, nullable=False)
    instance_name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class Workshop(Base):
    """A repair shop location, used as the delivery address on purchase orders."""

    __tablename__ = "workshops"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500))
    city = Column(String(100))
    state = Column(String(2))
    phone = Column(String(30))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
