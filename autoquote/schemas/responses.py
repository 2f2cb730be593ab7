"""
schemas/responses.py — Shared response models for OpenAPI documentation

Base response wrappers and the typed responses of the quotation
lifecycle endpoints. Used as response_model= on router decorators.

Called by: routers/*.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── Base Wrappers ───────────────────────────────────────────────────────


class OkResponse(BaseModel):
    ok: bool = True


class PaginatedResponse(BaseModel):
    total: int = 0
    limit: int = 50
    offset: int = 0


# ── Quotations ──────────────────────────────────────────────────────────


class QuotationListResponse(PaginatedResponse):
    quotations: list[dict] = Field(default_factory=list)


class DispatchResponse(BaseModel, extra="allow"):
    quotation_id: int
    created: int = 0
    sent: int = 0
    request_ids: list[int] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    failures: list[dict] = Field(default_factory=list)


class BestPriceResponse(BaseModel, extra="allow"):
    quotation_id: int
    best_prices: list[dict] = Field(default_factory=list)


# ── Counter-offers ──────────────────────────────────────────────────────


class CounterOfferCreatedResponse(BaseModel, extra="allow"):
    id: int
    status: str = "pending"
    total_price: float = 0
    response_link: str = ""
    whatsapp_link: str = ""


# ── Purchase Orders ─────────────────────────────────────────────────────


class GeneratedOrdersResponse(BaseModel, extra="allow"):
    orders: list[dict] = Field(default_factory=list)
    quotation_status: str = ""


class OrderSendResponse(BaseModel, extra="allow"):
    id: int
    status: str
    image_sent: bool = False
    error: str | None = None
