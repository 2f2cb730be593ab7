"""
schemas/quotations.py — Pydantic models for the quotation lifecycle

Intake (manual / bulk / report), supplier dispatch, public supplier
responses and counter-offers.

Business Rules:
- Intake takes either an inline vehicle or an existing vehicle_id
- Manual intake needs at least one fully specified part
- Bulk intake needs non-blank text; report intake needs non-blank description
- Dispatch needs at least one supplier id
- Supplier name and phone are required on a public response
- Counter-offer edits set either counter_price or discount_percentage per part

Called by: routers/quotations.py, routers/public.py
Depends on: pydantic, schemas/vehicles.py
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .vehicles import PartFields, VehicleIn


class QuotationPartIn(PartFields):
    """One embedded part, as authored in manual mode."""


class QuotationCreate(BaseModel):
    input_type: Literal["manual", "bulk", "report"] = "manual"
    vehicle: VehicleIn | None = None
    vehicle_id: int | None = None
    parts: list[QuotationPartIn] = Field(default_factory=list)
    bulk_text: str = ""
    report: str = ""

    @model_validator(mode="after")
    def check_mode_content(self):
        if self.vehicle is None and self.vehicle_id is None:
            raise ValueError("Either vehicle or vehicle_id is required")
        if self.input_type == "manual" and not self.parts:
            raise ValueError("At least one part is required")
        if self.input_type == "bulk" and not self.bulk_text.strip():
            raise ValueError("Bulk text must not be blank")
        if self.input_type == "report" and not self.report.strip():
            raise ValueError("Report text must not be blank")
        return self


class QuotationUpdate(QuotationCreate):
    """Edits replace the vehicle fields and the parts list; status resets to pending."""


class BulkPreview(BaseModel):
    text: str


class SupplierFilter(BaseModel):
    area_code: str | None = None
    city: str | None = None
    state: str | None = None
    categories: list[str] = Field(default_factory=list)
    name: str | None = None


class DispatchRequest(BaseModel):
    supplier_ids: list[int] = Field(min_length=1)
    cover_image: str | None = None
    send_sequence: bool = False


# ── Public supplier response ────────────────────────────────────────────


class ResponsePartIn(BaseModel):
    index: int = Field(ge=0)
    available: bool = True
    unit_price: float | None = Field(None, ge=0)
    condition: Literal["new", "used"] | None = None
    notes: str = ""


class SupplierResponseSubmit(BaseModel):
    supplier_name: str
    supplier_phone: str
    parts: list[ResponsePartIn] = Field(default_factory=list)
    delivery_time: str = ""
    notes: str = ""
    payment_method: str = ""

    @field_validator("supplier_name", "supplier_phone")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v


# ── Counter-offers ──────────────────────────────────────────────────────


class CounterPartEdit(BaseModel):
    response_index: int = Field(ge=0)
    counter_price: float | None = Field(None, ge=0)
    discount_percentage: float | None = Field(None, le=100)


class CounterOfferCreate(BaseModel):
    parts: list[CounterPartEdit] = Field(default_factory=list)
    delivery_time: str | None = None
    notes: str = ""


class CounterDecision(BaseModel):
    response_index: int = Field(ge=0)
    accepted: bool = True


class CounterOfferRespond(BaseModel):
    decisions: list[CounterDecision] = Field(default_factory=list)
    notes: str = ""
