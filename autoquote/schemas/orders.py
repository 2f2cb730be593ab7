"""
schemas/orders.py — Pydantic models for purchase order generation and dispatch

Business Rules:
- Manual generation takes (request_id, part_index) selections, at least one
- Best-price generation takes part descriptions, at least one
- Delivery workshop, delivery time and notes are optional on both paths

Called by: routers/orders.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class OrderSelection(BaseModel):
    request_id: int
    part_index: int = Field(ge=0)


class OrderOptions(BaseModel):
    workshop_id: int | None = None
    delivery_time: str | None = None
    notes: str | None = None


class GenerateFromSelection(OrderOptions):
    selections: list[OrderSelection] = Field(min_length=1)


class GenerateFromBestPrices(OrderOptions):
    descriptions: list[str] = Field(min_length=1)

    @field_validator("descriptions")
    @classmethod
    def strip_descriptions(cls, v: list[str]) -> list[str]:
        cleaned = [d.strip() for d in v if d and d.strip()]
        if not cleaned:
            raise ValueError("At least one part description is required")
        return cleaned


class OrderUpdate(OrderOptions):
    pass


class OrderSend(BaseModel):
    include_vehicle_image: bool = False
