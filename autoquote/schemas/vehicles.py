"""
schemas/vehicles.py — Pydantic models for vehicles and catalog parts

Business Rules:
- Brand and model are required, whitespace-only rejected
- Chassis (VIN) is optional; when present it must be 17 letters/digits, stored upper-case
- Part quantity >= 1; painting/labor hours and costs >= 0

Called by: routers/vehicles.py, routers/parts.py, schemas/quotations.py
Depends on: pydantic
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Operation = Literal["replace", "replace+paint"]
Condition = Literal["genuine", "new", "used"]

_CHASSIS_RE = re.compile(r"^[A-Z0-9]{17}$")


def clean_chassis(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip().upper()
    if not v:
        return None
    if not _CHASSIS_RE.match(v):
        raise ValueError("Chassis must be exactly 17 letters or digits")
    return v


class VehicleIn(BaseModel):
    brand: str
    model: str
    year: str = ""
    manufacturing_year: int | None = None
    model_year: int | None = None
    plate: str = ""
    chassis: str | None = None
    images: list[str] = Field(default_factory=list)

    @field_validator("brand", "model")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

    @field_validator("plate")
    @classmethod
    def normalize_plate(cls, v: str) -> str:
        return v.strip().upper().replace(" ", "")

    @field_validator("chassis")
    @classmethod
    def valid_chassis(cls, v: str | None) -> str | None:
        return clean_chassis(v)


class VehicleUpdate(BaseModel):
    brand: str | None = None
    model: str | None = None
    year: str | None = None
    manufacturing_year: int | None = None
    model_year: int | None = None
    plate: str | None = None
    chassis: str | None = None
    images: list[str] | None = None

    @field_validator("chassis")
    @classmethod
    def valid_chassis(cls, v: str | None) -> str | None:
        return clean_chassis(v)


class PartFields(BaseModel):
    """Fields shared by catalog parts and embedded quotation parts."""
    operation: Operation
    code: str
    description: str
    condition: Condition
    quantity: int = Field(ge=1)
    painting_hours: float = Field(0, ge=0)
    labor_hours: float = Field(0, ge=0)
    labor_cost: float = Field(0, ge=0)
    part_cost: float = Field(0, ge=0)
    notes: str = ""

    @field_validator("code", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v


class PartIn(PartFields):
    vehicle_id: int


class PartUpdate(BaseModel):
    operation: Operation | None = None
    code: str | None = None
    description: str | None = None
    condition: Condition | None = None
    quantity: int | None = Field(None, ge=1)
    painting_hours: float | None = Field(None, ge=0)
    labor_hours: float | None = Field(None, ge=0)
    labor_cost: float | None = Field(None, ge=0)
    part_cost: float | None = Field(None, ge=0)
    notes: str | None = None
