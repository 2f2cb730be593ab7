"""
schemas/settings.py — Pydantic models for per-user configuration

Message templates, text abbreviations, WhatsApp gateway credentials,
workshops, specializations, suppliers and companies.

Called by: routers/settings.py, routers/suppliers.py, routers/companies.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Field must not be blank")
    return v


class TemplateIn(BaseModel):
    name: str
    content: str
    is_default: bool = False

    @field_validator("name", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class TemplateUpdate(BaseModel):
    name: str | None = None
    content: str | None = None
    is_default: bool | None = None


class TemplateReorder(BaseModel):
    sequence: int = Field(ge=1)


class AbbreviationIn(BaseModel):
    abbreviation: str
    full_text: str

    @field_validator("abbreviation")
    @classmethod
    def upper_abbreviation(cls, v: str) -> str:
        return _not_blank(v).upper()

    @field_validator("full_text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class ExpandText(BaseModel):
    text: str


class WhatsAppConfigIn(BaseModel):
    evolution_api_url: str
    evolution_api_key: str
    instance_name: str
    company_id: int | None = None

    @field_validator("evolution_api_url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        v = _not_blank(v).rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("evolution_api_key", "instance_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class WorkshopIn(BaseModel):
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    phone: str = ""

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class SpecializationIn(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class SupplierIn(BaseModel):
    name: str
    phone: str = ""
    area_code: str = ""
    city: str = ""
    state: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    zip_code: str = ""
    parts_type: Literal["genuine", "aftermarket", "both"] | None = None
    categories: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.strip().upper()


class SupplierUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    area_code: str | None = None
    city: str | None = None
    state: str | None = None
    street: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    zip_code: str | None = None
    parts_type: Literal["genuine", "aftermarket", "both"] | None = None
    categories: list[str] | None = None


class CompanyIn(BaseModel):
    name: str
    state: str = ""

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _not_blank(v)


class CompanyMemberIn(BaseModel):
    email: str
    role: Literal["admin", "member"] = "member"


class LoginIn(BaseModel):
    email: str
    password: str
