"""
quotation_repository.py — Named read paths for quotations and their relations

Joins live here instead of being rebuilt at each call site. The composed
QuotationBundle carries a quotation with its vehicle and its supplier
requests (ordered by creation) in one query.

Called by: routers/quotations, routers/public, routers/orders, services/*
Depends on: models
"""

from dataclasses import dataclass, field

from sqlalchemy.orm import Session, joinedload, selectinload

from ..models import Quotation, QuotationRequest, Vehicle


@dataclass
class QuotationBundle:
    quotation: Quotation
    vehicle: Vehicle
    requests: list[QuotationRequest] = field(default_factory=list)

    @property
    def responded(self) -> list[QuotationRequest]:
        return [r for r in self.requests if r.status == "responded"]

    def to_dict(self) -> dict:
        data = quotation_to_dict(self.quotation)
        data["vehicle"] = vehicle_to_dict(self.vehicle)
        data["requests"] = [request_to_dict(r) for r in self.requests]
        return data


def _iso(dt):
    return dt.isoformat() if dt else None


def vehicle_to_dict(v: Vehicle | None) -> dict | None:
    if v is None:
        return None
    return {
        "id": v.id,
        "brand": v.brand,
        "model": v.model,
        "year": v.year or "",
        "manufacturing_year": v.manufacturing_year,
        "model_year": v.model_year,
        "plate": v.plate or "",
        "chassis": v.chassis,
        "images": list(v.images or []),
        "created_at": _iso(v.created_at),
    }


def quotation_to_dict(q: Quotation) -> dict:
    return {
        "id": q.id,
        "vehicle_id": q.vehicle_id,
        "status": q.status,
        "input_type": q.input_type,
        "description": q.description,
        "parts": list(q.parts or []),
        "created_at": _iso(q.created_at),
        "updated_at": _iso(q.updated_at),
    }


def request_to_dict(r: QuotationRequest) -> dict:
    supplier = r.supplier
    return {
        "id": r.id,
        "quotation_id": r.quotation_id,
        "supplier_id": r.supplier_id,
        "supplier_name": supplier.name if supplier else "",
        "status": r.status,
        "cover_image": r.cover_image,
        "response_data": r.response_data,
        "last_error": r.last_error,
        "sent_at": _iso(r.sent_at),
        "responded_at": _iso(r.responded_at),
        "created_at": _iso(r.created_at),
    }


def get_quotation_for_user(db: Session, user_id: int, quotation_id: int) -> Quotation | None:
    return db.query(Quotation).filter_by(id=quotation_id, user_id=user_id).first()


def get_quotation_with_vehicle_and_requests(
    db: Session, quotation_id: int, user_id: int | None = None
) -> QuotationBundle | None:
    """Load a quotation, its vehicle and its requests (creation order).

    `user_id=None` skips the ownership filter; only the public supplier
    endpoints call it that way, and they always check the request id too.
    """
    q = (
        db.query(Quotation)
        .options(
            joinedload(Quotation.vehicle),
            selectinload(Quotation.requests).joinedload(QuotationRequest.supplier),
        )
        .filter(Quotation.id == quotation_id)
    )
    if user_id is not None:
        q = q.filter(Quotation.user_id == user_id)
    quotation = q.first()
    if quotation is None:
        return None
    requests = sorted(quotation.requests, key=lambda r: r.id)
    return QuotationBundle(quotation=quotation, vehicle=quotation.vehicle, requests=requests)


def get_request_for_quotation(
    db: Session, quotation_id: int, request_id: int
) -> QuotationRequest | None:
    return (
        db.query(QuotationRequest)
        .options(joinedload(QuotationRequest.supplier))
        .filter_by(id=request_id, quotation_id=quotation_id)
        .first()
    )
