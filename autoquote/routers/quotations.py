"""
routers/quotations.py — Quotation intake, dispatch, comparison and counter-offers

Business Rules:
- Every quotation route is scoped to the authenticated user
- Intake: manual / bulk / report modes; editing resets status to pending
- Dispatch rejects when no selected supplier has area code and phone, or
  when the user has no WhatsApp configuration (400, nothing written)
- Per-supplier send failures are returned in the dispatch result, not raised
- Resending a responded request is a 409
- Best prices and the comparison view only read responded requests
- A counter-offer needs a responded request (409 otherwise) and returns
  the wa.me link the operator opens to notify the supplier

Called by: main.py (router mount)
Depends on: services/intake_service, services/dispatch_service,
            services/pricing, services/counter_offer_service,
            services/quotation_repository
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_abbreviation_cache, require_user
from ..models import CounterOffer, Quotation, User
from ..schemas.quotations import (
    BulkPreview,
    CounterOfferCreate,
    DispatchRequest,
    QuotationCreate,
    QuotationUpdate,
    SupplierFilter,
)
from ..schemas.responses import (
    BestPriceResponse,
    CounterOfferCreatedResponse,
    DispatchResponse,
    OkResponse,
    QuotationListResponse,
)
from ..services import counter_offer_service, dispatch_service, intake_service
from ..services.abbreviations import AbbreviationCache
from ..services.part_parser import parse_bulk_text
from ..services.pricing import compare_responses, compute_best_prices
from ..services.quotation_repository import (
    QuotationBundle,
    get_quotation_for_user,
    get_quotation_with_vehicle_and_requests,
    get_request_for_quotation,
    quotation_to_dict,
    vehicle_to_dict,
)

router = APIRouter(tags=["quotations"])


def _bundle(db: Session, user: User, quotation_id: int) -> QuotationBundle:
    bundle = get_quotation_with_vehicle_and_requests(db, quotation_id, user.id)
    if bundle is None:
        raise HTTPException(404, "Quotation not found")
    return bundle


def _quotation(db: Session, user: User, quotation_id: int) -> Quotation:
    quotation = get_quotation_for_user(db, user.id, quotation_id)
    if quotation is None:
        raise HTTPException(404, "Quotation not found")
    return quotation


def counter_offer_to_dict(co: CounterOffer) -> dict:
    return {
        "id": co.id,
        "quotation_id": co.quotation_id,
        "request_id": co.request_id,
        "supplier_id": co.supplier_id,
        "status": co.status,
        "counter_offer_data": co.counter_offer_data,
        "response_data": co.response_data,
        "responded_at": co.responded_at.isoformat() if co.responded_at else None,
        "created_at": co.created_at.isoformat() if co.created_at else None,
    }


# ── Intake ──────────────────────────────────────────────────────────────


@router.get("/api/quotations", response_model=QuotationListResponse)
async def list_quotations(
    status: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    query = db.query(Quotation).filter(Quotation.user_id == user.id)
    if status:
        query = query.filter(Quotation.status == status)
    total = query.count()
    rows = query.order_by(Quotation.created_at.desc(), Quotation.id.desc()).offset(offset).limit(limit).all()
    quotations = []
    for q in rows:
        data = quotation_to_dict(q)
        data["vehicle"] = vehicle_to_dict(q.vehicle)
        data["request_count"] = len(q.requests)
        data["responded_count"] = sum(1 for r in q.requests if r.status == "responded")
        quotations.append(data)
    return {"total": total, "limit": limit, "offset": offset, "quotations": quotations}


@router.post("/api/quotations/bulk-preview")
async def bulk_preview(
    payload: BulkPreview,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    abbreviations: AbbreviationCache = Depends(get_abbreviation_cache),
):
    parts = parse_bulk_text(payload.text, lambda text: abbreviations.expand(db, user.id, text))
    return {"count": len(parts), "parts": parts}


@router.post("/api/quotations", status_code=201)
async def create_quotation(
    payload: QuotationCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    abbreviations: AbbreviationCache = Depends(get_abbreviation_cache),
):
    try:
        quotation = intake_service.create_quotation(db, user.id, payload, abbreviations)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _bundle(db, user, quotation.id).to_dict()


@router.get("/api/quotations/{quotation_id}")
async def get_quotation(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    bundle = _bundle(db, user, quotation_id)
    data = bundle.to_dict()
    data["counter_offers"] = [
        counter_offer_to_dict(co) for co in sorted(bundle.quotation.counter_offers, key=lambda c: c.id)
    ]
    data["purchase_order_ids"] = [po.id for po in bundle.quotation.purchase_orders]
    return data


@router.put("/api/quotations/{quotation_id}")
async def update_quotation(
    quotation_id: int,
    payload: QuotationUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    abbreviations: AbbreviationCache = Depends(get_abbreviation_cache),
):
    quotation = _quotation(db, user, quotation_id)
    try:
        intake_service.update_quotation(db, user.id, quotation, payload, abbreviations)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _bundle(db, user, quotation_id).to_dict()


@router.delete("/api/quotations/{quotation_id}", response_model=OkResponse)
async def delete_quotation(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    quotation = _quotation(db, user, quotation_id)
    db.delete(quotation)
    db.commit()
    logger.info(f"Quotation {quotation_id} deleted by user {user.id}")
    return {"ok": True}


# ── Dispatch ────────────────────────────────────────────────────────────


@router.post("/api/quotations/{quotation_id}/suppliers/search")
async def search_suppliers(
    quotation_id: int,
    payload: SupplierFilter,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Suppliers matching the filters, flagged when already asked for this quotation."""
    bundle = _bundle(db, user, quotation_id)
    already = {r.supplier_id for r in bundle.requests}
    rows = dispatch_service.filter_suppliers(
        db,
        user.id,
        area_code=payload.area_code,
        city=payload.city,
        state=payload.state,
        categories=payload.categories,
        name=payload.name,
    )
    return {
        "suppliers": [
            {
                "id": s.id,
                "name": s.name,
                "area_code": s.area_code or "",
                "phone": s.phone or "",
                "city": s.city or "",
                "state": s.state or "",
                "categories": list(s.categories or []),
                "dispatchable": s.is_dispatchable,
                "already_requested": s.id in already,
            }
            for s in rows
        ]
    }


@router.post("/api/quotations/{quotation_id}/dispatch", response_model=DispatchResponse)
async def dispatch_quotation(
    quotation_id: int,
    payload: DispatchRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    quotation = _quotation(db, user, quotation_id)
    try:
        return await dispatch_service.dispatch_quotation(
            db,
            user.id,
            quotation,
            payload.supplier_ids,
            cover_image=payload.cover_image,
            send_sequence=payload.send_sequence,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/api/quotations/{quotation_id}/requests/{request_id}/resend")
async def resend_request(
    quotation_id: int,
    request_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    _quotation(db, user, quotation_id)
    req = get_request_for_quotation(db, quotation_id, request_id)
    if req is None:
        raise HTTPException(404, "Request not found")
    try:
        return await dispatch_service.resend_request(db, user.id, req)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/api/quotations/{quotation_id}/resend-all")
async def resend_all(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    quotation = _quotation(db, user, quotation_id)
    try:
        return await dispatch_service.resend_all(db, user.id, quotation)
    except ValueError as e:
        raise HTTPException(400, str(e))


# ── Responses & comparison ──────────────────────────────────────────────


@router.get("/api/quotations/{quotation_id}/best-prices", response_model=BestPriceResponse)
async def best_prices(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    bundle = _bundle(db, user, quotation_id)
    return {
        "quotation_id": quotation_id,
        "best_prices": compute_best_prices(bundle.quotation.parts, bundle.requests),
    }


@router.get("/api/quotations/{quotation_id}/comparison")
async def comparison(
    quotation_id: int,
    sort: str = Query("available", pattern="^(available|total)$"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    bundle = _bundle(db, user, quotation_id)
    return {
        "quotation_id": quotation_id,
        "vehicle": vehicle_to_dict(bundle.vehicle),
        "parts": list(bundle.quotation.parts or []),
        "responses": compare_responses(bundle.requests, sort),
        "pending_count": sum(1 for r in bundle.requests if r.status != "responded"),
    }


# ── Counter-offers ──────────────────────────────────────────────────────


@router.post(
    "/api/quotations/{quotation_id}/requests/{request_id}/counter-offers",
    status_code=201,
    response_model=CounterOfferCreatedResponse,
)
async def create_counter_offer(
    quotation_id: int,
    request_id: int,
    payload: CounterOfferCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    _quotation(db, user, quotation_id)
    req = get_request_for_quotation(db, quotation_id, request_id)
    if req is None:
        raise HTTPException(404, "Request not found")
    try:
        co = counter_offer_service.create_counter_offer(
            db, req, payload.parts, delivery_time=payload.delivery_time, notes=payload.notes
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "id": co.id,
        "status": co.status,
        "total_price": co.counter_offer_data["total_price"],
        "original_total": co.counter_offer_data["original_total"],
        "parts": co.counter_offer_data["parts"],
        "response_link": counter_offer_service.counter_offer_link(co),
        "whatsapp_link": counter_offer_service.whatsapp_deep_link(co, req),
    }


@router.get("/api/quotations/{quotation_id}/counter-offers")
async def list_counter_offers(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    _quotation(db, user, quotation_id)
    rows = (
        db.query(CounterOffer)
        .filter_by(quotation_id=quotation_id)
        .order_by(CounterOffer.id)
        .all()
    )
    return {"counter_offers": [counter_offer_to_dict(co) for co in rows]}
