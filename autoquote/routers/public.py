"""
routers/public.py — Unauthenticated supplier endpoints

Suppliers reach these through the links sent over WhatsApp:
  /quotation-response/{quotation_id}/{request_id}
  /counter-offer-response/{quotation_id}/{request_id}?counter_offer_id=N

Business Rules:
- No session is required; the (quotation id, request id) pair must match
- Rate limited per client address (settings.rate_limit_public)
- Forms are read-only once answered; a second answer is a 409

Called by: main.py (router mount)
Depends on: services/response_service, services/counter_offer_service
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import CounterOffer
from ..rate_limit import PUBLIC_LIMIT, limiter
from ..schemas.quotations import CounterOfferRespond, SupplierResponseSubmit
from ..services import counter_offer_service, response_service
from ..services.quotation_repository import get_quotation_with_vehicle_and_requests

router = APIRouter(tags=["public"])


def _locate(db: Session, quotation_id: int, request_id: int):
    bundle = get_quotation_with_vehicle_and_requests(db, quotation_id)
    req = next((r for r in bundle.requests if r.id == request_id), None) if bundle else None
    if req is None:
        raise HTTPException(404, "Quotation request not found")
    return bundle, req


def _counter_offer(db: Session, quotation_id: int, request_id: int, counter_offer_id: int) -> CounterOffer:
    co = (
        db.query(CounterOffer)
        .filter_by(id=counter_offer_id, quotation_id=quotation_id, request_id=request_id)
        .first()
    )
    if co is None:
        raise HTTPException(404, "Counter-offer not found")
    return co


# ── Supplier response ───────────────────────────────────────────────────


@router.get("/api/public/quotations/{quotation_id}/requests/{request_id}")
@limiter.limit(PUBLIC_LIMIT)
async def get_response_form(quotation_id: int, request_id: int, request: Request, db: Session = Depends(get_db)):
    bundle, req = _locate(db, quotation_id, request_id)
    return response_service.response_form(bundle.quotation, bundle.vehicle, req)


@router.post("/api/public/quotations/{quotation_id}/requests/{request_id}/response")
@limiter.limit(PUBLIC_LIMIT)
async def submit_response(
    quotation_id: int,
    request_id: int,
    payload: SupplierResponseSubmit,
    request: Request,
    db: Session = Depends(get_db),
):
    bundle, req = _locate(db, quotation_id, request_id)
    try:
        data = response_service.submit_response(db, bundle.quotation, req, payload)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"request_id": req.id, "status": req.status, "response_data": data}


# ── Counter-offer response ──────────────────────────────────────────────


@router.get("/api/public/quotations/{quotation_id}/requests/{request_id}/counter-offers/{counter_offer_id}")
@limiter.limit(PUBLIC_LIMIT)
async def get_counter_offer_form(
    quotation_id: int,
    request_id: int,
    counter_offer_id: int,
    request: Request,
    db: Session = Depends(get_db),
):
    co = _counter_offer(db, quotation_id, request_id, counter_offer_id)
    return counter_offer_service.counter_offer_form(co)


@router.post("/api/public/quotations/{quotation_id}/requests/{request_id}/counter-offers/{counter_offer_id}/response")
@limiter.limit(PUBLIC_LIMIT)
async def respond_counter_offer(
    quotation_id: int,
    request_id: int,
    counter_offer_id: int,
    payload: CounterOfferRespond,
    request: Request,
    db: Session = Depends(get_db),
):
    co = _counter_offer(db, quotation_id, request_id, counter_offer_id)
    return counter_offer_service.respond_counter_offer(db, co, payload.decisions, payload.notes)
