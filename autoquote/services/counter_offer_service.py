"""
counter_offer_service.py — Counter-offer negotiation on responded requests

Business Rules:
- Only a responded request can receive a counter-offer
- Lines are seeded from the supplier's response: counter price = original
  price, discount 0; edits set either counter price or discount percentage
- Only available lines can be edited
- Counter total = sum of counter totals over available lines
- The supplier is notified through a wa.me deep link opened by the
  operator, not through the gateway API
- Supplier side: each available line is accepted (default) or rejected;
  status is accepted when every available line is accepted, otherwise
  partially_accepted; both are terminal
- Accepted lines overwrite unit/total price in the originating request's
  response_data and set negotiated=true; rejected lines are untouched;
  the response total is recomputed and the response marked renegotiated

Called by: routers/quotations.py (create), routers/public.py (form, respond)
Depends on: services/pricing, services/state, connectors/whatsapp (phone format)
"""

import copy
import logging
from datetime import datetime, timezone
from urllib.parse import quote

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..config import settings
from ..connectors.whatsapp import normalize_phone
from ..models import CounterOffer, QuotationRequest
from ..schemas.quotations import CounterDecision, CounterPartEdit
from . import pricing
from .quotation_repository import vehicle_to_dict
from .state import StateTransitionError, can_transition, transition

log = logging.getLogger("autoquote.counter_offers")


def seed_lines(response_data: dict) -> list[dict]:
    lines = []
    for index, part in enumerate((response_data or {}).get("parts") or []):
        original_price = pricing.money(part.get("unit_price") or 0)
        quantity = part.get("quantity", 1)
        lines.append(
            {
                "response_index": index,
                "description": part.get("description", ""),
                "quantity": quantity,
                "original_price": original_price,
                "original_total": pricing.line_total(original_price, quantity),
                "counter_price": original_price,
                "counter_total": pricing.line_total(original_price, quantity),
                "discount_percentage": 0,
                "condition": part.get("condition"),
                "available": bool(part.get("available")),
                "notes": part.get("notes") or "",
            }
        )
    return lines


def apply_edits(lines: list[dict], edits: list[CounterPartEdit]) -> list[dict]:
    """Apply requester edits in order. Raises ValueError for unknown or unavailable lines."""
    for edit in edits:
        if edit.response_index >= len(lines):
            raise ValueError(f"Part index {edit.response_index} does not exist on this response")
        line = lines[edit.response_index]
        if not line["available"]:
            raise ValueError(f"'{line['description']}' is unavailable and cannot be countered")
        if edit.counter_price is not None:
            pricing.set_counter_price(line, edit.counter_price)
        elif edit.discount_percentage is not None:
            pricing.set_discount_percentage(line, edit.discount_percentage)
    return lines


def counter_offer_link(co: CounterOffer) -> str:
    return (
        f"{settings.app_url.rstrip('/')}/counter-offer-response/"
        f"{co.quotation_id}/{co.request_id}?counter_offer_id={co.id}"
    )


def whatsapp_deep_link(co: CounterOffer, req: QuotationRequest) -> str:
    """wa.me link with the notification text prefilled for the operator to open."""
    data = co.counter_offer_data or {}
    name = data.get("supplier_name") or (req.supplier.name if req.supplier else "")
    message = (
        f"Olá {name}! Você recebeu uma contraproposta para a cotação "
        f"#{co.quotation_id}. Total proposto: R$ {data.get('total_price', 0):.2f}.\n\n"
        f"Acesse o link para responder: {counter_offer_link(co)}"
    )
    number = ""
    supplier = req.supplier
    if supplier is not None:
        try:
            number = normalize_phone(supplier.area_code, supplier.phone)
        except ValueError:
            log.warning(f"Counter-offer {co.id}: supplier phone invalid, link has no recipient")
    return f"https://wa.me/{number}?text={quote(message)}"


def create_counter_offer(
    db: Session,
    req: QuotationRequest,
    edits: list[CounterPartEdit],
    *,
    delivery_time: str | None = None,
    notes: str = "",
) -> CounterOffer:
    if req.status != "responded" or not req.response_data:
        raise StateTransitionError(
            f"Request #{req.id} has no supplier response yet; a counter-offer needs one"
        )

    lines = apply_edits(seed_lines(req.response_data), edits)
    response = req.response_data
    data = {
        "supplier_name": response.get("supplier_name", ""),
        "supplier_phone": response.get("supplier_phone", ""),
        "parts": lines,
        "total_price": pricing.counter_total(lines),
        "original_total": response.get("total_price", 0),
        "delivery_time": delivery_time if delivery_time is not None else response.get("delivery_time", ""),
        "notes": notes,
    }
    co = CounterOffer(
        quotation_id=req.quotation_id,
        request_id=req.id,
        supplier_id=req.supplier_id,
        status="pending",
        counter_offer_data=data,
    )
    db.add(co)
    db.commit()
    db.refresh(co)
    log.info(
        f"Counter-offer {co.id} created for request {req.id}: "
        f"{data['original_total']} -> {data['total_price']}"
    )
    return co


def counter_offer_form(co: CounterOffer) -> dict:
    req = co.request
    quotation = req.quotation if req else None
    return {
        "id": co.id,
        "quotation_id": co.quotation_id,
        "request_id": co.request_id,
        "status": co.status,
        "editable": can_transition("counter_offer", co.status, "accepted"),
        "vehicle": vehicle_to_dict(quotation.vehicle) if quotation else None,
        "counter_offer": co.counter_offer_data,
        "response_data": co.response_data,
    }


def merge_accepted(response_data: dict, lines: list[dict]) -> dict:
    """Write accepted counter prices into a copy of the supplier's response."""
    merged = copy.deepcopy(response_data)
    parts = merged.get("parts") or []
    for line in lines:
        if not (line.get("available") and line.get("accepted")):
            continue
        idx = line["response_index"]
        if idx >= len(parts):
            continue
        parts[idx]["unit_price"] = line["counter_price"]
        parts[idx]["total_price"] = line["counter_total"]
        parts[idx]["negotiated"] = True
    merged["total_price"] = pricing.response_total(parts)
    merged["renegotiated"] = True
    return merged


def respond_counter_offer(
    db: Session, co: CounterOffer, decisions: list[CounterDecision], notes: str = ""
) -> dict:
    if not can_transition("counter_offer", co.status, "accepted"):
        raise StateTransitionError("This counter-offer was already answered and can no longer be changed")

    lines = copy.deepcopy((co.counter_offer_data or {}).get("parts") or [])
    chosen = {d.response_index: d.accepted for d in decisions}
    for line in lines:
        line["accepted"] = bool(line.get("available")) and chosen.get(line["response_index"], True)

    available = [line for line in lines if line.get("available")]
    all_accepted = all(line["accepted"] for line in available)
    target = "accepted" if all_accepted else "partially_accepted"

    req = co.request
    transition(co, "counter_offer", target)
    co.response_data = {
        "parts": lines,
        "total_price": pricing.counter_total(lines, accepted_only=True),
        "notes": notes,
    }
    co.responded_at = datetime.now(timezone.utc)

    if req is not None and req.response_data:
        req.response_data = merge_accepted(req.response_data, lines)
        flag_modified(req, "response_data")

    db.commit()
    accepted = sum(1 for line in available if line["accepted"])
    log.info(f"Counter-offer {co.id} {target}: {accepted}/{len(available)} lines accepted")
    return {
        "id": co.id,
        "status": co.status,
        "total_price": co.response_data["total_price"],
        "parts": lines,
    }
