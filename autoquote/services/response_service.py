"""
response_service.py — Public supplier response capture

Suppliers reach the form through the per-request link and answer without
logging in. The answer is recorded once; afterwards the form is read-only.

Business Rules:
- Supplier name and phone are required (schema level)
- Each part is answered by its position in the quotation; parts the
  supplier did not answer count as unavailable
- Unavailable parts have unit and total price forced to 0 and skip all
  price/condition validation
- Available parts need unit price > 0 and a condition (new | used)
- total_price per part = unit price × quantity; overall total = sum over
  available parts
- Status moves to responded with responded_at; responded is terminal

Called by: routers/public.py
Depends on: services/pricing, services/state
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..models import Quotation, QuotationRequest, Vehicle
from ..schemas.quotations import SupplierResponseSubmit
from ..utils import money
from .pricing import line_total, response_total
from .quotation_repository import vehicle_to_dict
from .state import StateTransitionError, can_transition, transition

log = logging.getLogger("autoquote.responses")


def response_form(quotation: Quotation, vehicle: Vehicle, req: QuotationRequest) -> dict:
    """What the public form renders: vehicle, parts, and the recorded answer if any."""
    editable = can_transition("request", req.status, "responded")
    return {
        "quotation_id": quotation.id,
        "request_id": req.id,
        "status": req.status,
        "editable": editable,
        "vehicle": vehicle_to_dict(vehicle),
        "parts": [
            {
                "index": i,
                "description": p.get("description", ""),
                "code": p.get("code") or "",
                "quantity": p.get("quantity", 1),
                "condition": p.get("condition"),
                "operation": p.get("operation"),
            }
            for i, p in enumerate(quotation.parts or [])
        ],
        "response_data": None if editable else req.response_data,
    }


def build_response_parts(quotation_parts: list[dict], answers: list) -> list[dict]:
    """Merge supplier answers into the quotation's parts. Raises ValueError."""
    by_index = {}
    for answer in answers:
        if answer.index >= len(quotation_parts):
            raise ValueError(f"Part index {answer.index} does not exist on this quotation")
        by_index[answer.index] = answer

    problems = []
    parts = []
    for i, qp in enumerate(quotation_parts):
        answer = by_index.get(i)
        quantity = qp.get("quantity", 1)
        available = bool(answer and answer.available)
        line = {
            "description": qp.get("description", ""),
            "code": qp.get("code") or "",
            "quantity": quantity,
            "available": available,
            "condition": answer.condition if answer else None,
            "unit_price": 0.0,
            "total_price": 0.0,
            "notes": (answer.notes if answer else "") or "",
            "negotiated": False,
        }
        if available:
            price = answer.unit_price or 0
            if price <= 0:
                problems.append(f"'{line['description']}' needs a unit price")
            if not answer.condition:
                problems.append(f"'{line['description']}' needs a condition")
            line["unit_price"] = money(price)
            line["total_price"] = line_total(price, quantity)
        parts.append(line)

    if problems:
        raise ValueError("; ".join(problems))
    return parts


def submit_response(
    db: Session, quotation: Quotation, req: QuotationRequest, payload: SupplierResponseSubmit
) -> dict:
    if not can_transition("request", req.status, "responded"):
        raise StateTransitionError("This quotation was already answered and can no longer be changed")

    parts = build_response_parts(quotation.parts or [], payload.parts)
    data = {
        "supplier_name": payload.supplier_name,
        "supplier_phone": payload.supplier_phone,
        "parts": parts,
        "total_price": response_total(parts),
        "delivery_time": payload.delivery_time,
        "notes": payload.notes,
        "payment_method": payload.payment_method,
        "renegotiated": False,
    }

    transition(req, "request", "responded")
    req.response_data = data
    req.responded_at = datetime.now(timezone.utc)
    db.commit()
    available = sum(1 for p in parts if p["available"])
    log.info(
        f"Request {req.id} responded: {available}/{len(parts)} parts available, "
        f"total {data['total_price']:.2f}"
    )
    return data
