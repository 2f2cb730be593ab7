"""
dispatch_service.py — Fan a quotation out to suppliers over WhatsApp

Business Rules:
- Supplier filters (area code, city, state, categories, name) are AND-combined;
  categories match when the supplier has any requested tag
- Selected suppliers without area code or phone are excluded with a warning;
  when none remain the dispatch is rejected before any row or message exists
- A usable WhatsApp configuration is required before any row is created
- One QuotationRequest (pending) per valid supplier, committed before sending
- Suppliers are processed one at a time: text message, optional template
  sequence (with a pause between messages), optional cover image
- Success moves the request to sent; sent_at is set only on the first send
- A failed supplier is recorded and the loop continues; created rows are
  never rolled back
- Resend skips (resend-all) or rejects (single resend) responded requests

Called by: routers/quotations.py
Depends on: connectors/whatsapp, services/template_service, services/state
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..config import settings
from ..connectors.whatsapp import EvolutionClient, WhatsAppError, client_for_user, normalize_phone
from ..models import Quotation, QuotationRequest, Supplier, Vehicle
from . import template_service
from .state import StateTransitionError, transition

log = logging.getLogger("autoquote.dispatch")


def filter_suppliers(
    db: Session,
    user_id: int,
    *,
    area_code: str | None = None,
    city: str | None = None,
    state: str | None = None,
    categories: list[str] | None = None,
    name: str | None = None,
) -> list[Supplier]:
    q = db.query(Supplier).filter(Supplier.user_id == user_id)
    if area_code:
        q = q.filter(Supplier.area_code == area_code.strip())
    if city:
        q = q.filter(Supplier.city.ilike(city.strip()))
    if state:
        q = q.filter(Supplier.state == state.strip().upper())
    if name:
        q = q.filter(Supplier.name.ilike(f"%{name.strip()}%"))
    suppliers = q.order_by(Supplier.name, Supplier.id).all()

    wanted = {c.strip().lower() for c in categories or [] if c and c.strip()}
    if wanted:
        suppliers = [
            s for s in suppliers
            if wanted & {str(c).strip().lower() for c in s.categories or []}
        ]
    return suppliers


def response_link(quotation_id: int, request_id: int) -> str:
    return f"{settings.app_url.rstrip('/')}/quotation-response/{quotation_id}/{request_id}"


def _mark_sent(req: QuotationRequest) -> None:
    transition(req, "request", "sent")
    if req.sent_at is None:
        req.sent_at = datetime.now(timezone.utc)
    req.last_error = None


async def _send_to_supplier(
    client: EvolutionClient,
    quotation: Quotation,
    vehicle: Vehicle,
    req: QuotationRequest,
    supplier: Supplier,
    content: str,
    sequence: list[str],
) -> None:
    """Send the full message set for one supplier. Raises ValueError or WhatsAppError."""
    number = normalize_phone(supplier.area_code, supplier.phone)
    link = response_link(quotation.id, req.id)
    parts = quotation.parts or []

    await client.send_text(number, template_service.render_message(content, vehicle, parts, link))
    for extra in sequence:
        await asyncio.sleep(settings.template_send_delay_seconds)
        await client.send_text(number, template_service.render_message(extra, vehicle, parts, ""))
    if req.cover_image:
        await client.send_media(number, req.cover_image, caption="", mediatype="image")


def _message_set(db: Session, user_id: int, send_sequence: bool) -> tuple[str, list[str]]:
    default = template_service.get_default_template(db, user_id)
    content = default.content if default else template_service.BUILTIN_TEMPLATE
    sequence = []
    if send_sequence:
        sequence = [
            t.content
            for t in template_service.list_templates(db, user_id)
            if default is None or t.id != default.id
        ]
    return content, sequence


async def _send_batch(
    db: Session,
    client: EvolutionClient,
    quotation: Quotation,
    vehicle: Vehicle,
    pairs: list[tuple[QuotationRequest, Supplier]],
    content: str,
    sequence: list[str],
) -> tuple[int, list[dict]]:
    sent = 0
    failures = []
    for req, supplier in pairs:
        try:
            await _send_to_supplier(client, quotation, vehicle, req, supplier, content, sequence)
        except (WhatsAppError, ValueError) as e:
            req.last_error = str(e)[:500]
            failures.append(
                {
                    "request_id": req.id,
                    "supplier_id": supplier.id,
                    "supplier_name": supplier.name,
                    "error": str(e),
                }
            )
            log.warning(f"Quotation {quotation.id}: send to supplier {supplier.id} failed: {e}")
        else:
            _mark_sent(req)
            sent += 1
        db.commit()
    return sent, failures


async def dispatch_quotation(
    db: Session,
    user_id: int,
    quotation: Quotation,
    supplier_ids: list[int],
    *,
    cover_image: str | None = None,
    send_sequence: bool = False,
    client: EvolutionClient | None = None,
) -> dict:
    """Create one request per valid supplier and send the quotation to each."""
    found = {
        s.id: s
        for s in db.query(Supplier).filter(
            Supplier.id.in_(supplier_ids), Supplier.user_id == user_id
        )
    }
    warnings = []
    valid: list[Supplier] = []
    for sid in dict.fromkeys(supplier_ids):
        supplier = found.get(sid)
        if supplier is None:
            warnings.append(f"Supplier {sid} not found")
        elif not supplier.is_dispatchable:
            warnings.append(f"Supplier '{supplier.name}' excluded: missing area code or phone")
        else:
            valid.append(supplier)
    for w in warnings:
        log.warning(f"Quotation {quotation.id}: {w}")

    if not valid:
        raise ValueError(
            "No valid supplier to send to: selected suppliers need both area code and phone"
        )

    client = client or client_for_user(db, user_id)
    content, sequence = _message_set(db, user_id, send_sequence)

    requests = []
    for supplier in valid:
        req = QuotationRequest(
            quotation_id=quotation.id,
            supplier_id=supplier.id,
            status="pending",
            cover_image=cover_image,
            supplier=supplier,
        )
        quotation.requests.append(req)
        requests.append(req)
    db.commit()

    vehicle = quotation.vehicle
    sent, failures = await _send_batch(
        db, client, quotation, vehicle, list(zip(requests, valid)), content, sequence
    )

    if quotation.status == "pending":
        quotation.status = "in_progress"
    db.commit()

    log.info(
        f"Quotation {quotation.id} dispatched: {len(requests)} requests, "
        f"{sent} sent, {len(failures)} failed, {len(warnings)} excluded"
    )
    return {
        "quotation_id": quotation.id,
        "created": len(requests),
        "sent": sent,
        "request_ids": [r.id for r in requests],
        "warnings": warnings,
        "failures": failures,
    }


async def resend_request(
    db: Session,
    user_id: int,
    req: QuotationRequest,
    *,
    client: EvolutionClient | None = None,
) -> dict:
    """Send one existing request again. Responded requests are rejected."""
    if req.status == "responded":
        raise StateTransitionError(f"Request #{req.id} was already answered; nothing to resend")
    supplier = req.supplier
    if supplier is None or not supplier.is_dispatchable:
        raise ValueError("Supplier is missing area code or phone")

    client = client or client_for_user(db, user_id)
    content, _ = _message_set(db, user_id, False)
    quotation = req.quotation
    sent, failures = await _send_batch(
        db, client, quotation, quotation.vehicle, [(req, supplier)], content, []
    )
    return {"request_id": req.id, "status": req.status, "sent": sent, "failures": failures}


async def resend_all(
    db: Session,
    user_id: int,
    quotation: Quotation,
    *,
    client: EvolutionClient | None = None,
) -> dict:
    """Send every unanswered request of a quotation again."""
    pairs = []
    skipped = 0
    for req in sorted(quotation.requests, key=lambda r: r.id):
        if req.status == "responded" or req.supplier is None or not req.supplier.is_dispatchable:
            skipped += 1
            continue
        pairs.append((req, req.supplier))
    if not pairs:
        return {"quotation_id": quotation.id, "sent": 0, "skipped": skipped, "failures": []}

    client = client or client_for_user(db, user_id)
    content, _ = _message_set(db, user_id, False)
    sent, failures = await _send_batch(
        db, client, quotation, quotation.vehicle, pairs, content, []
    )
    log.info(f"Quotation {quotation.id} resent: {sent} sent, {skipped} skipped, {len(failures)} failed")
    return {"quotation_id": quotation.id, "sent": sent, "skipped": skipped, "failures": failures}
