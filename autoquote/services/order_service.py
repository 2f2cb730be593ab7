"""
order_service.py — Purchase order generation, dispatch and deletion

Business Rules:
- Manual selections are (request, part index) pairs over responded requests;
  they are exclusive per part description: a later selection for the same
  description replaces the earlier one
- Both paths reject parts that are already purchased
- Best-price generation uses pricing.compute_best_prices
- Selected lines are grouped by supplier in first-seen order; one
  PurchaseOrder per supplier, total_amount = sum of its items' total_price
- Selected quotation parts are marked purchased; once every part is
  purchased the quotation becomes completed
- Sending: pending → sending → sent. The text lists every item, the total,
  the workshop delivery address, delivery time and notes; an optional
  vehicle photo follows with a caption. A failed text send puts the order
  back to the status it had before (pending, or sent for a resend) and
  records the error
- Only pending orders can be edited or deleted
- Deleting an order removes its items and clears the purchased flag of the
  quotation parts it covered

Called by: routers/orders.py
Depends on: services/pricing, services/state, connectors/whatsapp
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..connectors.whatsapp import EvolutionClient, WhatsAppError, client_for_user, normalize_phone
from ..models import PurchaseOrder, PurchaseOrderItem, Quotation, QuotationRequest, Workshop
from ..utils import money
from .pricing import compute_best_prices, line_total
from .quotation_repository import QuotationBundle
from .state import StateTransitionError, transition

log = logging.getLogger("autoquote.orders")


# ── Selection ───────────────────────────────────────────────────────────


def _quotation_part_index(quotation: Quotation, description: str, hint: int) -> int | None:
    parts = quotation.parts or []
    if 0 <= hint < len(parts) and parts[hint].get("description") == description:
        return hint
    for i, p in enumerate(parts):
        if p.get("description") == description:
            return i
    return None


def _pick(req: QuotationRequest, part_index: int) -> dict:
    parts = (req.response_data or {}).get("parts") or []
    if part_index >= len(parts):
        raise ValueError(f"Part index {part_index} does not exist on request #{req.id}")
    part = parts[part_index]
    if not part.get("available"):
        raise ValueError(f"'{part.get('description')}' is not available from request #{req.id}")
    return {
        "request": req,
        "part_index": part_index,
        "description": part.get("description", ""),
        "quantity": part.get("quantity", 1),
        "unit_price": money(part.get("unit_price") or 0),
        "total_price": money(part.get("total_price") or line_total(part.get("unit_price"), part.get("quantity", 1))),
        "notes": part.get("notes") or "",
    }


def resolve_selections(bundle: QuotationBundle, selections: list) -> list[dict]:
    """Validate selections and keep only the last one per part description."""
    by_id = {r.id: r for r in bundle.requests}
    chosen: dict[str, dict] = {}
    for sel in selections:
        req = by_id.get(sel.request_id)
        if req is None:
            raise ValueError(f"Request #{sel.request_id} does not belong to this quotation")
        if req.status != "responded":
            raise ValueError(f"Request #{req.id} has no supplier response")
        pick = _pick(req, sel.part_index)
        qp_index = _quotation_part_index(bundle.quotation, pick["description"], pick["part_index"])
        if qp_index is not None and bundle.quotation.parts[qp_index].get("purchased"):
            raise ValueError(f"'{pick['description']}' was already purchased")
        chosen.pop(pick["description"], None)
        chosen[pick["description"]] = pick
    return list(chosen.values())


def best_price_picks(bundle: QuotationBundle, descriptions: list[str]) -> list[dict]:
    rows = {
        row["description"]: row
        for row in compute_best_prices(bundle.quotation.parts, bundle.requests)
    }
    by_id = {r.id: r for r in bundle.requests}
    picks = []
    for description in dict.fromkeys(descriptions):
        row = rows.get(description)
        if row is None:
            raise ValueError(f"No available offer for '{description}'")
        if row["purchased"]:
            raise ValueError(f"'{description}' was already purchased")
        picks.append(_pick(by_id[row["request_id"]], row["part_index"]))
    return picks


# ── Generation ──────────────────────────────────────────────────────────


def _check_workshop(db: Session, user_id: int, workshop_id: int | None) -> None:
    if workshop_id is None:
        return
    if not db.query(Workshop).filter_by(id=workshop_id, user_id=user_id).first():
        raise ValueError(f"Workshop {workshop_id} not found")


def _mark_purchased(quotation: Quotation, indexes: set[int], value: bool) -> None:
    parts = [dict(p) for p in quotation.parts or []]
    for i in indexes:
        if 0 <= i < len(parts):
            parts[i]["purchased"] = value
    quotation.parts = parts
    flag_modified(quotation, "parts")
    if parts and all(p.get("purchased") for p in parts):
        quotation.status = "completed"
    elif quotation.status == "completed":
        quotation.status = "in_progress"


def create_orders(
    db: Session,
    user_id: int,
    quotation: Quotation,
    picks: list[dict],
    *,
    workshop_id: int | None = None,
    delivery_time: str | None = None,
    notes: str | None = None,
) -> list[PurchaseOrder]:
    """One PurchaseOrder per supplier over the picked lines."""
    if not picks:
        raise ValueError("Select at least one part to order")
    _check_workshop(db, user_id, workshop_id)

    groups: dict[int, list[dict]] = {}
    for pick in picks:
        groups.setdefault(pick["request"].supplier_id, []).append(pick)

    orders = []
    purchased: set[int] = set()
    for supplier_id, lines in groups.items():
        order = PurchaseOrder(
            quotation_id=quotation.id,
            supplier_id=supplier_id,
            workshop_id=workshop_id,
            status="pending",
            delivery_time=delivery_time or (lines[0]["request"].response_data or {}).get("delivery_time") or None,
            notes=notes,
            user_id=user_id,
        )
        total = Decimal("0")
        for line in lines:
            qp_index = _quotation_part_index(quotation, line["description"], line["part_index"])
            if qp_index is not None:
                purchased.add(qp_index)
            order.items.append(
                PurchaseOrderItem(
                    part_description=line["description"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    total_price=line["total_price"],
                    quotation_part_index=qp_index,
                    request_id=line["request"].id,
                    notes=line["notes"] or None,
                )
            )
            total += Decimal(str(line["total_price"]))
        order.total_amount = money(total)
        quotation.purchase_orders.append(order)
        orders.append(order)

    _mark_purchased(quotation, purchased, True)
    db.commit()
    for order in orders:
        db.refresh(order)
    log.info(
        f"Quotation {quotation.id}: {len(orders)} purchase orders generated "
        f"from {len(picks)} lines; status {quotation.status}"
    )
    return orders


def generate_orders_from_selection(db: Session, user_id: int, bundle: QuotationBundle, selections: list, **options) -> list[PurchaseOrder]:
    return create_orders(db, user_id, bundle.quotation, resolve_selections(bundle, selections), **options)


def generate_orders_from_best_prices(db: Session, user_id: int, bundle: QuotationBundle, descriptions: list[str], **options) -> list[PurchaseOrder]:
    return create_orders(db, user_id, bundle.quotation, best_price_picks(bundle, descriptions), **options)


def purchased_indexes(db: Session, quotation_id: int) -> set[int]:
    """Quotation part indexes covered by any purchase order item."""
    rows = (
        db.query(PurchaseOrderItem.quotation_part_index)
        .join(PurchaseOrder)
        .filter(PurchaseOrder.quotation_id == quotation_id)
        .filter(PurchaseOrderItem.quotation_part_index.isnot(None))
        .all()
    )
    return {r[0] for r in rows}


# ── Dispatch ────────────────────────────────────────────────────────────


def _fmt(v) -> str:
    return f"{float(v or 0):.2f}"


def order_message(order: PurchaseOrder) -> str:
    items = "\n".join(
        f"⭕ {i.part_description}: {i.quantity} un x R$ {_fmt(i.unit_price)} = R$ {_fmt(i.total_price)}"
        for i in order.items
    )
    delivery = ""
    if order.workshop is not None:
        w = order.workshop
        delivery = (
            "*ENDEREÇO DE ENTREGA:*\n"
            f"{w.name}\n"
            f"{w.address or ''}\n"
            f"{w.city or ''} - {w.state or ''}\n\n"
        )
    return (
        "*ORDEM DE COMPRA*\n\n"
        "Prezado fornecedor,\n\n"
        "Segue ordem de compra:\n\n"
        f"{items}\n\n"
        f"*Total: R$ {_fmt(order.total_amount)}*\n\n"
        f"{delivery}"
        + (f"Prazo de entrega: {order.delivery_time}\n\n" if order.delivery_time else "")
        + (f"Observações: {order.notes}\n\n" if order.notes else "")
        + "Por favor, confirme o recebimento."
    )


async def send_purchase_order(
    db: Session,
    user_id: int,
    order: PurchaseOrder,
    *,
    include_vehicle_image: bool = False,
    client: EvolutionClient | None = None,
) -> dict:
    """Send the order text (and optional vehicle photo). Raises on text failure."""
    supplier = order.supplier
    number = normalize_phone(supplier.area_code if supplier else "", supplier.phone if supplier else "")
    client = client or client_for_user(db, user_id)

    previous = order.status or "pending"
    transition(order, "purchase_order", "sending")
    db.commit()

    try:
        await client.send_text(number, order_message(order))
    except WhatsAppError as e:
        order.last_error = str(e)[:500]
        transition(order, "purchase_order", previous)
        db.commit()
        log.warning(f"Purchase order {order.id} send failed: {e}")
        raise

    image_sent = False
    image_error = None
    vehicle = order.quotation.vehicle if order.quotation else None
    if include_vehicle_image and vehicle is not None and vehicle.images:
        caption = f"*{vehicle.brand} {vehicle.model} ano {vehicle.year or ''}*".replace(" *", "*")
        try:
            await client.send_media(number, vehicle.images[0], caption=caption, mediatype="image")
            image_sent = True
        except WhatsAppError as e:
            image_error = str(e)
            log.warning(f"Purchase order {order.id}: vehicle photo failed: {e}")

    transition(order, "purchase_order", "sent")
    order.sent_at = datetime.now(timezone.utc)
    order.last_error = None
    db.commit()
    log.info(f"Purchase order {order.id} sent to supplier {order.supplier_id}")
    return {"id": order.id, "status": order.status, "image_sent": image_sent, "error": image_error}


def delete_purchase_order(db: Session, order: PurchaseOrder) -> None:
    if order.status != "pending":
        raise StateTransitionError(f"Purchase order {order.id} is {order.status} and can no longer be deleted")
    order_id = order.id
    quotation = order.quotation
    indexes = {i.quotation_part_index for i in order.items if i.quotation_part_index is not None}
    quotation.purchase_orders.remove(order)
    db.delete(order)
    db.flush()
    still_covered = purchased_indexes(db, quotation.id)
    _mark_purchased(quotation, indexes - still_covered, False)
    db.commit()
    log.info(f"Purchase order {order_id} deleted; {len(indexes)} parts released")


def update_order(db: Session, user_id: int, order: PurchaseOrder, payload) -> PurchaseOrder:
    """Edit workshop, delivery time or notes of an order that was not sent yet."""
    if order.status != "pending":
        raise ValueError(f"Purchase order {order.id} is {order.status} and can no longer be edited")
    fields = payload.model_dump(exclude_unset=True)
    if "workshop_id" in fields:
        _check_workshop(db, user_id, fields["workshop_id"])
    for key, value in fields.items():
        setattr(order, key, value)
    db.commit()
    db.refresh(order)
    return order


# ── Serialization ───────────────────────────────────────────────────────


def order_to_dict(order: PurchaseOrder) -> dict:
    supplier = order.supplier
    workshop = order.workshop
    return {
        "id": order.id,
        "quotation_id": order.quotation_id,
        "supplier_id": order.supplier_id,
        "supplier_name": supplier.name if supplier else "",
        "workshop_id": order.workshop_id,
        "workshop_name": workshop.name if workshop else None,
        "status": order.status,
        "total_amount": float(order.total_amount or 0),
        "delivery_time": order.delivery_time,
        "notes": order.notes,
        "last_error": order.last_error,
        "sent_at": order.sent_at.isoformat() if order.sent_at else None,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "id": i.id,
                "part_description": i.part_description,
                "quantity": i.quantity,
                "unit_price": float(i.unit_price or 0),
                "total_price": float(i.total_price or 0),
                "quotation_part_index": i.quotation_part_index,
                "request_id": i.request_id,
                "notes": i.notes,
            }
            for i in order.items
        ],
    }
