"""
pricing.py — Price arithmetic shared by responses, counter-offers and orders

Pure functions over plain dicts; nothing here touches the database.

Business Rules:
- Line total = unit price × quantity, rounded to cents (half-up)
- A response's total is the sum of line totals over available parts
- Counter-offer lines keep counter_total = counter_price × quantity and
  discount_percentage = round((original − counter) / original × 100),
  half-up to a whole percent; editing the discount recomputes the counter
  price first and the discount is then derived back from it, so both views
  always agree. A zero original price yields a zero discount
- Best price per part description: the minimum available unit price over
  responded requests in creation order; on a tie the first one found wins;
  descriptions with no available offer are absent

Called by: response_service, counter_offer_service, order_service
Depends on: utils.money
"""

from decimal import ROUND_HALF_UP, Decimal

from ..utils import money, safe_float


def line_total(unit_price, quantity) -> float:
    return money(Decimal(str(unit_price or 0)) * Decimal(str(quantity or 0)))


def response_total(parts: list[dict]) -> float:
    total = Decimal("0")
    for part in parts or []:
        if part.get("available"):
            total += Decimal(str(part.get("total_price") or 0))
    return money(total)


# ── Counter-offer lines ─────────────────────────────────────────────────


def discount_for(original_price, counter_price) -> int:
    original = Decimal(str(original_price or 0))
    if original == 0:
        return 0
    counter = Decimal(str(counter_price or 0))
    pct = (original - counter) / original * 100
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def set_counter_price(line: dict, counter_price) -> dict:
    """Set a line's counter price and derive its total and discount."""
    price = money(max(safe_float(counter_price) or 0, 0))
    line["counter_price"] = price
    line["counter_total"] = line_total(price, line.get("quantity", 1))
    line["discount_percentage"] = discount_for(line.get("original_price"), price)
    return line


def set_discount_percentage(line: dict, discount_percentage) -> dict:
    """Set a line's discount; the counter price follows, then the discount is re-derived."""
    pct = Decimal(str(safe_float(discount_percentage) or 0))
    original = Decimal(str(line.get("original_price") or 0))
    price = original * (Decimal("100") - pct) / Decimal("100")
    return set_counter_price(line, price)


def counter_total(lines: list[dict], *, accepted_only: bool = False) -> float:
    total = Decimal("0")
    for line in lines or []:
        if not line.get("available", True):
            continue
        if accepted_only and not line.get("accepted", True):
            continue
        total += Decimal(str(line.get("counter_total") or 0))
    return money(total)


# ── Best price aggregation ──────────────────────────────────────────────


def compute_best_prices(quotation_parts: list[dict], requests: list) -> list[dict]:
    """Minimum available unit price per part description across responded requests.

    `requests` must already be in creation order. Each row carries the
    winning request/supplier, the part index and whether the quotation
    part is already purchased.
    """
    purchased = {
        p.get("description") for p in quotation_parts or [] if p.get("purchased")
    }
    best: dict[str, dict] = {}
    for req in requests:
        if req.status != "responded" or not req.response_data:
            continue
        supplier_name = (req.response_data or {}).get("supplier_name") or (
            req.supplier.name if getattr(req, "supplier", None) else ""
        )
        for index, part in enumerate(req.response_data.get("parts") or []):
            if not part.get("available"):
                continue
            price = safe_float(part.get("unit_price"))
            if price is None or price <= 0:
                continue
            description = part.get("description") or ""
            current = best.get(description)
            if current is not None and not price < current["unit_price"]:
                continue
            best[description] = {
                "description": description,
                "code": part.get("code") or "",
                "quantity": part.get("quantity", 1),
                "unit_price": money(price),
                "total_price": line_total(price, part.get("quantity", 1)),
                "condition": part.get("condition"),
                "request_id": req.id,
                "supplier_id": req.supplier_id,
                "supplier_name": supplier_name,
                "part_index": index,
                "purchased": description in purchased,
            }
    return list(best.values())


# ── Comparison view ─────────────────────────────────────────────────────


def compare_responses(requests: list, sort_by: str = "available") -> list[dict]:
    """Responded requests as comparison rows.

    sort_by="available": most available parts first, then lowest total.
    sort_by="total": lowest total first, then most available parts.
    Ties keep request creation order.
    """
    rows = []
    for req in requests:
        if req.status != "responded" or not req.response_data:
            continue
        data = req.response_data
        parts = data.get("parts") or []
        rows.append(
            {
                "request_id": req.id,
                "supplier_id": req.supplier_id,
                "supplier_name": data.get("supplier_name") or "",
                "available_count": sum(1 for p in parts if p.get("available")),
                "total_price": money(data.get("total_price") or response_total(parts)),
                "delivery_time": data.get("delivery_time") or "",
                "payment_method": data.get("payment_method") or "",
                "renegotiated": bool(data.get("renegotiated")),
                "parts": parts,
            }
        )
    if sort_by == "total":
        rows.sort(key=lambda r: (r["total_price"], -r["available_count"]))
    else:
        rows.sort(key=lambda r: (-r["available_count"], r["total_price"]))
    return rows
