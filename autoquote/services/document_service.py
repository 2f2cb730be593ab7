"""PDF document generation using WeasyPrint."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from sqlalchemy.orm import Session

log = logging.getLogger("autoquote.documents")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "documents"

_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=True,
)


def _brl(value) -> str:
    """1234.5 -> '1.234,50'"""
    text = f"{float(value or 0):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


_jinja_env.filters["brl"] = _brl


def render_purchase_order_html(order) -> str:
    quotation = order.quotation
    template = _jinja_env.get_template("purchase_order.html")
    return template.render(
        order=order,
        supplier=order.supplier,
        workshop=order.workshop,
        vehicle=quotation.vehicle if quotation else None,
        items=list(order.items),
        generated_at=datetime.now(timezone.utc).strftime("%d/%m/%Y %H:%M UTC"),
    )


def generate_purchase_order_pdf(order_id: int, user_id: int, db: Session) -> bytes:
    """Render a purchase order as PDF, whatever its status. Raises ValueError if missing."""
    from ..models import PurchaseOrder

    order = db.query(PurchaseOrder).filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise ValueError(f"Purchase order {order_id} not found")

    html = render_purchase_order_html(order)

    from weasyprint import HTML
    pdf = HTML(string=html).write_pdf()
    log.info(f"Purchase order {order_id} PDF rendered ({len(pdf)} bytes)")
    return pdf
