"""
routers/orders.py — Purchase order generation, listing, dispatch and deletion

Business Rules:
- Orders are generated from manual (request, part) selections or from the
  best-price rows; one order per supplier
- Sending goes pending → sending → sent; a gateway failure returns the order
  to pending and answers 502 with the gateway error
- Deleting an order releases the quotation parts it had marked purchased

Called by: main.py (router mount)
Depends on: services/order_service, services/quotation_repository
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..connectors.whatsapp import WhatsAppError
from ..database import get_db
from ..dependencies import require_user
from ..models import PurchaseOrder, User
from ..schemas.orders import GenerateFromBestPrices, GenerateFromSelection, OrderSend, OrderUpdate
from ..schemas.responses import GeneratedOrdersResponse, OkResponse, OrderSendResponse
from ..services import order_service
from ..services.quotation_repository import get_quotation_with_vehicle_and_requests

router = APIRouter(tags=["orders"])


def _order(db: Session, user: User, order_id: int) -> PurchaseOrder:
    order = db.query(PurchaseOrder).filter_by(id=order_id, user_id=user.id).first()
    if not order:
        raise HTTPException(404, "Purchase order not found")
    return order


def _bundle(db: Session, user: User, quotation_id: int):
    bundle = get_quotation_with_vehicle_and_requests(db, quotation_id, user.id)
    if bundle is None:
        raise HTTPException(404, "Quotation not found")
    return bundle


def _options(payload) -> dict:
    return {
        "workshop_id": payload.workshop_id,
        "delivery_time": payload.delivery_time,
        "notes": payload.notes,
    }


@router.post(
    "/api/quotations/{quotation_id}/purchase-orders",
    status_code=201,
    response_model=GeneratedOrdersResponse,
)
async def generate_from_selection(
    quotation_id: int,
    payload: GenerateFromSelection,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    bundle = _bundle(db, user, quotation_id)
    try:
        orders = order_service.generate_orders_from_selection(
            db, user.id, bundle, payload.selections, **_options(payload)
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "orders": [order_service.order_to_dict(o) for o in orders],
        "quotation_status": bundle.quotation.status,
    }


@router.post(
    "/api/quotations/{quotation_id}/purchase-orders/best-prices",
    status_code=201,
    response_model=GeneratedOrdersResponse,
)
async def generate_from_best_prices(
    quotation_id: int,
    payload: GenerateFromBestPrices,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    bundle = _bundle(db, user, quotation_id)
    try:
        orders = order_service.generate_orders_from_best_prices(
            db, user.id, bundle, payload.descriptions, **_options(payload)
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {
        "orders": [order_service.order_to_dict(o) for o in orders],
        "quotation_status": bundle.quotation.status,
    }


@router.get("/api/quotations/{quotation_id}/purchase-orders")
async def list_quotation_orders(quotation_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    _bundle(db, user, quotation_id)
    orders = (
        db.query(PurchaseOrder)
        .filter_by(quotation_id=quotation_id, user_id=user.id)
        .order_by(PurchaseOrder.id)
        .all()
    )
    return {"orders": [order_service.order_to_dict(o) for o in orders]}


@router.get("/api/purchase-orders")
async def list_orders(
    status: str | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    query = db.query(PurchaseOrder).filter(PurchaseOrder.user_id == user.id)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
    return {"orders": [order_service.order_to_dict(o) for o in orders]}


@router.get("/api/purchase-orders/{order_id}")
async def get_order(order_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    order = _order(db, user, order_id)
    data = order_service.order_to_dict(order)
    data["message_preview"] = order_service.order_message(order)
    return data


@router.put("/api/purchase-orders/{order_id}")
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    order = _order(db, user, order_id)
    try:
        order_service.update_order(db, user.id, order, payload)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return order_service.order_to_dict(order)


@router.post("/api/purchase-orders/{order_id}/send", response_model=OrderSendResponse)
async def send_order(
    order_id: int,
    payload: OrderSend,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    order = _order(db, user, order_id)
    try:
        return await order_service.send_purchase_order(
            db, user.id, order, include_vehicle_image=payload.include_vehicle_image
        )
    except WhatsAppError as e:
        raise HTTPException(502, f"WhatsApp send failed: {e}")
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.delete("/api/purchase-orders/{order_id}", response_model=OkResponse)
async def delete_order(order_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    order_service.delete_purchase_order(db, _order(db, user, order_id))
    return {"ok": True}
