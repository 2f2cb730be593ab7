"""
routers/suppliers.py — Supplier CRUD, filtering and filter values

Business Rules:
- Filters (area code, city, state, categories, name) are AND-combined;
  categories match when the supplier has any of the requested tags
- Filter values endpoint returns the distinct area codes, cities and
  states of the user's suppliers, for the dispatch screen dropdowns
- A supplier without area code or phone is listed but flagged as not
  dispatchable

Called by: main.py (router mount)
Depends on: models, schemas/settings, services/dispatch_service
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import Supplier, User
from ..schemas.responses import OkResponse
from ..schemas.settings import SupplierIn, SupplierUpdate
from ..services.dispatch_service import filter_suppliers

router = APIRouter(tags=["suppliers"])


def supplier_to_dict(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "phone": s.phone or "",
        "area_code": s.area_code or "",
        "city": s.city or "",
        "state": s.state or "",
        "street": s.street or "",
        "number": s.number or "",
        "complement": s.complement or "",
        "neighborhood": s.neighborhood or "",
        "zip_code": s.zip_code or "",
        "parts_type": s.parts_type,
        "categories": list(s.categories or []),
        "dispatchable": s.is_dispatchable,
    }


def _get_supplier(db: Session, user: User, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter_by(id=supplier_id, user_id=user.id).first()
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.get("/api/suppliers")
async def list_suppliers(
    area_code: str | None = None,
    city: str | None = None,
    state: str | None = None,
    name: str | None = None,
    categories: list[str] | None = Query(None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    rows = filter_suppliers(
        db, user.id, area_code=area_code, city=city, state=state, categories=categories, name=name
    )
    return {"total": len(rows), "suppliers": [supplier_to_dict(s) for s in rows]}


@router.get("/api/suppliers/filter-values")
async def supplier_filter_values(user: User = Depends(require_user), db: Session = Depends(get_db)):
    def distinct(column):
        values = db.query(column).filter(Supplier.user_id == user.id).distinct().all()
        return sorted({v[0] for v in values if v[0]})

    categories = set()
    for (cats,) in db.query(Supplier.categories).filter(Supplier.user_id == user.id):
        categories.update(c for c in cats or [] if c)
    return {
        "area_codes": distinct(Supplier.area_code),
        "cities": distinct(Supplier.city),
        "states": distinct(Supplier.state),
        "categories": sorted(categories),
    }


@router.post("/api/suppliers", status_code=201)
async def create_supplier(payload: SupplierIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    supplier = Supplier(user_id=user.id, **payload.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    if not supplier.is_dispatchable:
        logger.info(f"Supplier {supplier.id} saved without area code or phone")
    return supplier_to_dict(supplier)


@router.get("/api/suppliers/{supplier_id}")
async def get_supplier(supplier_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    return supplier_to_dict(_get_supplier(db, user, supplier_id))


@router.put("/api/suppliers/{supplier_id}")
async def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    supplier = _get_supplier(db, user, supplier_id)
    fields = payload.model_dump(exclude_unset=True)
    if "name" in fields and not (fields["name"] or "").strip():
        raise HTTPException(400, "name must not be blank")
    if fields.get("state"):
        fields["state"] = fields["state"].strip().upper()
    for key, value in fields.items():
        setattr(supplier, key, value)
    db.commit()
    db.refresh(supplier)
    return supplier_to_dict(supplier)


@router.delete("/api/suppliers/{supplier_id}", response_model=OkResponse)
async def delete_supplier(supplier_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    db.delete(_get_supplier(db, user, supplier_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "Supplier has quotation requests or purchase orders and cannot be deleted")
    return {"ok": True}
