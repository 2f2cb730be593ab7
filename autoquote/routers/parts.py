"""
routers/parts.py — Catalog parts per vehicle

Business Rules:
- A part belongs to one of the user's vehicles
- Quantity >= 1, hours and costs >= 0 (schema level); costs default to 0

Called by: main.py (router mount)
Depends on: models, schemas/vehicles
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import Part, User, Vehicle
from ..schemas.responses import OkResponse
from ..schemas.vehicles import PartIn, PartUpdate

router = APIRouter(tags=["parts"])


def part_to_dict(p: Part) -> dict:
    return {
        "id": p.id,
        "vehicle_id": p.vehicle_id,
        "operation": p.operation,
        "code": p.code,
        "description": p.description,
        "condition": p.condition,
        "quantity": p.quantity,
        "painting_hours": float(p.painting_hours or 0),
        "labor_hours": float(p.labor_hours or 0),
        "labor_cost": float(p.labor_cost or 0),
        "part_cost": float(p.part_cost or 0),
        "notes": p.notes or "",
    }


def _get_part(db: Session, user: User, part_id: int) -> Part:
    part = db.query(Part).filter_by(id=part_id, user_id=user.id).first()
    if not part:
        raise HTTPException(404, "Part not found")
    return part


@router.get("/api/vehicles/{vehicle_id}/parts")
async def list_parts(vehicle_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    if not db.query(Vehicle).filter_by(id=vehicle_id, user_id=user.id).first():
        raise HTTPException(404, "Vehicle not found")
    parts = db.query(Part).filter_by(vehicle_id=vehicle_id, user_id=user.id).order_by(Part.id).all()
    return {"parts": [part_to_dict(p) for p in parts]}


@router.post("/api/parts", status_code=201)
async def create_part(payload: PartIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    if not db.query(Vehicle).filter_by(id=payload.vehicle_id, user_id=user.id).first():
        raise HTTPException(404, "Vehicle not found")
    part = Part(user_id=user.id, **payload.model_dump())
    db.add(part)
    db.commit()
    db.refresh(part)
    return part_to_dict(part)


@router.put("/api/parts/{part_id}")
async def update_part(
    part_id: int, payload: PartUpdate, user: User = Depends(require_user), db: Session = Depends(get_db)
):
    part = _get_part(db, user, part_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(part, key, value)
    db.commit()
    db.refresh(part)
    return part_to_dict(part)


@router.delete("/api/parts/{part_id}", response_model=OkResponse)
async def delete_part(part_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    db.delete(_get_part(db, user, part_id))
    db.commit()
    return {"ok": True}
