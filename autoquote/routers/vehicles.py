"""
routers/vehicles.py — Vehicle CRUD

Business Rules:
- Every query is scoped to the authenticated user
- Deleting a vehicle deletes its catalog parts and quotations

Called by: main.py (router mount)
Depends on: models, schemas/vehicles, services/quotation_repository
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import User, Vehicle
from ..schemas.responses import OkResponse
from ..schemas.vehicles import VehicleIn, VehicleUpdate
from ..services.quotation_repository import vehicle_to_dict

router = APIRouter(tags=["vehicles"])


def _get_vehicle(db: Session, user: User, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter_by(id=vehicle_id, user_id=user.id).first()
    if not vehicle:
        raise HTTPException(404, "Vehicle not found")
    return vehicle


@router.get("/api/vehicles")
async def list_vehicles(
    q: str = "",
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    query = db.query(Vehicle).filter(Vehicle.user_id == user.id)
    if q.strip():
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(Vehicle.brand.ilike(like), Vehicle.model.ilike(like), Vehicle.plate.ilike(like))
        )
    total = query.count()
    rows = query.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).offset(offset).limit(limit).all()
    return {"total": total, "limit": limit, "offset": offset, "vehicles": [vehicle_to_dict(v) for v in rows]}


@router.post("/api/vehicles", status_code=201)
async def create_vehicle(payload: VehicleIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    vehicle = Vehicle(user_id=user.id, **payload.model_dump())
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"Vehicle {vehicle.id} created by user {user.id}")
    return vehicle_to_dict(vehicle)


@router.get("/api/vehicles/{vehicle_id}")
async def get_vehicle(vehicle_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    return vehicle_to_dict(_get_vehicle(db, user, vehicle_id))


@router.put("/api/vehicles/{vehicle_id}")
async def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    vehicle = _get_vehicle(db, user, vehicle_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key in ("brand", "model") and not (value or "").strip():
            raise HTTPException(400, f"{key} must not be blank")
        setattr(vehicle, key, value)
    db.commit()
    db.refresh(vehicle)
    return vehicle_to_dict(vehicle)


@router.delete("/api/vehicles/{vehicle_id}", response_model=OkResponse)
async def delete_vehicle(vehicle_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    vehicle = _get_vehicle(db, user, vehicle_id)
    db.delete(vehicle)
    db.commit()
    logger.info(f"Vehicle {vehicle_id} deleted by user {user.id}")
    return {"ok": True}
