"""
intake_service.py — Quotation intake: manual, bulk text and report modes

Produces a persisted Vehicle + Quotation pair.

Business Rules:
- Manual: parts arrive fully validated (schemas/quotations.QuotationPartIn)
- Bulk: each line goes through part_parser; non-matching lines are dropped;
  descriptions are expanded via the abbreviation cache; zero parsed lines
  is a validation error raised before any write
- Report: free text is stored as Quotation.description with a single
  placeholder part carrying the same text
- The vehicle write is committed before the quotation write. If the second
  commit fails the vehicle stays committed (no compensating delete) and the
  store error propagates with its raw message
- Editing a quotation replaces vehicle fields and parts and resets status to pending
- Parts already purchased keep their purchased flag across edits when the
  description is unchanged

Called by: routers/quotations.py
Depends on: models, services/part_parser, services/abbreviations
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..models import Quotation, Vehicle
from ..schemas.quotations import QuotationCreate
from ..schemas.vehicles import VehicleIn
from .abbreviations import AbbreviationCache
from .part_parser import empty_part, parse_bulk_text

log = logging.getLogger("autoquote.intake")


def build_parts(
    db: Session, user_id: int, payload: QuotationCreate, abbreviations: AbbreviationCache
) -> tuple[list[dict], str | None]:
    """Return (parts, description) for the payload's input mode. Raises ValueError."""
    if payload.input_type == "manual":
        if not payload.parts:
            raise ValueError("At least one part is required")
        return [empty_part(**p.model_dump()) for p in payload.parts], None

    if payload.input_type == "bulk":
        parts = parse_bulk_text(
            payload.bulk_text, lambda text: abbreviations.expand(db, user_id, text)
        )
        if not parts:
            raise ValueError("No valid part lines found in the pasted text")
        return parts, None

    report = payload.report.strip()
    if not report:
        raise ValueError("Report text must not be blank")
    return [empty_part(operation="replace", code="-", description=report, quantity=1)], report


def _apply_vehicle(vehicle: Vehicle, data: VehicleIn) -> None:
    vehicle.brand = data.brand
    vehicle.model = data.model
    vehicle.year = data.year
    vehicle.manufacturing_year = data.manufacturing_year
    vehicle.model_year = data.model_year
    vehicle.plate = data.plate
    vehicle.chassis = data.chassis
    vehicle.images = list(data.images)


def _resolve_vehicle(
    db: Session, user_id: int, payload: QuotationCreate, current: Vehicle | None = None
) -> Vehicle:
    """Existing vehicle by id, the quotation's current vehicle, or a new one."""
    vehicle = current
    if payload.vehicle_id is not None:
        vehicle = db.query(Vehicle).filter_by(id=payload.vehicle_id, user_id=user_id).first()
        if vehicle is None:
            raise ValueError(f"Vehicle {payload.vehicle_id} not found")
    if payload.vehicle is None:
        return vehicle
    if vehicle is None:
        vehicle = Vehicle(user_id=user_id)
        db.add(vehicle)
    _apply_vehicle(vehicle, payload.vehicle)
    return vehicle


def _commit_vehicle(db: Session, vehicle: Vehicle) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(vehicle)


def create_quotation(
    db: Session, user_id: int, payload: QuotationCreate, abbreviations: AbbreviationCache
) -> Quotation:
    parts, description = build_parts(db, user_id, payload, abbreviations)

    vehicle = _resolve_vehicle(db, user_id, payload)
    _commit_vehicle(db, vehicle)

    quotation = Quotation(
        vehicle_id=vehicle.id,
        parts=parts,
        status="pending",
        input_type=payload.input_type,
        description=description,
        user_id=user_id,
    )
    db.add(quotation)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.error(f"Quotation insert failed; vehicle {vehicle.id} was already committed")
        raise
    db.refresh(quotation)
    log.info(
        f"Quotation {quotation.id} created ({payload.input_type}, {len(parts)} parts) "
        f"for vehicle {vehicle.id}"
    )
    return quotation


def _carry_purchased(old_parts: list[dict], new_parts: list[dict]) -> None:
    purchased = {p.get("description") for p in old_parts or [] if p.get("purchased")}
    for part in new_parts:
        if part.get("description") in purchased:
            part["purchased"] = True


def update_quotation(
    db: Session,
    user_id: int,
    quotation: Quotation,
    payload: QuotationCreate,
    abbreviations: AbbreviationCache,
) -> Quotation:
    parts, description = build_parts(db, user_id, payload, abbreviations)

    vehicle = _resolve_vehicle(db, user_id, payload, current=quotation.vehicle)
    _commit_vehicle(db, vehicle)

    _carry_purchased(quotation.parts, parts)
    quotation.vehicle_id = vehicle.id
    quotation.parts = parts
    flag_modified(quotation, "parts")
    quotation.input_type = payload.input_type
    quotation.description = description
    quotation.status = "pending"
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.error(f"Quotation {quotation.id} update failed; vehicle {vehicle.id} was already committed")
        raise
    db.refresh(quotation)
    log.info(f"Quotation {quotation.id} updated; status reset to pending")
    return quotation
