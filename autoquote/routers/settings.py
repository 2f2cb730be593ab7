"""
routers/settings.py — Per-user configuration routes

Message templates, text abbreviations, WhatsApp gateway settings,
workshops (delivery addresses) and supplier specializations.

Business Rules:
- Exactly one default template; the first template created is the default
- Reordering moves a template to a new position and shifts the ones between
- Abbreviations are unique per user (upper-cased); every write invalidates
  the user's entry in the application abbreviation cache
- The WhatsApp API key is never returned, only whether one is stored
- Specialization names are unique per user

Called by: main.py (router mount)
Depends on: services/template_service, services/abbreviations,
            connectors/whatsapp, services/auth_service
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..connectors.whatsapp import EvolutionClient, WhatsAppError, get_config
from ..database import get_db
from ..dependencies import get_abbreviation_cache, require_user
from ..models import MessageTemplate, Specialization, TextAbbreviation, User, WhatsAppConfig, Workshop
from ..schemas.responses import OkResponse
from ..schemas.settings import (
    AbbreviationIn,
    ExpandText,
    SpecializationIn,
    TemplateIn,
    TemplateReorder,
    TemplateUpdate,
    WhatsAppConfigIn,
    WorkshopIn,
)
from ..services import template_service
from ..services.abbreviations import AbbreviationCache
from ..services.auth_service import company_id_for

router = APIRouter(tags=["settings"])


def _commit_unique(db: Session, message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, message)


# ── Message templates ───────────────────────────────────────────────────


def template_to_dict(t: MessageTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "content": t.content,
        "sequence": t.sequence,
        "is_default": bool(t.is_default),
    }


def _template(db: Session, user: User, template_id: int) -> MessageTemplate:
    tpl = db.query(MessageTemplate).filter_by(id=template_id, user_id=user.id).first()
    if not tpl:
        raise HTTPException(404, "Template not found")
    return tpl


@router.get("/api/settings/templates")
async def list_templates(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return {"templates": [template_to_dict(t) for t in template_service.list_templates(db, user.id)]}


@router.post("/api/settings/templates", status_code=201)
async def create_template(payload: TemplateIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    tpl = template_service.create_template(db, user.id, payload.name, payload.content, payload.is_default)
    return template_to_dict(tpl)


@router.put("/api/settings/templates/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    tpl = _template(db, user, template_id)
    fields = payload.model_dump(exclude_unset=True)
    for key in ("name", "content"):
        if key in fields:
            value = (fields[key] or "").strip()
            if not value:
                raise HTTPException(400, f"{key} must not be blank")
            setattr(tpl, key, value)
    db.commit()
    if fields.get("is_default"):
        template_service.set_default(db, tpl)
    return template_to_dict(tpl)


@router.post("/api/settings/templates/{template_id}/default")
async def set_default_template(template_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    return template_to_dict(template_service.set_default(db, _template(db, user, template_id)))


@router.post("/api/settings/templates/{template_id}/move")
async def move_template(
    template_id: int,
    payload: TemplateReorder,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    templates = template_service.move_template(db, _template(db, user, template_id), payload.sequence)
    return {"templates": [template_to_dict(t) for t in templates]}


@router.delete("/api/settings/templates/{template_id}", response_model=OkResponse)
async def delete_template(template_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    template_service.delete_template(db, _template(db, user, template_id))
    return {"ok": True}


# ── Text abbreviations ──────────────────────────────────────────────────


def abbreviation_to_dict(a: TextAbbreviation) -> dict:
    return {"id": a.id, "abbreviation": a.abbreviation, "full_text": a.full_text}


def _abbreviation(db: Session, user: User, abbreviation_id: int) -> TextAbbreviation:
    row = db.query(TextAbbreviation).filter_by(id=abbreviation_id, user_id=user.id).first()
    if not row:
        raise HTTPException(404, "Abbreviation not found")
    return row


@router.get("/api/settings/abbreviations")
async def list_abbreviations(
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    cache: AbbreviationCache = Depends(get_abbreviation_cache),
):
    rows = db.query(TextAbbreviation).filter_by(user_id=user.id).order_by(TextAbbreviation.abbreviation).all()
    return {
        "abbreviations": [abbreviation_to_dict(a) for a in rows],
        "effective": cache.get(db, user.id),
    }


@router.post("/api/settings/abbreviations", status_code=201)
async def create_abbreviation(
    payload: AbbreviationIn,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    cache: AbbreviationCache = Depends(get_abbreviation_cache),
):
    row = TextAbbreviation(user_id=user.id, abbreviation=payload.abbreviation, full_text=payload.full_text)
    db.add(row)
    _commit_unique(db, f"Abbreviation {payload.abbreviation} already exists")
    cache.invalidate(user.id)
    db.refresh(row)
    return abbreviation_to_dict(row)


@router.put("/api/settings/abbreviations/{abbreviation_id}")
async def update_abbreviation(
    abbreviation_id: int,
    payload: AbbreviationIn,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    cache: AbbreviationCache = Depends(get_abbreviation_cache),
):
    row = _abbreviation(db, user, abbreviation_id)
    row.abbreviation = payload.abbreviation
    row.full_text = payload.full_text
    _commit_unique(db, f"Abbreviation {payload.abbreviation} already exists")
    cache.invalidate(user.id)
    return abbreviation_to_dict(row)


@router.delete("/api/settings/abbreviations/{abbreviation_id}", response_model=OkResponse)
async def delete_abbreviation(
    abbreviation_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    cache: AbbreviationCache = Depends(get_abbreviation_cache),
):
    db.delete(_abbreviation(db, user, abbreviation_id))
    db.commit()
    cache.invalidate(user.id)
    return {"ok": True}


@router.post("/api/settings/abbreviations/expand")
async def expand_abbreviations(
    payload: ExpandText,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    cache: AbbreviationCache = Depends(get_abbreviation_cache),
):
    return {"text": cache.expand(db, user.id, payload.text)}


# ── WhatsApp ────────────────────────────────────────────────────────────


def whatsapp_to_dict(config: WhatsAppConfig | None) -> dict:
    if config is None:
        return {"configured": False}
    return {
        "configured": True,
        "id": config.id,
        "evolution_api_url": config.evolution_api_url,
        "instance_name": config.instance_name,
        "company_id": config.company_id,
        "has_api_key": bool(config.evolution_api_key),
    }


@router.get("/api/settings/whatsapp")
async def get_whatsapp(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return whatsapp_to_dict(get_config(db, user.id))


@router.put("/api/settings/whatsapp")
async def save_whatsapp(payload: WhatsAppConfigIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    config = get_config(db, user.id)
    if config is None:
        config = WhatsAppConfig(user_id=user.id)
        db.add(config)
    config.evolution_api_url = payload.evolution_api_url
    config.evolution_api_key = payload.evolution_api_key
    config.instance_name = payload.instance_name
    config.company_id = payload.company_id or company_id_for(db, user.id)
    db.commit()
    db.refresh(config)
    logger.info(f"WhatsApp configuration saved for user {user.id} (instance {config.instance_name})")
    return whatsapp_to_dict(config)


@router.get("/api/settings/whatsapp/status")
async def whatsapp_status(user: User = Depends(require_user), db: Session = Depends(get_db)):
    config = get_config(db, user.id)
    if config is None:
        return {"configured": False, "state": "unconfigured", "connected": False, "qrcode": None}
    try:
        status = await EvolutionClient.from_config(config).connection_state()
    except WhatsAppError as e:
        return {"configured": True, "state": "error", "connected": False, "qrcode": None, "error": str(e)}
    return {"configured": True, **status}


# ── Workshops ───────────────────────────────────────────────────────────


def workshop_to_dict(w: Workshop) -> dict:
    return {
        "id": w.id,
        "name": w.name,
        "address": w.address or "",
        "city": w.city or "",
        "state": w.state or "",
        "phone": w.phone or "",
    }


def _workshop(db: Session, user: User, workshop_id: int) -> Workshop:
    w = db.query(Workshop).filter_by(id=workshop_id, user_id=user.id).first()
    if not w:
        raise HTTPException(404, "Workshop not found")
    return w


@router.get("/api/workshops")
async def list_workshops(user: User = Depends(require_user), db: Session = Depends(get_db)):
    rows = db.query(Workshop).filter_by(user_id=user.id).order_by(Workshop.name).all()
    return {"workshops": [workshop_to_dict(w) for w in rows]}


@router.post("/api/workshops", status_code=201)
async def create_workshop(payload: WorkshopIn, user: User = Depends(require_user), db: Session = Depends(get_db)):
    w = Workshop(user_id=user.id, **payload.model_dump())
    db.add(w)
    db.commit()
    db.refresh(w)
    return workshop_to_dict(w)


@router.put("/api/workshops/{workshop_id}")
async def update_workshop(
    workshop_id: int, payload: WorkshopIn, user: User = Depends(require_user), db: Session = Depends(get_db)
):
    w = _workshop(db, user, workshop_id)
    for key, value in payload.model_dump().items():
        setattr(w, key, value)
    db.commit()
    return workshop_to_dict(w)


@router.delete("/api/workshops/{workshop_id}", response_model=OkResponse)
async def delete_workshop(workshop_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    db.delete(_workshop(db, user, workshop_id))
    db.commit()
    return {"ok": True}


# ── Specializations ─────────────────────────────────────────────────────


@router.get("/api/specializations")
async def list_specializations(user: User = Depends(require_user), db: Session = Depends(get_db)):
    rows = db.query(Specialization).filter_by(user_id=user.id).order_by(Specialization.name).all()
    return {"specializations": [{"id": s.id, "name": s.name} for s in rows]}


@router.post("/api/specializations", status_code=201)
async def create_specialization(
    payload: SpecializationIn, user: User = Depends(require_user), db: Session = Depends(get_db)
):
    s = Specialization(user_id=user.id, name=payload.name)
    db.add(s)
    _commit_unique(db, f"Specialization {payload.name} already exists")
    db.refresh(s)
    return {"id": s.id, "name": s.name}


@router.delete("/api/specializations/{specialization_id}", response_model=OkResponse)
async def delete_specialization(
    specialization_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)
):
    s = db.query(Specialization).filter_by(id=specialization_id, user_id=user.id).first()
    if not s:
        raise HTTPException(404, "Specialization not found")
    db.delete(s)
    db.commit()
    return {"ok": True}
