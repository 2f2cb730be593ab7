"""
template_service.py — WhatsApp message templates: rendering, default, ordering

Business Rules:
- Placeholders: {vehicle_brand} {vehicle_model} {vehicle_year} {vehicle_chassis}
  {parts_list} {quotation_link}, plus Portuguese aliases {marca} {modelo}
  {ano} {chassi} {pecas}; unknown braces are left untouched
- The response link is always present in the rendered message: when the
  template has no {quotation_link} token the link is appended at the end
- Exactly one default template per user; setting a default clears the others
- Without any default template a built-in message is used
- Sequence numbers are 1..N per user; moving a template shifts the templates
  between its old and new position by one (down when moving later, up when
  moving earlier)

Called by: services/dispatch_service, routers/settings
Depends on: models.MessageTemplate
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import MessageTemplate, Vehicle

log = logging.getLogger("autoquote.templates")

BUILTIN_TEMPLATE = (
    "Olá! Gostaríamos de solicitar uma cotação para o veículo abaixo.\n\n"
    "*{vehicle_brand} {vehicle_model} {vehicle_year}*\n"
    "Chassi: {vehicle_chassis}\n\n"
    "Peças:\n\n{parts_list}\n\n"
    "Responda pelo link: {quotation_link}"
)


def render_parts_list(parts: list[dict]) -> str:
    lines = []
    for part in parts or []:
        lines.append(
            f"⭕ {part.get('description', '')}\n"
            f"Cod. Peça: {part.get('code') or '-'}\n"
            f"Quantidade: {part.get('quantity', 1)}"
        )
    return "\n\n".join(lines)


def render_message(content: str, vehicle: Vehicle, parts: list[dict], link: str) -> str:
    """Substitute placeholders and make sure the response link is in the text."""
    brand = vehicle.brand or ""
    model = vehicle.model or ""
    year = vehicle.year or ""
    chassis = vehicle.chassis or ""
    parts_list = render_parts_list(parts)
    values = {
        "{vehicle_brand}": brand,
        "{vehicle_model}": model,
        "{vehicle_year}": year,
        "{vehicle_chassis}": chassis,
        "{parts_list}": parts_list,
        "{quotation_link}": link,
        "{marca}": brand,
        "{modelo}": model,
        "{ano}": year,
        "{chassi}": chassis,
        "{pecas}": parts_list,
    }
    text = content
    for token, value in values.items():
        text = text.replace(token, value)
    if link and link not in text:
        text = f"{text.rstrip()}\n\n{link}"
    return text


def list_templates(db: Session, user_id: int) -> list[MessageTemplate]:
    return (
        db.query(MessageTemplate)
        .filter_by(user_id=user_id)
        .order_by(MessageTemplate.sequence, MessageTemplate.id)
        .all()
    )


def get_default_template(db: Session, user_id: int) -> MessageTemplate | None:
    return (
        db.query(MessageTemplate)
        .filter_by(user_id=user_id, is_default=True)
        .order_by(MessageTemplate.sequence, MessageTemplate.id)
        .first()
    )


def _clear_defaults(db: Session, user_id: int, keep_id: int | None = None) -> None:
    q = db.query(MessageTemplate).filter_by(user_id=user_id, is_default=True)
    if keep_id is not None:
        q = q.filter(MessageTemplate.id != keep_id)
    for tpl in q.all():
        tpl.is_default = False


def create_template(db: Session, user_id: int, name: str, content: str, is_default: bool = False) -> MessageTemplate:
    max_seq = (
        db.query(func.max(MessageTemplate.sequence))
        .filter(MessageTemplate.user_id == user_id)
        .scalar()
        or 0
    )
    has_default = get_default_template(db, user_id) is not None
    tpl = MessageTemplate(
        user_id=user_id,
        name=name,
        content=content,
        sequence=max_seq + 1,
        is_default=is_default or not has_default,
    )
    db.add(tpl)
    db.flush()
    if tpl.is_default:
        _clear_defaults(db, user_id, keep_id=tpl.id)
    db.commit()
    db.refresh(tpl)
    return tpl


def set_default(db: Session, tpl: MessageTemplate) -> MessageTemplate:
    _clear_defaults(db, tpl.user_id, keep_id=tpl.id)
    tpl.is_default = True
    db.commit()
    db.refresh(tpl)
    return tpl


def move_template(db: Session, tpl: MessageTemplate, new_sequence: int) -> list[MessageTemplate]:
    """Move `tpl` to `new_sequence`, shifting the templates in between."""
    count = db.query(MessageTemplate).filter_by(user_id=tpl.user_id).count()
    new_sequence = max(1, min(new_sequence, count))
    old_sequence = tpl.sequence

    others = db.query(MessageTemplate).filter(
        MessageTemplate.user_id == tpl.user_id, MessageTemplate.id != tpl.id
    )
    if new_sequence > old_sequence:
        for other in others.filter(
            MessageTemplate.sequence > old_sequence, MessageTemplate.sequence <= new_sequence
        ):
            other.sequence -= 1
    elif new_sequence < old_sequence:
        for other in others.filter(
            MessageTemplate.sequence >= new_sequence, MessageTemplate.sequence < old_sequence
        ):
            other.sequence += 1
    tpl.sequence = new_sequence
    db.commit()
    log.info(f"Template {tpl.id} moved from {old_sequence} to {new_sequence}")
    return list_templates(db, tpl.user_id)


def delete_template(db: Session, tpl: MessageTemplate) -> None:
    user_id = tpl.user_id
    was_default = tpl.is_default
    removed_seq = tpl.sequence
    db.delete(tpl)
    db.flush()
    for other in db.query(MessageTemplate).filter(
        MessageTemplate.user_id == user_id, MessageTemplate.sequence > removed_seq
    ):
        other.sequence -= 1
    if was_default:
        first = (
            db.query(MessageTemplate)
            .filter_by(user_id=user_id)
            .order_by(MessageTemplate.sequence)
            .first()
        )
        if first is not None:
            first.is_default = True
    db.commit()
