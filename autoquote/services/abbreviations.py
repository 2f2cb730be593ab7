"""
abbreviations.py — Text abbreviation expansion with an explicit TTL cache

Parts lists pasted from estimating systems use terse upper-case
abbreviations ("CJ", "P-CHOQ", "DIA"). Descriptions are expanded to full
words before they are stored or sent to suppliers.

Business Rules:
- Built-in abbreviations apply to every user; a user's own rows override them
- Text is upper-cased first, then every abbreviation is replaced as a whole word
- Longest abbreviation wins when several could match at the same position
- Expansion is a single pass: inserted full text is never expanded again
- Estimating-system markers "(I)" and "(f)" are removed
- The cache is owned by the application (app.state), not the module;
  entries expire after a configurable TTL and are invalidated on writes

Called by: services/part_parser, services/intake_service, routers/settings
Depends on: models.TextAbbreviation, config (TTL)
"""

import logging
import re
import time
from typing import Callable

from sqlalchemy.orm import Session

from ..config import settings
from ..models import TextAbbreviation

log = logging.getLogger("autoquote.abbreviations")

DEFAULT_ABBREVIATIONS = {
    "CJ": "Conjunto",
    "SUP": "Suporte",
    "P-CHOQ": "Para-choque",
    "P-CHOQUE": "Para-choque",
    "DIA": "Dianteiro",
    "ESQ": "Esquerdo",
    "NEBL": "Neblina",
    "E": "Esquerdo",
    "MOLD": "Moldura",
    "DT": "Dianteiro",
    "VÁLV": "Válvula",
    "LIMPAD": "Limpador",
    "P-BARRO": "Para-barro",
    "ANT": "Anterior",
    "REF": "Refletor",
}

_MARKER_RE = re.compile(r"\((?:I|f)\)")
_SPACES_RE = re.compile(r"\s{2,}")


def strip_markers(text: str) -> str:
    return _SPACES_RE.sub(" ", _MARKER_RE.sub("", text or "")).strip()


def compile_pattern(mapping: dict[str, str]) -> re.Pattern | None:
    """One alternation, longest first, anchored on word boundaries."""
    if not mapping:
        return None
    keys = sorted(mapping, key=lambda k: (-len(k), k))
    alternation = "|".join(re.escape(k) for k in keys)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")


def expand_text(text: str, mapping: dict[str, str], pattern: re.Pattern | None = None) -> str:
    """Upper-case `text` and replace whole-word abbreviations from `mapping`."""
    processed = strip_markers(text).upper()
    pattern = pattern or compile_pattern(mapping)
    if pattern is None:
        return processed
    return pattern.sub(lambda m: mapping[m.group(0)], processed)


class AbbreviationCache:
    """Per-user abbreviation lookup with a staleness check and explicit invalidation."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = (
            settings.abbreviation_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        self._clock = clock
        self._entries: dict[int, tuple[float, dict[str, str], re.Pattern | None]] = {}

    def _load(self, db: Session, user_id: int) -> dict[str, str]:
        rows = (
            db.query(TextAbbreviation)
            .filter_by(user_id=user_id)
            .order_by(TextAbbreviation.abbreviation)
            .all()
        )
        mapping = dict(DEFAULT_ABBREVIATIONS)
        for row in rows:
            abbr = (row.abbreviation or "").strip().upper()
            if abbr and row.full_text:
                mapping[abbr] = row.full_text
        log.debug(f"Loaded {len(rows)} abbreviations for user {user_id}")
        return mapping

    def _entry(self, db: Session, user_id: int):
        now = self._clock()
        entry = self._entries.get(user_id)
        if entry is None or now - entry[0] >= self.ttl_seconds:
            mapping = self._load(db, user_id)
            entry = (now, mapping, compile_pattern(mapping))
            self._entries[user_id] = entry
        return entry

    def get(self, db: Session, user_id: int) -> dict[str, str]:
        return dict(self._entry(db, user_id)[1])

    def expand(self, db: Session, user_id: int, text: str) -> str:
        _, mapping, pattern = self._entry(db, user_id)
        return expand_text(text, mapping, pattern)

    def invalidate(self, user_id: int | None = None) -> None:
        if user_id is None:
            self._entries.clear()
        else:
            self._entries.pop(user_id, None)
