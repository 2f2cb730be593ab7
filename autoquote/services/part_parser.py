"""
part_parser.py — Bulk parts-list parsing

Parses lines pasted from an estimating system, e.g.

    TROCAR 71103T5NM50 (I) ACAB DIR FAROL NEBL (f) Genuína 1
    TROCAR/PINTAR 04711T5NZ00ZZ P-CHOQ DIA Nova 1 1.250,00
    TROCAR 71103T5NM50 (I) ACAB DIR FAROL NEBL (f) Genuína 1 0,00 1,5

Grammar: OP CODE DESCRIPTION... CONDITION [QTY] [PRICE] [COLUMNS...]. The
condition word is the fixed marker: everything between the code and the
rightmost condition word is description, everything after it is quantity,
price and the remaining estimate columns.

Business Rules:
- OP is TROCAR (replace) or TROCAR/PINTAR (replace+paint), any case,
  spaces around the slash tolerated
- CONDITION is Genuína/Genuina (genuine), Nova (new) or Usada (used)
- Quantity defaults to 1 when missing or not a positive integer
- Price accepts "1.250,00", "80,5" or "80.50"
- Exports with more columns after the price are accepted: the middle columns
  are skipped and the last numeric one is the painting hours
- Lines that do not match are dropped silently; blank lines are ignored

Called by: services/intake_service, routers/quotations (preview)
Depends on: services/abbreviations (description expansion)
"""

import re
import unicodedata
from typing import Callable

from ..utils import money, safe_float, safe_int
from .abbreviations import strip_markers

OPERATIONS = {"TROCAR": "replace", "TROCAR/PINTAR": "replace+paint"}
CONDITIONS = {"genuina": "genuine", "nova": "new", "usada": "used"}

_OP_SLASH_RE = re.compile(r"^\s*TROCAR\s*/\s*PINTAR\b", re.IGNORECASE)


def _fold(token: str) -> str:
    """Lower-case and strip accents: 'Genuína' -> 'genuina'."""
    decomposed = unicodedata.normalize("NFKD", token)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def empty_part(**fields) -> dict:
    """An embedded quotation part with every field present."""
    part = {
        "operation": "replace",
        "code": "",
        "description": "",
        "condition": "genuine",
        "quantity": 1,
        "painting_hours": 0,
        "labor_hours": 0,
        "labor_cost": 0,
        "part_cost": 0,
        "notes": "",
        "purchased": False,
    }
    part.update(fields)
    return part


def parse_line(line: str, expand: Callable[[str], str] | None = None) -> dict | None:
    """Parse one bulk line into an embedded part, or None when it does not match."""
    line = _OP_SLASH_RE.sub("TROCAR/PINTAR", line or "")
    tokens = line.split()
    if len(tokens) < 4:
        return None

    operation = OPERATIONS.get(tokens[0].upper())
    if operation is None:
        return None

    code = tokens[1]
    if code.startswith("("):
        return None

    cond_idx = None
    for i in range(len(tokens) - 1, 1, -1):
        if _fold(tokens[i]) in CONDITIONS:
            cond_idx = i
            break
    if cond_idx is None:
        return None

    trailing = tokens[cond_idx + 1:]

    description = strip_markers(" ".join(tokens[2:cond_idx]))
    if not description:
        return None
    if expand is not None:
        description = expand(description)

    quantity = safe_int(trailing[0]) if trailing else None
    if not quantity or quantity < 1:
        quantity = 1

    price = safe_float(trailing[1]) if len(trailing) >= 2 else None

    painting_hours = 0
    for token in reversed(trailing[2:]):
        hours = safe_float(token)
        if hours is not None:
            painting_hours = hours
            break

    return empty_part(
        operation=operation,
        code=code,
        description=description,
        condition=CONDITIONS[_fold(tokens[cond_idx])],
        quantity=quantity,
        part_cost=money(price) if price else 0,
        painting_hours=painting_hours,
    )


def parse_bulk_text(text: str, expand: Callable[[str], str] | None = None) -> list[dict]:
    """Parse every line of a pasted list, dropping lines that do not match."""
    parts = []
    for raw in (text or "").splitlines():
        if not raw.strip():
            continue
        part = parse_line(raw, expand)
        if part is not None:
            parts.append(part)
    return parts
