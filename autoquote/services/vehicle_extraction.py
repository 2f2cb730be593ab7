"""
vehicle_extraction.py — Vehicle fields from a registration/claim PDF

Business Rules:
- Fields: brand, model, year, plate, chassis (all optional strings)
- Strategies run in a fixed order; each returns a partial dict; the merge
  keeps the first non-empty value per field
- Claude (PDF document block, forced JSON-schema tool) runs first; a
  missing key, HTTP error or unparsable answer just yields nothing
- Local strategies work on the PDF text layer (pypdf); when that is empty
  the raw bytes are decoded as latin-1 so uncompressed text streams still match
- Chassis must be 17 letters/digits and plate a Brazilian plate (old or
  Mercosul format), otherwise the value is dropped
- Zero fields from every strategy is an error (router maps to 422)

Called by: routers/documents.py
Depends on: utils/claude_client, pypdf
"""

import io
import logging
import re
from typing import Callable

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..config import settings
from ..utils.claude_client import claude_structured, pdf_block

log = logging.getLogger("autoquote.extraction")

FIELDS = ("brand", "model", "year", "plate", "chassis")

VEHICLE_SCHEMA = {
    "type": "object",
    "properties": {
        "brand": {"type": "string", "description": "Vehicle make (Marca)"},
        "model": {"type": "string", "description": "Vehicle model (Modelo)"},
        "year": {"type": "string", "description": "Year, e.g. 2021 or 2020/2021"},
        "plate": {"type": "string", "description": "License plate (Placa)"},
        "chassis": {"type": "string", "description": "17-character chassis/VIN (Chassi)"},
    },
    "required": [],
}

EXTRACTION_PROMPT = (
    "Analise este documento e extraia as informações do veículo: marca (brand), "
    "modelo (model), ano (year), placa (plate) e chassi (chassis). "
    "Se alguma informação não for encontrada, deixe o campo vazio."
)

SYSTEM_PROMPT = "You read Brazilian vehicle documents (CRLV, claim reports, invoices) and extract vehicle fields."

_CHASSIS_RE = re.compile(r"\b([A-HJ-NPR-Z0-9]{17})\b")
_PLATE_RE = re.compile(r"\b([A-Z]{3})[- ]?(\d[A-Z0-9]\d{2})\b")
_LABEL_PATTERNS = {
    "brand": re.compile(r"MARCA\s*[:/\-]?\s*([A-Z][A-Z0-9\- ]{1,30}?)(?:\s{2,}|\s*/|\n|$)"),
    "model": re.compile(r"MODELO\s*[:\-]?\s*([A-Z0-9][A-Z0-9\.\- ]{1,40}?)(?:\s{2,}|\n|$)"),
    "year": re.compile(r"\bANO(?:\s+FAB(?:RICA[CÇ][AÃ]O)?)?(?:\s*/\s*MOD(?:ELO)?)?\s*[:\-]?\s*(\d{4}(?:\s*/\s*\d{4})?)"),
    "plate": re.compile(r"PLACA\s*[:\-]?\s*([A-Z]{3}[- ]?\d[A-Z0-9]\d{2})"),
    "chassis": re.compile(r"CHASSI[S]?\s*[:\-]?\s*([A-Z0-9]{17})"),
}
_MARCA_MODELO_RE = re.compile(r"MARCA\s*/\s*MODELO\s*[:\-]?\s*([A-Z]+)\s*/\s*([A-Z0-9][A-Z0-9\.\- ]{1,40}?)(?:\s{2,}|\n|$)")
_YEAR_RE = re.compile(r"\b((?:19[89]\d|20[0-4]\d)(?:\s*/\s*(?:19[89]\d|20[0-4]\d))?)\b")

Strategy = Callable[[str], dict]


# ── Text sources ────────────────────────────────────────────────────────


def pdf_text(content: bytes) -> str:
    """Text layer of the PDF, or a latin-1 decode of the raw bytes."""
    text = ""
    try:
        reader = PdfReader(io.BytesIO(content))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError, OSError) as e:
        log.warning(f"PDF text layer unreadable: {e}")
    if not text.strip():
        text = content.decode("latin-1", errors="ignore")
    return text.upper()


# ── Field cleanup ───────────────────────────────────────────────────────


def _clean_plate(value: str) -> str:
    v = re.sub(r"[^A-Z0-9]", "", (value or "").upper())
    return v if re.fullmatch(r"[A-Z]{3}\d[A-Z0-9]\d{2}", v) else ""


def _clean_chassis(value: str) -> str:
    v = re.sub(r"[^A-Z0-9]", "", (value or "").upper())
    return v if len(v) == 17 else ""


def clean_fields(raw: dict | None) -> dict:
    """Strip, validate plate/chassis, drop empties."""
    out = {}
    for key in FIELDS:
        value = str((raw or {}).get(key) or "").strip()
        if key == "plate":
            value = _clean_plate(value)
        elif key == "chassis":
            value = _clean_chassis(value)
        else:
            value = re.sub(r"\s{2,}", " ", value)
        if value:
            out[key] = value
    return out


# ── Local strategies ────────────────────────────────────────────────────


def labelled_fields(text: str) -> dict:
    """'MARCA: FIAT', 'PLACA: ABC1D23', 'CHASSI: ...' style labels."""
    found = {}
    combined = _MARCA_MODELO_RE.search(text)
    if combined:
        found["brand"] = combined.group(1)
        found["model"] = combined.group(2)
    for key, pattern in _LABEL_PATTERNS.items():
        if key in found:
            continue
        m = pattern.search(text)
        if m:
            found[key] = m.group(1)
    return found


def chassis_anywhere(text: str) -> dict:
    for candidate in _CHASSIS_RE.findall(text):
        if re.search(r"[A-Z]", candidate) and re.search(r"\d", candidate):
            return {"chassis": candidate}
    return {}


def plate_anywhere(text: str) -> dict:
    m = _PLATE_RE.search(text)
    return {"plate": m.group(1) + m.group(2)} if m else {}


def year_anywhere(text: str) -> dict:
    m = _YEAR_RE.search(text)
    return {"year": re.sub(r"\s+", "", m.group(1))} if m else {}


LOCAL_STRATEGIES: list[Strategy] = [labelled_fields, chassis_anywhere, plate_anywhere, year_anywhere]


def merge_first_non_empty(results: list[dict]) -> dict:
    merged: dict = {}
    for result in results:
        for key, value in clean_fields(result).items():
            merged.setdefault(key, value)
    return merged


def extract_local(content: bytes, strategies: list[Strategy] | None = None) -> dict:
    text = pdf_text(content)
    return merge_first_non_empty([strategy(text) for strategy in strategies or LOCAL_STRATEGIES])


# ── Entry point ─────────────────────────────────────────────────────────


async def extract_with_claude(content: bytes) -> dict:
    result = await claude_structured(
        [pdf_block(content), {"type": "text", "text": EXTRACTION_PROMPT}],
        VEHICLE_SCHEMA,
        system=SYSTEM_PROMPT,
        model_tier=settings.extraction_model_tier,
        timeout=settings.extraction_timeout_seconds,
    )
    return result if isinstance(result, dict) else {}


async def extract_vehicle_fields(content: bytes) -> dict:
    """Return {fields, sources}. Raises ValueError when nothing was found."""
    ai = clean_fields(await extract_with_claude(content))
    local = extract_local(content) if len(ai) < len(FIELDS) else {}
    merged = merge_first_non_empty([ai, local])
    if not merged:
        raise ValueError("No vehicle information could be extracted from this document")

    sources = {key: ("ai" if key in ai else "local") for key in merged}
    log.info(f"Vehicle extraction: {len(merged)} fields ({len(ai)} from AI)")
    return {"fields": {key: merged.get(key, "") for key in FIELDS}, "sources": sources}
