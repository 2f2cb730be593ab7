"""Shared utility helpers used across connectors and services."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def safe_int(v):
    """Safely convert a value to int, returning None on failure."""
    if v is None:
        return None
    try:
        return int(v)
    except (ValueError, TypeError):
        return None


def safe_float(v):
    """Safely convert a value to float, returning None on failure.

    Accepts Brazilian decimal commas ("1.234,50" and "80,5").
    """
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip().replace("R$", "").strip()
        if "," in s:
            s = s.replace(".", "").replace(",", ".")
        v = s
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def money(v) -> float:
    """Round a currency amount to cents, half-up."""
    try:
        return float(Decimal(str(v or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0.0


def digits_only(v: str | None) -> str:
    return "".join(ch for ch in (v or "") if ch.isdigit())
