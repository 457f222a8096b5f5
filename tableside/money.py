"""Decimal parsing and formatting for amounts and quantities crossing the wire."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from tableside.config import CENT, CURRENCY_SYMBOL, MAX_NOTES_LENGTH, MAX_QUANTITY, MIN_QUANTITY

Amount = Decimal | int | float | str | None

ZERO = Decimal("0")


def parse_decimal(value: Amount) -> Decimal:
    """Parse a wire amount, returning 0 for missing or malformed input."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed


def round_cents(value: Amount) -> Decimal:
    """Round half-up to two decimal places."""
    rounded = parse_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        return rounded.copy_abs()
    return rounded


def format_currency(value: Amount) -> str:
    """Fixed two-decimal rendering, e.g. ``23.00``."""
    return f"{round_cents(value):.2f}"


def format_price(value: Amount) -> str:
    """Currency rendering with symbol, e.g. ``$23.00``."""
    return f"{CURRENCY_SYMBOL}{format_currency(value)}"


def parse_quantity(value: Amount, default: int = 0) -> int:
    """Parse a string-encoded quantity, truncating toward zero.

    Display paths use the default of 0; mutation paths pass ``default=1``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    parsed = parse_decimal(value)
    if parsed.is_zero() and not _looks_like_zero(value):
        return default
    return int(parsed)


def _looks_like_zero(value: Amount) -> bool:
    try:
        return Decimal(str(value).strip()).is_zero()
    except (InvalidOperation, ValueError):
        return False


def clamp_quantity(quantity: int | float | Decimal) -> int:
    """Truncate toward zero and bound to [MIN_QUANTITY, MAX_QUANTITY]; non-finite input gives the minimum."""
    truncated = int(parse_decimal(quantity))
    return max(MIN_QUANTITY, min(MAX_QUANTITY, truncated))


def truncate_notes(notes: str | None) -> str:
    return (notes or "")[:MAX_NOTES_LENGTH]
