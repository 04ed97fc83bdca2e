from __future__ import annotations
from datetime import datetime
from harvest.time_utils import parse_iso_datetime, as_utc_naive

from typing import Any

from .errors import ValidationError


# Maximum single amount: R9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999


def coerce_cents(value: Any, field: str) -> int:
    """
    Strict integer-cents coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation so that money is never silently rounded.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer number of cents")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer number of cents (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer number of cents")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer number of cents, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer number of cents")

    if abs(result) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} cents")
    return result


def coerce_datetime(value: Any, field: str) -> datetime:
    """Accept a datetime or an ISO-8601 string; normalize to UTC-naive."""
    if isinstance(value, datetime):
        return as_utc_naive(value)
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{field} must be a datetime")


def normalize_short_items(items: Any) -> list[dict]:
    """
    Validate the short-delivery item list shape.

    Each entry needs a product_id and a positive integer quantity_short.
    Duplicate product ids are merged by summing their quantities.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("At least one short-delivered item is required")

    merged: dict[int, int] = {}
    for entry in items:
        if not isinstance(entry, dict):
            raise ValidationError("Each short-delivered item must be an object")
        product_id = entry.get("product_id")
        if product_id is None:
            raise ValidationError("product_id is required for each short-delivered item")
        quantity = entry.get("quantity_short")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("quantity_short must be a positive integer")
        merged[product_id] = merged.get(product_id, 0) + quantity

    return [{"product_id": pid, "quantity_short": qty} for pid, qty in merged.items()]


def format_rands(cents: int) -> str:
    """2550 -> 'R25.50'"""
    sign = "-" if cents < 0 else ""
    rands, remainder = divmod(abs(cents), 100)
    return f"{sign}R{rands}.{remainder:02d}"
