"""
Quantity handling.

Quantities are stored as integers in thousandths of a unit ("milli"), the
same way money is stored as integer cents. 12.5 square meters is 12500.
Arithmetic on the ledger therefore stays exact and conservation checks can
compare with ==.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import ValidationError

QUANTITY_SCALE = 1000

# Upper bound keeps values inside a signed 64-bit column
MAX_QUANTITY_MILLI = 9_000_000_000_000_000


def to_milli(value, *, field: str = "quantity") -> int:
    """
    Convert a caller-supplied number to integer thousandths.

    Accepts int, float, Decimal, or a numeric string. Rejects booleans,
    non-finite values, more than three decimal places, and out-of-range
    magnitudes. Sign is preserved; callers decide whether negatives are legal.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValidationError(f"{field} must be a number")
    elif isinstance(value, (int, float, Decimal)):
        raw = value
    else:
        raise ValidationError(f"{field} must be a number")

    try:
        # str() keeps 0.1 as Decimal("0.1") instead of its binary expansion
        dec = Decimal(str(raw)) if isinstance(raw, float) else Decimal(raw)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be finite")

    scaled = dec * QUANTITY_SCALE
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"{field} supports at most 3 decimal places")

    milli = int(scaled)
    if abs(milli) > MAX_QUANTITY_MILLI:
        raise ValidationError(f"{field} is out of range")
    return milli


def to_positive_milli(value, *, field: str = "amount") -> int:
    milli = to_milli(value, field=field)
    if milli <= 0:
        raise ValidationError(f"{field} must be > 0")
    return milli


def from_milli(milli: int | None) -> float | None:
    """Integer thousandths -> JSON-friendly number (int when whole)."""
    if milli is None:
        return None
    if milli % QUANTITY_SCALE == 0:
        return milli // QUANTITY_SCALE
    return milli / QUANTITY_SCALE


def is_whole(milli: int) -> bool:
    return milli % QUANTITY_SCALE == 0


def area_milli(length_milli: int, width_milli: int, count: int) -> int:
    """
    length x width x count in thousandths of a square unit.

    length_milli * width_milli is in millionths; the product must land on a
    whole thousandth or the cut cannot be represented exactly.
    """
    micro = length_milli * width_milli * count
    if micro % QUANTITY_SCALE:
        raise ValidationError("cut area supports at most 3 decimal places")
    return micro // QUANTITY_SCALE
