# Overview: Pure status derivation for stock items.

"""
Status is never stored. Every read of an item recomputes it here from the
authoritative quantity, so it cannot drift from the ledger.

    quantity == 0                  -> out_of_stock
    0 < quantity <= min_threshold  -> low_stock
    quantity > min_threshold       -> available

RESERVED and COMPLETED belong to the same vocabulary but describe tailor
assignments (pieces in use / finished), not item quantities.
"""

from __future__ import annotations

AVAILABLE = "available"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"
RESERVED = "reserved"
COMPLETED = "completed"

ITEM_STATUSES = (AVAILABLE, LOW_STOCK, OUT_OF_STOCK)


def project_quantity(quantity_milli: int, min_threshold_milli: int) -> str:
    if quantity_milli <= 0:
        return OUT_OF_STOCK
    if quantity_milli <= min_threshold_milli:
        return LOW_STOCK
    return AVAILABLE


def project(item) -> str:
    """Status for anything exposing quantity_milli and min_threshold_milli."""
    return project_quantity(item.quantity_milli, item.min_threshold_milli or 0)
