# Overview: Ledger Store; authoritative current quantity per stock item.

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateId, InsufficientStock, NotFound, ValidationError
from ..models import StockItem
from ..quantities import from_milli
from .status_projector import ITEM_STATUSES, project

"""
Ledger Store Invariants (authoritative)

- quantity_milli >= 0 for every item, enforced by the conditional UPDATE in
  apply_delta and by a CHECK constraint.
- apply_delta is the only code path that changes quantity_milli. There is no
  setter for quantity and update_details refuses to touch it.
- The check and the write are one statement:
      UPDATE stock_items SET quantity_milli = quantity_milli + :delta
      WHERE id = :id AND quantity_milli + :delta >= 0
  so concurrent writers to the same row are serialized by the database and
  a stale read can never authorize a decrement.
- apply_delta joins the caller's transaction unless commit=True.
"""

logger = logging.getLogger(__name__)

DETAIL_FIELDS = ("name", "color", "material", "notes", "min_threshold_milli")


class LedgerStore:

    def __init__(self, session):
        self.session = session

    def find(self, item_id: str) -> StockItem | None:
        return self.session.get(StockItem, item_id, populate_existing=True)

    def get(self, item_id: str) -> StockItem:
        item = self.find(item_id)
        if item is None:
            raise NotFound(f"item {item_id} not found")
        return item

    def exists(self, item_id: str) -> bool:
        return self.session.query(StockItem.id).filter_by(id=item_id).first() is not None

    def create(self, item: StockItem) -> StockItem:
        """
        Insert a new item with zero quantity.

        Opening stock is recorded afterwards through apply_delta so that it
        has a matching transaction.
        """
        if not item.id:
            raise ValidationError("item id is required")
        if item.quantity_milli:
            raise ValidationError("new items start at zero; record opening stock through the ledger")
        item.quantity_milli = 0

        if self.exists(item.id):
            raise DuplicateId(f"item {item.id} already exists")

        self.session.add(item)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateId(f"item {item.id} already exists") from exc
        return item

    def apply_delta(self, item_id: str, delta_milli: int, *, commit: bool = False) -> StockItem:
        """
        Atomically add delta_milli to an item's quantity.

        Raises NotFound for an unknown id and InsufficientStock when the
        result would be negative; in both cases nothing is written.
        Returns the item refreshed from the database.
        """
        stmt = (
            update(StockItem)
            .where(
                StockItem.id == item_id,
                StockItem.quantity_milli + delta_milli >= 0,
            )
            .values(
                quantity_milli=StockItem.quantity_milli + delta_milli,
                version_id=StockItem.version_id + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if not result.rowcount:
            item = self.find(item_id)
            if item is None:
                raise NotFound(f"item {item_id} not found")
            raise InsufficientStock(
                f"insufficient stock for {item_id}: "
                f"requested {from_milli(-delta_milli)}, available {from_milli(item.quantity_milli)}",
                item_id=item_id,
                available=from_milli(item.quantity_milli),
                requested=from_milli(-delta_milli),
            )

        item = self.find(item_id)
        if commit:
            self.session.commit()
        return item

    def list(self, *, kind: str | None = None, status: str | None = None) -> list[StockItem]:
        if status is not None and status not in ITEM_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ITEM_STATUSES)}")

        q = self.session.query(StockItem)
        if kind is not None:
            q = q.filter(StockItem.kind == kind)
        items = q.order_by(StockItem.created_at.desc(), StockItem.id.desc()).all()

        if status is not None:
            items = [i for i in items if project(i) == status]
        return items

    def update_details(self, item_id: str, patch: dict, *, commit: bool = True) -> StockItem:
        """Edit descriptive fields. Quantity is not editable here."""
        unknown = set(patch) - set(DETAIL_FIELDS)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

        item = self.get(item_id)
        for key, value in patch.items():
            setattr(item, key, value)

        # version_id_col turns a concurrent edit into StaleDataError
        self.session.flush()
        if commit:
            self.session.commit()
        return item
