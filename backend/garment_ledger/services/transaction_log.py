# Overview: Transaction Log; append-only record of committed quantity changes.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import NotFound
from ..models import CuttingRecord, LedgerTransaction, StockItem
from ..time_utils import utcnow

"""
Transaction Log Invariants (authoritative)

- Append-only. No updates, no single-row deletes.
- Rows are written inside the same DB transaction as the quantity change
  they record (the stock engine composes both).
- timestamp is assigned at append time from the injected clock and never
  goes backwards: if the clock reads earlier than the newest row, the newest
  row's timestamp is reused and id breaks the tie.
- clear() purges the whole log; it is the administrative "clear history".
"""


class TransactionLog:

    def __init__(self, session, clock=utcnow):
        self.session = session
        self.clock = clock

    def _next_timestamp(self) -> datetime:
        now = self.clock()
        newest = self.session.query(func.max(LedgerTransaction.timestamp)).scalar()
        if newest is not None and newest > now:
            return newest
        return now

    def append(
        self,
        *,
        item: StockItem,
        kind: str,
        delta_milli: int,
        actor: str,
        reason: str | None = None,
        source: str = "manual",
        idempotency_key: str | None = None,
    ) -> LedgerTransaction:
        """
        Record a change that has already been applied to item.

        item must be the post-change state returned by LedgerStore.apply_delta.
        """
        after = item.quantity_milli
        tx = LedgerTransaction(
            timestamp=self._next_timestamp(),
            item_id=item.id,
            item_kind=item.kind,
            kind=kind,
            source=source,
            quantity_delta_milli=delta_milli,
            quantity_before_milli=after - delta_milli,
            quantity_after_milli=after,
            actor=actor,
            reason=reason,
            idempotency_key=idempotency_key,
        )
        self.session.add(tx)
        self.session.flush()  # ensures tx.id is assigned without committing
        return tx

    def get(self, tx_id: int) -> LedgerTransaction:
        tx = self.session.get(LedgerTransaction, tx_id)
        if tx is None:
            raise NotFound(f"transaction {tx_id} not found")
        return tx

    def find_by_idempotency_key(self, key: str) -> LedgerTransaction | None:
        return self.session.query(LedgerTransaction).filter_by(idempotency_key=key).first()

    def for_item(self, item_id: str) -> list[LedgerTransaction]:
        """All entries for an item in commit order."""
        return (
            self.session.query(LedgerTransaction)
            .filter_by(item_id=item_id)
            .order_by(LedgerTransaction.id.asc())
            .all()
        )

    def count(self) -> int:
        return self.session.query(func.count(LedgerTransaction.id)).scalar() or 0

    def clear(self) -> int:
        """Delete every entry. Returns how many were removed."""
        self.session.query(CuttingRecord).filter(CuttingRecord.transaction_id.isnot(None)).update(
            {CuttingRecord.transaction_id: None}, synchronize_session=False
        )
        deleted = self.session.query(LedgerTransaction).delete(synchronize_session=False)
        self.session.flush()
        return deleted
