# Overview: Read-only reporting over the ledger and the transaction log.

from __future__ import annotations

import math
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import LedgerTransaction, StockItem
from ..models.stock import ITEM_KINDS, TRANSACTION_KINDS
from ..quantities import from_milli
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from .status_projector import ITEM_STATUSES, LOW_STOCK, OUT_OF_STOCK, project

RECENT_WINDOW_DAYS = 7


def _parse_bound(value, field: str):
    if value is None or value == "":
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


class ReportingService:
    """
    Aggregates and paginated queries. Never writes.

    Status counts go through the status projector so reports agree with
    item reads.
    """

    def __init__(self, session, *, clock=utcnow, default_page_size: int = 50, max_page_size: int = 500):
        self.session = session
        self.clock = clock
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @classmethod
    def from_config(cls, session, config) -> "ReportingService":
        return cls(
            session,
            default_page_size=config["DEFAULT_PAGE_SIZE"],
            max_page_size=config["MAX_PAGE_SIZE"],
        )

    def summary_by_type(self) -> dict:
        items = {
            kind: {
                "item_count": 0,
                "total_quantity_milli": 0,
                "by_status": {status: 0 for status in ITEM_STATUSES},
            }
            for kind in ITEM_KINDS
        }
        for item in self.session.query(StockItem).all():
            bucket = items.setdefault(
                item.kind,
                {"item_count": 0, "total_quantity_milli": 0, "by_status": {s: 0 for s in ITEM_STATUSES}},
            )
            bucket["item_count"] += 1
            bucket["total_quantity_milli"] += item.quantity_milli
            bucket["by_status"][project(item)] += 1

        rows = (
            self.session.query(
                LedgerTransaction.kind,
                func.count(LedgerTransaction.id),
                func.coalesce(func.sum(LedgerTransaction.quantity_delta_milli), 0),
            )
            .group_by(LedgerTransaction.kind)
            .all()
        )
        transactions = {kind: {"count": 0, "total_delta": 0} for kind in TRANSACTION_KINDS}
        total_count = 0
        for kind, count, total in rows:
            transactions[kind] = {"count": int(count), "total_delta": from_milli(int(total))}
            total_count += int(count)

        since = self.clock() - timedelta(days=RECENT_WINDOW_DAYS)
        recent = (
            self.session.query(func.count(LedgerTransaction.id))
            .filter(LedgerTransaction.timestamp >= since)
            .scalar()
            or 0
        )

        return {
            "items": {
                kind: {
                    "item_count": bucket["item_count"],
                    "total_quantity": from_milli(bucket["total_quantity_milli"]),
                    "by_status": bucket["by_status"],
                }
                for kind, bucket in items.items()
            },
            "transactions": transactions,
            "total_transactions": total_count,
            "recent_transactions": int(recent),
            "recent_window_days": RECENT_WINDOW_DAYS,
        }

    def summary_by_actor(self, actor: str) -> dict:
        if not actor or not actor.strip():
            raise ValidationError("actor is required")
        actor = actor.strip()

        base = self.session.query(LedgerTransaction).filter(LedgerTransaction.actor == actor)
        if base.first() is None:
            raise NotFound(f"no transactions recorded for actor {actor}")

        rows = (
            self.session.query(
                LedgerTransaction.kind,
                func.count(LedgerTransaction.id),
                func.coalesce(func.sum(LedgerTransaction.quantity_delta_milli), 0),
            )
            .filter(LedgerTransaction.actor == actor)
            .group_by(LedgerTransaction.kind)
            .all()
        )
        first_at, last_at, item_count = (
            self.session.query(
                func.min(LedgerTransaction.timestamp),
                func.max(LedgerTransaction.timestamp),
                func.count(func.distinct(LedgerTransaction.item_id)),
            )
            .filter(LedgerTransaction.actor == actor)
            .one()
        )

        by_kind = {kind: {"count": 0, "total_delta": 0} for kind in TRANSACTION_KINDS}
        for kind, count, total in rows:
            by_kind[kind] = {"count": int(count), "total_delta": from_milli(int(total))}

        return {
            "actor": actor,
            "by_kind": by_kind,
            "total_transactions": sum(v["count"] for v in by_kind.values()),
            "items_touched": int(item_count or 0),
            "first_activity": to_utc_z(first_at),
            "last_activity": to_utc_z(last_at),
        }

    def _page_size(self, page_size) -> int:
        if page_size is None:
            return self.default_page_size
        if page_size < 1:
            raise ValidationError("page_size must be >= 1")
        return min(page_size, self.max_page_size)

    def range_query(
        self,
        *,
        kind: str | None = None,
        item_kind: str | None = None,
        actor: str | None = None,
        item_id: str | None = None,
        start=None,
        end=None,
        page: int = 1,
        page_size: int | None = None,
    ) -> dict:
        """
        Filtered transactions, newest first.

        Order is timestamp desc then id desc, so equal timestamps still page
        deterministically.
        """
        if kind is not None and kind not in TRANSACTION_KINDS:
            raise ValidationError(f"kind must be one of: {', '.join(TRANSACTION_KINDS)}")
        if item_kind is not None and item_kind not in ITEM_KINDS:
            raise ValidationError(f"item_kind must be one of: {', '.join(ITEM_KINDS)}")
        if page is None:
            page = 1
        if page < 1:
            raise ValidationError("page must be >= 1")
        size = self._page_size(page_size)

        start_dt = _parse_bound(start, "from")
        end_dt = _parse_bound(end, "to")
        if start_dt and end_dt and start_dt > end_dt:
            raise ValidationError("from must be before to")

        query = self.session.query(LedgerTransaction)
        if kind:
            query = query.filter(LedgerTransaction.kind == kind)
        if item_kind:
            query = query.filter(LedgerTransaction.item_kind == item_kind)
        if actor:
            query = query.filter(LedgerTransaction.actor == actor)
        if item_id:
            query = query.filter(LedgerTransaction.item_id == item_id)
        if start_dt:
            query = query.filter(LedgerTransaction.timestamp >= start_dt)
        if end_dt:
            query = query.filter(LedgerTransaction.timestamp <= end_dt)

        total = query.order_by(None).count()
        rows = (
            query.order_by(LedgerTransaction.timestamp.desc(), LedgerTransaction.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total else 0

        return {
            "transactions": [tx.to_dict() for tx in rows],
            "pagination": {
                "page": page,
                "page_size": size,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def low_stock_items(self, *, kind: str | None = None) -> list[StockItem]:
        if kind is not None and kind not in ITEM_KINDS:
            raise ValidationError(f"kind must be one of: {', '.join(ITEM_KINDS)}")
        query = self.session.query(StockItem)
        if kind:
            query = query.filter(StockItem.kind == kind)
        items = query.order_by(StockItem.quantity_milli.asc(), StockItem.id.asc()).all()
        return [item for item in items if project(item) in (LOW_STOCK, OUT_OF_STOCK)]


def get_reporting_service() -> ReportingService:
    return ReportingService.from_config(db.session, current_app.config)
