# backend/garment_ledger/routes/transactions.py
"""
Transaction log routes.

The log is append-only: there is no endpoint to edit or delete a single
entry. DELETE on the collection is the administrative "clear history" and
requires ?confirm=true.

Time semantics:
- from/to accept ISO-8601 datetimes with Z/offsets; both are inclusive.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services.reporting_service import get_reporting_service
from ..services.stock_engine import get_stock_engine


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions_route():
    """
    Paginated transaction query, newest first (timestamp desc, id desc).

    Filters: kind, item_kind, actor, item_id, from, to. Paging: page,
    page_size (capped by MAX_PAGE_SIZE).
    """
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get("page_size", type=int)

    try:
        result = get_reporting_service().range_query(
            kind=request.args.get("kind") or None,
            item_kind=request.args.get("item_kind") or None,
            actor=request.args.get("actor") or None,
            item_id=request.args.get("item_id") or None,
            start=request.args.get("from"),
            end=request.args.get("to"),
            page=page,
            page_size=page_size,
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return result, 200


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        tx = get_stock_engine().log.get(transaction_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    return {"transaction": tx.to_dict()}, 200


@transactions_bp.delete("")
@require_actor
def clear_history_route():
    """
    Purge the entire transaction log.

    Item quantities are not changed. There is no way to delete a subset.
    """
    confirm = request.args.get("confirm", "false").lower() == "true"

    try:
        deleted = get_stock_engine().clear_history(g.actor, confirm=confirm)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to clear transaction history")
        return {"error": "internal_error", "message": "Internal server error"}, 500

    return {"deleted": deleted}, 200
