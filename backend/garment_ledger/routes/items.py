# backend/garment_ledger/routes/items.py
"""
Stock item routes.

Items are registered here (with optional opening stock) and described, but
their quantity only moves through /api/stock. Status in every response is
projected from quantity and min_threshold at read time.

Items are never deleted: their transactions and cutting records refer to
them.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..models import StockItem
from ..models.stock import ITEM_KINDS
from ..services.stock_engine import get_stock_engine
from ..validation import STOCK_ITEM_PATCH_POLICY, check_request_fields, optional_str, validate_payload


items_bp = Blueprint("items", __name__, url_prefix="/api/items")

ITEM_CREATE_FIELDS = {
    "id",
    "kind",
    "name",
    "unit",
    "quantity",
    "roll_length",
    "roll_width",
    "min_threshold",
    "color",
    "material",
    "notes",
    "reason",
    "actor",
}

INTERNAL_ERROR = {"error": "internal_error", "message": "Internal server error"}


@items_bp.post("")
@require_actor
def create_item_route():
    """
    Register a fabric roll, cut-piece batch, or manufactured stock.

    Without an id one is allocated from the kind's sequence (FAB-000001,
    CUT-000001, MFG-000001). A non-zero opening quantity is recorded as a
    stock_in transaction with source "intake".
    """
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=ITEM_CREATE_FIELDS, required={"kind", "name"})
        result = get_stock_engine().create_item(
            kind=payload["kind"],
            name=payload["name"] if isinstance(payload["name"], str) else str(payload["name"]),
            actor=g.actor,
            unit=payload.get("unit"),
            quantity=payload.get("quantity"),
            roll_length=payload.get("roll_length"),
            roll_width=payload.get("roll_width"),
            min_threshold=payload.get("min_threshold"),
            item_id=payload.get("id"),
            color=optional_str(payload, "color", max_length=64),
            material=optional_str(payload, "material", max_length=128),
            notes=optional_str(payload, "notes", max_length=2000),
            reason=optional_str(payload, "reason"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create item")
        return INTERNAL_ERROR, 500

    return result.to_dict(), 201


@items_bp.get("")
def list_items_route():
    kind = request.args.get("kind")
    status = request.args.get("status")
    if kind and kind not in ITEM_KINDS:
        return {"error": "validation_error", "message": f"kind must be one of: {', '.join(ITEM_KINDS)}"}, 400

    try:
        items = get_stock_engine().store.list(kind=kind or None, status=status or None)
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return {"items": [i.to_dict() for i in items], "count": len(items)}, 200


@items_bp.get("/<item_id>")
def get_item_route(item_id: str):
    try:
        item = get_stock_engine().get_item(item_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    return {"item": item.to_dict()}, 200


@items_bp.patch("/<item_id>")
@require_actor
def update_item_route(item_id: str):
    """
    Edit descriptive fields (name, color, material, notes, min_threshold).

    quantity is not writable; use /api/stock/adjust.
    """
    payload = request.get_json(silent=True)
    engine = get_stock_engine()

    try:
        if isinstance(payload, dict):
            payload = {k: v for k, v in payload.items() if k != "actor"}
        patch = validate_payload(
            model=StockItem,
            payload=payload,
            policy=STOCK_ITEM_PATCH_POLICY,
            partial=True,
        )
        if not patch:
            return {"error": "validation_error", "message": "No fields to update"}, 400
        item = engine.atomic(lambda: engine.store.update_details(item_id, patch, commit=False))
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update item %s", item_id)
        return INTERNAL_ERROR, 500

    current_app.logger.info("Item %s updated by %s: %s", item_id, g.actor, ", ".join(sorted(patch)))
    return {"item": item.to_dict()}, 200


@items_bp.get("/<item_id>/transactions")
def item_transactions_route(item_id: str):
    engine = get_stock_engine()
    try:
        item = engine.get_item(item_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status

    entries = engine.log.for_item(item.id)
    return {
        "item": item.to_dict(),
        "transactions": [tx.to_dict() for tx in reversed(entries)],
    }, 200


@items_bp.get("/<item_id>/verify")
def verify_item_route(item_id: str):
    try:
        report = get_stock_engine().verify_item(item_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    return {"verification": report}, 200
