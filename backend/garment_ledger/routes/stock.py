# backend/garment_ledger/routes/stock.py
"""
Stock movement routes.

Every route here changes quantities through the stock engine and answers
with the item's new state plus the transaction that recorded the change.
Retrying with the same idempotency_key after a 503 is safe: an already
committed request is returned as-is (replayed=true, status 200).

Errors use {"error": kind, "message": reason}:
- 400 validation_error
- 404 not_found
- 409 insufficient_stock (with item_id, available, requested) / duplicate_id
- 503 transient_failure
- 500 invariant_violation (engine halted)
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_actor
from ..errors import LedgerError, ValidationError
from ..models.stock import SOURCE_INTAKE, SOURCE_MANUAL, SOURCE_QR_SCANNER
from ..services.stock_engine import get_stock_engine
from ..validation import check_request_fields, optional_str


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")

MOVEMENT_FIELDS = {"item_id", "amount", "reason", "actor", "idempotency_key", "source"}
ADJUST_FIELDS = {"item_id", "delta", "reason", "actor", "idempotency_key"}
CUT_FIELDS = {
    "fabric_id",
    "piece_length",
    "piece_width",
    "piece_count",
    "cut_piece_id",
    "product_name",
    "usage_location",
    "min_threshold",
    "actor",
    "idempotency_key",
}

# Sources a caller may claim for a manual movement
CALLER_SOURCES = {SOURCE_MANUAL, SOURCE_INTAKE, SOURCE_QR_SCANNER}

INTERNAL_ERROR = {"error": "internal_error", "message": "Internal server error"}


def _movement_source(payload: dict) -> str:
    source = payload.get("source") or SOURCE_MANUAL
    if source not in CALLER_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(sorted(CALLER_SOURCES))}")
    return source


def _result_response(result):
    return result.to_dict(), (200 if result.replayed else 201)


@stock_bp.post("/stock_in")
@require_actor
def stock_in_route():
    """Replenish an item (stock_in)."""
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=MOVEMENT_FIELDS, required={"item_id", "amount"})
        result = get_stock_engine().replenish(
            payload["item_id"],
            payload["amount"],
            reason=optional_str(payload, "reason"),
            actor=g.actor,
            idempotency_key=optional_str(payload, "idempotency_key", max_length=128),
            source=_movement_source(payload),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record stock_in")
        return INTERNAL_ERROR, 500

    return _result_response(result)


@stock_bp.post("/stock_out")
@require_actor
def stock_out_route():
    """Consume from an item (stock_out). 409 when the amount exceeds what is on hand."""
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=MOVEMENT_FIELDS, required={"item_id", "amount"})
        result = get_stock_engine().consume(
            payload["item_id"],
            payload["amount"],
            reason=optional_str(payload, "reason"),
            actor=g.actor,
            idempotency_key=optional_str(payload, "idempotency_key", max_length=128),
            source=_movement_source(payload),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record stock_out")
        return INTERNAL_ERROR, 500

    return _result_response(result)


@stock_bp.post("/adjust")
@require_actor
def adjust_route():
    """
    Correct an item's quantity in either direction.

    A reason is required; adjustments are what a stock take or a damage
    write-off looks like in the log.
    """
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=ADJUST_FIELDS, required={"item_id", "delta", "reason"})
        result = get_stock_engine().adjust(
            payload["item_id"],
            payload["delta"],
            reason=optional_str(payload, "reason"),
            actor=g.actor,
            idempotency_key=optional_str(payload, "idempotency_key", max_length=128),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record adjustment")
        return INTERNAL_ERROR, 500

    return _result_response(result)


@stock_bp.post("/cut")
@require_actor
def cut_route():
    """
    Cut pieces from a fabric.

    Consumes piece_length * piece_width * piece_count from the fabric and
    creates a cut_piece item holding piece_count pieces. All or nothing.
    """
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(
            payload,
            allowed=CUT_FIELDS,
            required={"fabric_id", "piece_length", "piece_width", "piece_count"},
        )
        result = get_stock_engine().cut(
            payload["fabric_id"],
            payload["piece_length"],
            payload["piece_width"],
            payload["piece_count"],
            actor=g.actor,
            cut_piece_id=optional_str(payload, "cut_piece_id", max_length=64),
            product_name=optional_str(payload, "product_name"),
            usage_location=optional_str(payload, "usage_location", max_length=128),
            min_threshold=payload.get("min_threshold"),
            idempotency_key=optional_str(payload, "idempotency_key", max_length=128),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cut fabric")
        return INTERNAL_ERROR, 500

    return _result_response(result)
