# backend/garment_ledger/routes/admin.py
"""
Operator endpoints for the stock engine.

An invariant violation halts the engine; after investigating (see
`flask ledger verify`) an operator resumes it here.
"""
from flask import Blueprint, current_app, g

from ..decorators import require_actor
from ..errors import LedgerError
from ..services.stock_engine import get_stock_engine


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _engine_state(engine) -> dict:
    return {"halted": engine.halted, "halt_reason": engine.halt_reason}


@admin_bp.get("/engine")
def engine_status_route():
    return {"engine": _engine_state(get_stock_engine())}, 200


@admin_bp.post("/engine/resume")
@require_actor
def resume_engine_route():
    engine = get_stock_engine()
    try:
        engine.resume(g.actor)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resume stock engine")
        return {"error": "internal_error", "message": "Internal server error"}, 500
    return {"engine": _engine_state(engine)}, 200
