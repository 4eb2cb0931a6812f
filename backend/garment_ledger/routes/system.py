# backend/garment_ledger/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the stock engine is accepting
writes. A halted engine answers reads but refuses every mutation.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import LedgerTransaction, StockItem
from ..services.stock_engine import get_stock_engine
from garment_ledger.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        item_count = db.session.query(StockItem).count()
        transaction_count = db.session.query(LedgerTransaction).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "items": item_count,
                "transactions": transaction_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_engine_health() -> dict:
    engine = get_stock_engine()
    if engine.halted:
        return {
            "status": "degraded",
            "warning": f"Stock engine halted: {engine.halt_reason}",
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy, or degraded (engine halted; reads still served)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    engine_health = check_engine_health()

    all_checks = [database_health, engine_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "stock_engine": engine_health,
        }
    }

    return response, http_status
