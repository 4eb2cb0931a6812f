from flask import Blueprint, request

from ..errors import LedgerError
from ..models.stock import ITEM_KINDS
from ..services.reporting_service import get_reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
def summary_report():
    return get_reporting_service().summary_by_type(), 200


@reports_bp.get("/actors/<actor>")
def actor_report(actor: str):
    try:
        report = get_reporting_service().summary_by_actor(actor)
        return report, 200
    except LedgerError as exc:
        return exc.to_dict(), exc.http_status


@reports_bp.get("/low-stock")
def low_stock_report():
    kind = request.args.get("kind") or None
    if kind and kind not in ITEM_KINDS:
        return {"error": "validation_error", "message": f"kind must be one of: {', '.join(ITEM_KINDS)}"}, 400

    try:
        items = get_reporting_service().low_stock_items(kind=kind)
        return {"items": [i.to_dict() for i in items], "count": len(items)}, 200
    except LedgerError as exc:
        return exc.to_dict(), exc.http_status
