# backend/garment_ledger/routes/cutting.py
"""
Cutting record routes (read-only).

Records are written by POST /api/stock/cut together with the fabric
consumption they describe.
"""
from flask import Blueprint, request

from ..extensions import db
from ..models import CuttingRecord


cutting_bp = Blueprint("cutting", __name__, url_prefix="/api/cutting-records")


@cutting_bp.get("")
def list_cutting_records_route():
    fabric_id = request.args.get("fabric_id")
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))

    query = db.session.query(CuttingRecord)
    if fabric_id:
        query = query.filter_by(fabric_id=fabric_id)

    records = query.order_by(CuttingRecord.created_at.desc(), CuttingRecord.id.desc()).limit(limit).all()
    return {"cutting_records": [r.to_dict() for r in records], "count": len(records)}, 200


@cutting_bp.get("/<int:record_id>")
def get_cutting_record_route(record_id: int):
    record = db.session.get(CuttingRecord, record_id)
    if record is None:
        return {"error": "not_found", "message": f"cutting record {record_id} not found"}, 404
    return {"cutting_record": record.to_dict()}, 200
