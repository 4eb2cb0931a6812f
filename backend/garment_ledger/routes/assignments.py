# backend/garment_ledger/routes/assignments.py
"""
Tailor assignment routes.

LIFECYCLE:
- POST /api/assignments                 reserved  (pieces transferred out)
- POST /api/assignments/<id>/complete   completed (garments stocked in, leftovers returned)
- POST /api/assignments/<id>/cancel     cancelled (all pieces returned)
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..extensions import db
from ..services import assignment_service
from ..services.stock_engine import get_stock_engine
from ..validation import check_request_fields, coerce_date, coerce_int, optional_str


assignments_bp = Blueprint("assignments", __name__, url_prefix="/api/assignments")

ASSIGN_FIELDS = {"cut_piece_id", "employee_id", "quantity", "product_name", "due_date", "notes", "actor"}
COMPLETE_FIELDS = {"quantity_produced", "manufactured_item_id", "product_name", "actor"}
CANCEL_FIELDS = {"reason", "actor"}

INTERNAL_ERROR = {"error": "internal_error", "message": "Internal server error"}


@assignments_bp.post("")
@require_actor
def create_assignment_route():
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=ASSIGN_FIELDS, required={"cut_piece_id", "employee_id", "quantity"})
        assignment = assignment_service.assign(
            get_stock_engine(),
            cut_piece_id=payload["cut_piece_id"],
            employee_id=coerce_int(payload["employee_id"], "employee_id"),
            quantity=payload["quantity"],
            actor=g.actor,
            product_name=optional_str(payload, "product_name"),
            due_date=coerce_date(payload.get("due_date"), "due_date"),
            notes=optional_str(payload, "notes", max_length=2000),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create assignment")
        return INTERNAL_ERROR, 500

    return {"assignment": assignment.to_dict()}, 201


@assignments_bp.get("")
def list_assignments_route():
    status = request.args.get("status") or None
    employee_id = request.args.get("employee_id", type=int)

    try:
        assignments = assignment_service.list_assignments(db.session, status=status, employee_id=employee_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return {"assignments": [a.to_dict() for a in assignments], "count": len(assignments)}, 200


@assignments_bp.get("/<int:assignment_id>")
def get_assignment_route(assignment_id: int):
    try:
        assignment = assignment_service.get_assignment(db.session, assignment_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    return {"assignment": assignment.to_dict()}, 200


@assignments_bp.post("/<int:assignment_id>/complete")
@require_actor
def complete_assignment_route(assignment_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=COMPLETE_FIELDS, required={"quantity_produced"})
        assignment = assignment_service.complete(
            get_stock_engine(),
            assignment_id,
            quantity_produced=coerce_int(payload["quantity_produced"], "quantity_produced"),
            actor=g.actor,
            manufactured_item_id=optional_str(payload, "manufactured_item_id", max_length=64),
            product_name=optional_str(payload, "product_name"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to complete assignment %s", assignment_id)
        return INTERNAL_ERROR, 500

    return {"assignment": assignment.to_dict()}, 200


@assignments_bp.post("/<int:assignment_id>/cancel")
@require_actor
def cancel_assignment_route(assignment_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=CANCEL_FIELDS)
        assignment = assignment_service.cancel(
            get_stock_engine(),
            assignment_id,
            actor=g.actor,
            reason=optional_str(payload, "reason"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel assignment %s", assignment_id)
        return INTERNAL_ERROR, 500

    return {"assignment": assignment.to_dict()}, 200
