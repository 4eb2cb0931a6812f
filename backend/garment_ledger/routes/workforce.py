# Overview: Flask API routes for employees and attendance; parses input and returns JSON responses.

"""
Workforce Routes

- Employees: register, list, edit. Codes (EMP-0001) are allocated when
  omitted. DELETE deactivates; employees are never removed.
- Attendance: one record per employee per day. Check-in after
  ATTENDANCE_LATE_HOUR is recorded as late; check-out computes work minutes.
  Leave, absence and holidays are marked directly and can be corrected.
"""

from flask import Blueprint, current_app, request

from ..errors import LedgerError
from ..extensions import db
from ..models import Employee
from ..models.workforce import ROLE_STAFF
from ..services import workforce_service
from ..validation import (
    EMPLOYEE_CREATE_POLICY,
    EMPLOYEE_UPDATE_POLICY,
    check_request_fields,
    coerce_date,
    coerce_datetime,
    coerce_int,
    optional_str,
    validate_payload,
)


workforce_bp = Blueprint("workforce", __name__, url_prefix="/api")

CHECK_IN_FIELDS = {"employee_id", "at", "notes", "actor"}
CHECK_OUT_FIELDS = {"employee_id", "at", "actor"}
MARK_FIELDS = {"employee_id", "date", "status", "notes", "actor"}
ATTENDANCE_PATCH_FIELDS = {"status", "notes", "actor"}

INTERNAL_ERROR = {"error": "internal_error", "message": "Internal server error"}


@workforce_bp.post("/employees")
def create_employee_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Employee,
            payload=payload,
            policy=EMPLOYEE_CREATE_POLICY,
            partial=False,
        )
        employee = workforce_service.create_employee(
            db.session,
            name=patch["name"],
            role=patch.get("role") or ROLE_STAFF,
            mobile=patch.get("mobile"),
            employee_code=patch.get("employee_code"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return INTERNAL_ERROR, 500

    return {"employee": employee.to_dict()}, 201


@workforce_bp.get("/employees")
def list_employees_route():
    role = request.args.get("role") or None
    active_only = request.args.get("active", "false").lower() == "true"

    try:
        employees = workforce_service.list_employees(db.session, role=role, active_only=active_only)
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return {"employees": [e.to_dict() for e in employees], "count": len(employees)}, 200


@workforce_bp.get("/employees/<int:employee_id>")
def get_employee_route(employee_id: int):
    try:
        employee = workforce_service.get_employee(db.session, employee_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    return {"employee": employee.to_dict()}, 200


@workforce_bp.patch("/employees/<int:employee_id>")
def update_employee_route(employee_id: int):
    """Edit name, role, mobile, or is_active. employee_code is fixed."""
    payload = request.get_json(silent=True)

    try:
        if isinstance(payload, dict):
            payload = {k: v for k, v in payload.items() if k != "actor"}
        patch = validate_payload(
            model=Employee,
            payload=payload,
            policy=EMPLOYEE_UPDATE_POLICY,
            partial=True,
        )
        if not patch:
            return {"error": "validation_error", "message": "No fields to update"}, 400
        employee = workforce_service.update_employee(db.session, employee_id, patch)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update employee %s", employee_id)
        return INTERNAL_ERROR, 500

    return {"employee": employee.to_dict()}, 200


@workforce_bp.delete("/employees/<int:employee_id>")
def deactivate_employee_route(employee_id: int):
    try:
        employee = workforce_service.deactivate_employee(db.session, employee_id)
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate employee %s", employee_id)
        return INTERNAL_ERROR, 500

    return {"employee": employee.to_dict()}, 200


@workforce_bp.post("/attendance/check-in")
def check_in_route():
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=CHECK_IN_FIELDS, required={"employee_id"})
        record = workforce_service.check_in(
            db.session,
            employee_id=coerce_int(payload["employee_id"], "employee_id"),
            at=coerce_datetime(payload.get("at"), "at"),
            notes=optional_str(payload, "notes", max_length=2000),
            late_hour=current_app.config["ATTENDANCE_LATE_HOUR"],
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to check in")
        return INTERNAL_ERROR, 500

    return {"attendance": record.to_dict()}, 201


@workforce_bp.post("/attendance/check-out")
def check_out_route():
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=CHECK_OUT_FIELDS, required={"employee_id"})
        record = workforce_service.check_out(
            db.session,
            employee_id=coerce_int(payload["employee_id"], "employee_id"),
            at=coerce_datetime(payload.get("at"), "at"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to check out")
        return INTERNAL_ERROR, 500

    return {"attendance": record.to_dict()}, 200


@workforce_bp.post("/attendance/mark")
def mark_attendance_route():
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=MARK_FIELDS, required={"employee_id", "date", "status"})
        record = workforce_service.mark_attendance(
            db.session,
            employee_id=coerce_int(payload["employee_id"], "employee_id"),
            work_date=coerce_date(payload["date"], "date"),
            status=optional_str(payload, "status", max_length=16),
            notes=optional_str(payload, "notes", max_length=2000),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to mark attendance")
        return INTERNAL_ERROR, 500

    return {"attendance": record.to_dict()}, 201


@workforce_bp.patch("/attendance/<int:record_id>")
def update_attendance_route(record_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        check_request_fields(payload, allowed=ATTENDANCE_PATCH_FIELDS)
        record = workforce_service.update_attendance(
            db.session,
            record_id,
            status=optional_str(payload, "status", max_length=16),
            notes=optional_str(payload, "notes", max_length=2000),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update attendance %s", record_id)
        return INTERNAL_ERROR, 500

    return {"attendance": record.to_dict()}, 200


@workforce_bp.get("/attendance")
def list_attendance_route():
    try:
        work_date = coerce_date(request.args.get("date") or None, "date")
        records = workforce_service.list_attendance(
            db.session,
            work_date=work_date,
            employee_id=request.args.get("employee_id", type=int),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return {"attendance": [r.to_dict() for r in records], "count": len(records)}, 200


@workforce_bp.get("/attendance/summary/<int:employee_id>")
def attendance_summary_route(employee_id: int):
    try:
        summary = workforce_service.attendance_summary(
            db.session,
            employee_id,
            start=coerce_date(request.args.get("start") or None, "start"),
            end=coerce_date(request.args.get("end") or None, "end"),
        )
    except LedgerError as e:
        return e.to_dict(), e.http_status

    return summary, 200
