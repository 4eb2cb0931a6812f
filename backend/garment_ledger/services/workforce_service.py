# Overview: Service-layer operations for employees and daily attendance.

"""
Workforce Service

Employees get EMP-0001 style codes from the id sequence table and are
deactivated, never deleted. Attendance is one row per employee per day:
check-in or a marked status opens it, check-out stamps it and computes
worked minutes. Rows are kept once closed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateId, NotFound, ValidationError
from ..models import AttendanceRecord, Employee
from ..models.workforce import (
    ATTENDANCE_LATE,
    ATTENDANCE_PRESENT,
    ATTENDANCE_STATUSES,
    EMPLOYEE_ROLES,
    ROLE_STAFF,
)
from ..time_utils import utcnow
from .identifier_service import IdAllocator

logger = logging.getLogger(__name__)

DEFAULT_LATE_HOUR = 10


def _employee_code_exists(session, code: str) -> bool:
    return session.query(Employee.id).filter_by(employee_code=code).first() is not None


def create_employee(session, *, name: str, role: str = ROLE_STAFF, mobile: str | None = None,
                    employee_code: str | None = None) -> Employee:
    if not name or not name.strip():
        raise ValidationError("name is required")
    if role not in EMPLOYEE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(EMPLOYEE_ROLES)}")

    if employee_code:
        employee_code = employee_code.strip()
        if _employee_code_exists(session, employee_code):
            raise DuplicateId(f"employee {employee_code} already exists")
    else:
        employee_code = IdAllocator(session).next_employee_code(
            exists=lambda code: _employee_code_exists(session, code)
        )

    employee = Employee(
        employee_code=employee_code,
        name=name.strip(),
        role=role,
        mobile=mobile,
        is_active=True,
    )
    session.add(employee)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateId(f"employee {employee_code} already exists") from exc

    logger.info("Employee %s registered as %s", employee.employee_code, role)
    return employee


def get_employee(session, employee_id: int) -> Employee:
    employee = session.get(Employee, employee_id)
    if employee is None:
        raise NotFound(f"employee {employee_id} not found")
    return employee


def update_employee(session, employee_id: int, patch: dict) -> Employee:
    """
    Apply a validated patch (name, role, mobile, is_active).

    employee_code is fixed once allocated.
    """
    employee = get_employee(session, employee_id)
    if "role" in patch and patch["role"] not in EMPLOYEE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(EMPLOYEE_ROLES)}")

    for key, value in patch.items():
        setattr(employee, key, value)
    session.commit()

    logger.info("Employee %s updated: %s", employee.employee_code, ", ".join(sorted(patch)))
    return employee


def deactivate_employee(session, employee_id: int) -> Employee:
    """Employees are kept for their assignments and attendance; they are only deactivated."""
    employee = get_employee(session, employee_id)
    if employee.is_active:
        employee.is_active = False
        session.commit()
        logger.info("Employee %s deactivated", employee.employee_code)
    return employee


def list_employees(session, *, role: str | None = None, active_only: bool = False) -> list[Employee]:
    if role is not None and role not in EMPLOYEE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(EMPLOYEE_ROLES)}")
    query = session.query(Employee)
    if role:
        query = query.filter(Employee.role == role)
    if active_only:
        query = query.filter(Employee.is_active.is_(True))
    return query.order_by(Employee.employee_code.asc()).all()


def check_in(session, *, employee_id: int, at: datetime | None = None, notes: str | None = None,
             late_hour: int = DEFAULT_LATE_HOUR) -> AttendanceRecord:
    employee = get_employee(session, employee_id)
    if not employee.is_active:
        raise ValidationError(f"employee {employee.employee_code} is inactive")

    at = at or utcnow()
    work_date = at.date()

    existing = session.query(AttendanceRecord).filter_by(employee_id=employee.id, work_date=work_date).first()
    if existing is not None:
        raise DuplicateId(f"employee {employee.employee_code} already checked in on {work_date.isoformat()}")

    record = AttendanceRecord(
        employee_id=employee.id,
        work_date=work_date,
        check_in_at=at,
        status=ATTENDANCE_LATE if at.hour >= late_hour else ATTENDANCE_PRESENT,
        notes=notes,
    )
    session.add(record)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateId(
            f"employee {employee.employee_code} already checked in on {work_date.isoformat()}"
        ) from exc
    return record


def check_out(session, *, employee_id: int, at: datetime | None = None) -> AttendanceRecord:
    employee = get_employee(session, employee_id)
    at = at or utcnow()

    record = session.query(AttendanceRecord).filter_by(
        employee_id=employee.id,
        work_date=at.date(),
    ).first()
    if record is None or record.check_in_at is None:
        raise NotFound(f"no check-in found for {employee.employee_code} on {at.date().isoformat()}")
    if record.check_out_at is not None:
        raise ValidationError(f"employee {employee.employee_code} already checked out")
    if at < record.check_in_at:
        raise ValidationError("check-out cannot be before check-in")

    record.check_out_at = at
    record.work_minutes = int((at - record.check_in_at).total_seconds() // 60)
    session.commit()
    return record


def _require_status(status: str) -> str:
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ATTENDANCE_STATUSES)}")
    return status


def mark_attendance(session, *, employee_id: int, work_date: date, status: str,
                    notes: str | None = None) -> AttendanceRecord:
    """
    Record a day without a check-in: leave, absence, holiday, half day, or
    a present/late day entered by a supervisor.

    Same one-record-per-day rule as check_in.
    """
    employee = get_employee(session, employee_id)
    if not employee.is_active:
        raise ValidationError(f"employee {employee.employee_code} is inactive")
    _require_status(status)

    existing = session.query(AttendanceRecord).filter_by(employee_id=employee.id, work_date=work_date).first()
    if existing is not None:
        raise DuplicateId(f"attendance for {employee.employee_code} already recorded on {work_date.isoformat()}")

    record = AttendanceRecord(
        employee_id=employee.id,
        work_date=work_date,
        status=status,
        notes=notes,
    )
    session.add(record)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateId(
            f"attendance for {employee.employee_code} already recorded on {work_date.isoformat()}"
        ) from exc

    logger.info("Attendance for %s on %s marked %s", employee.employee_code, work_date.isoformat(), status)
    return record


def update_attendance(session, record_id: int, *, status: str | None = None,
                      notes: str | None = None) -> AttendanceRecord:
    """Correct the status or notes of an existing record. Times stay as recorded."""
    record = session.get(AttendanceRecord, record_id)
    if record is None:
        raise NotFound(f"attendance record {record_id} not found")
    if status is None and notes is None:
        raise ValidationError("No fields to update")

    if status is not None:
        record.status = _require_status(status)
    if notes is not None:
        record.notes = notes
    session.commit()
    return record


def list_attendance(session, *, work_date: date | None = None,
                    employee_id: int | None = None) -> list[AttendanceRecord]:
    query = session.query(AttendanceRecord)
    if work_date:
        query = query.filter(AttendanceRecord.work_date == work_date)
    if employee_id:
        query = query.filter(AttendanceRecord.employee_id == employee_id)
    return query.order_by(AttendanceRecord.work_date.desc(), AttendanceRecord.id.desc()).all()


def attendance_summary(session, employee_id: int, *, start: date | None = None, end: date | None = None) -> dict:
    employee = get_employee(session, employee_id)
    if start and end and start > end:
        raise ValidationError("start must be on or before end")

    query = session.query(
        AttendanceRecord.status,
        func.count(AttendanceRecord.id),
        func.coalesce(func.sum(AttendanceRecord.work_minutes), 0),
    ).filter(AttendanceRecord.employee_id == employee.id)
    if start:
        query = query.filter(AttendanceRecord.work_date >= start)
    if end:
        query = query.filter(AttendanceRecord.work_date <= end)

    by_status = {status: 0 for status in ATTENDANCE_STATUSES}
    total_minutes = 0
    total_days = 0
    for status, count, minutes in query.group_by(AttendanceRecord.status).all():
        by_status[status] = int(count)
        total_days += int(count)
        total_minutes += int(minutes or 0)

    return {
        "employee_id": employee.id,
        "employee_code": employee.employee_code,
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "days_recorded": total_days,
        "by_status": by_status,
        "total_work_minutes": total_minutes,
        "total_work_hours": round(total_minutes / 60, 2),
    }
