from __future__ import annotations

from ..extensions import db
from ..services.status_projector import COMPLETED, RESERVED
from garment_ledger.time_utils import to_utc_z

# Employee roles
ROLE_CUTTER = "cutter"
ROLE_TAILOR = "tailor"
ROLE_SUPERVISOR = "supervisor"
ROLE_STAFF = "staff"
EMPLOYEE_ROLES = (ROLE_CUTTER, ROLE_TAILOR, ROLE_SUPERVISOR, ROLE_STAFF)

# Assignment lifecycle
ASSIGNMENT_RESERVED = RESERVED
ASSIGNMENT_COMPLETED = COMPLETED
ASSIGNMENT_CANCELLED = "cancelled"
ASSIGNMENT_STATUSES = (ASSIGNMENT_RESERVED, ASSIGNMENT_COMPLETED, ASSIGNMENT_CANCELLED)

# Attendance
ATTENDANCE_PRESENT = "present"
ATTENDANCE_LATE = "late"
ATTENDANCE_HALF_DAY = "half_day"
ATTENDANCE_ABSENT = "absent"
ATTENDANCE_LEAVE = "leave"
ATTENDANCE_HOLIDAY = "holiday"
ATTENDANCE_STATUSES = (
    ATTENDANCE_PRESENT,
    ATTENDANCE_LATE,
    ATTENDANCE_HALF_DAY,
    ATTENDANCE_ABSENT,
    ATTENDANCE_LEAVE,
    ATTENDANCE_HOLIDAY,
)


class Employee(db.Model):
    """Workshop roster entry. Tailors receive cut-piece assignments."""
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("employee_code", name="uq_employees_code"),
        db.Index("ix_employees_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default=ROLE_STAFF)
    mobile = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Employee id={self.id} code={self.employee_code!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "name": self.name,
            "role": self.role,
            "mobile": self.mobile,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class TailorAssignment(db.Model):
    """
    Cut pieces handed to a tailor.

    LIFECYCLE:
    - reserved: pieces left the cut-piece stock (transfer out) and are with the tailor
    - completed: produced garments were stocked into a manufactured_unit item;
      pieces not turned into garments are returned to the cut-piece stock
    - cancelled: all pieces were returned to the cut-piece stock

    Completed and cancelled assignments are immutable.
    """
    __tablename__ = "tailor_assignments"
    __table_args__ = (
        db.Index("ix_tailor_assignments_employee_status", "employee_id", "status"),
        db.CheckConstraint("quantity > 0", name="ck_tailor_assignments_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cut_piece_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    quantity_produced = db.Column(db.Integer, nullable=False, default=0)

    product_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=ASSIGNMENT_RESERVED, index=True)

    manufactured_item_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=True)

    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    assigned_by = db.Column(db.String(128), nullable=False)
    closed_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", backref=db.backref("assignments", lazy=True))
    cut_piece = db.relationship("StockItem", foreign_keys=[cut_piece_id])
    manufactured_item = db.relationship("StockItem", foreign_keys=[manufactured_item_id])

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cut_piece_id": self.cut_piece_id,
            "employee_id": self.employee_id,
            "quantity": self.quantity,
            "quantity_produced": self.quantity_produced,
            "quantity_remaining": self.quantity - self.quantity_produced
            if self.status == ASSIGNMENT_RESERVED
            else 0,
            "product_name": self.product_name,
            "status": self.status,
            "manufactured_item_id": self.manufactured_item_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "assigned_by": self.assigned_by,
            "closed_by": self.closed_by,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "version_id": self.version_id,
        }


class AttendanceRecord(db.Model):
    """
    Daily attendance for one employee.

    One row per (employee, work_date). work_minutes is filled on check-out.
    """
    __tablename__ = "attendance_records"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
        db.Index("ix_attendance_work_date", "work_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False)

    check_in_at = db.Column(db.DateTime(timezone=True), nullable=True)
    check_out_at = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ATTENDANCE_PRESENT)
    work_minutes = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    employee = db.relationship("Employee", backref=db.backref("attendance_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "work_date": self.work_date.isoformat(),
            "check_in_at": to_utc_z(self.check_in_at) if self.check_in_at else None,
            "check_out_at": to_utc_z(self.check_out_at) if self.check_out_at else None,
            "status": self.status,
            "work_minutes": self.work_minutes,
            "work_hours": round(self.work_minutes / 60, 2) if self.work_minutes is not None else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
