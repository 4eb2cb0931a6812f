# Overview: Service-layer operations for tailor assignments; moves cut pieces through the ledger.

"""
Tailor Assignments

Handing pieces to a tailor is a transfer out of the cut-piece item; pieces
with a tailor are not on the shelf. Completion stocks the produced garments
into a manufactured_unit item and transfers unused pieces back. Cancelling
transfers every piece back. Each step is one unit of work on the stock
engine, so piece and garment counts are always conserved:

    pieces assigned == garments produced + pieces returned
"""

from __future__ import annotations

import logging

from ..errors import NotFound, ValidationError
from ..models import Employee, StockItem, TailorAssignment
from ..models.stock import CUT_PIECE, MANUFACTURED_UNIT, PIECES, SOURCE_ASSIGNMENT, STOCK_IN
from ..models.workforce import (
    ASSIGNMENT_CANCELLED,
    ASSIGNMENT_COMPLETED,
    ASSIGNMENT_RESERVED,
    ASSIGNMENT_STATUSES,
    ROLE_TAILOR,
)
from ..quantities import QUANTITY_SCALE
from .stock_engine import positive_int, require_actor

logger = logging.getLogger(__name__)


def _get_assignment(session, assignment_id: int) -> TailorAssignment:
    assignment = session.get(TailorAssignment, assignment_id, populate_existing=True)
    if assignment is None:
        raise NotFound(f"assignment {assignment_id} not found")
    return assignment


def _require_open(assignment: TailorAssignment) -> None:
    if assignment.status != ASSIGNMENT_RESERVED:
        raise ValidationError(f"assignment {assignment.id} is already {assignment.status}")


def assign(engine, *, cut_piece_id: str, employee_id: int, quantity, actor,
           product_name: str | None = None, due_date=None, notes: str | None = None) -> TailorAssignment:
    actor = require_actor(actor)
    count = positive_int(quantity, field="quantity")
    session = engine.session

    def _op():
        piece = engine.get_item(cut_piece_id)
        if piece.kind != CUT_PIECE:
            raise ValidationError(f"item {cut_piece_id} is not a cut piece")

        employee = session.get(Employee, employee_id)
        if employee is None:
            raise NotFound(f"employee {employee_id} not found")
        if employee.role != ROLE_TAILOR:
            raise ValidationError(f"employee {employee.employee_code} is not a tailor")
        if not employee.is_active:
            raise ValidationError(f"employee {employee.employee_code} is inactive")

        engine.transfer(
            piece.id,
            -count * QUANTITY_SCALE,
            actor=actor,
            reason=f"assigned to {employee.employee_code}",
            source=SOURCE_ASSIGNMENT,
        )

        assignment = TailorAssignment(
            cut_piece_id=piece.id,
            employee_id=employee.id,
            quantity=count,
            quantity_produced=0,
            product_name=product_name or piece.name,
            status=ASSIGNMENT_RESERVED,
            due_date=due_date,
            notes=notes,
            assigned_by=actor,
        )
        session.add(assignment)
        session.flush()
        return assignment

    assignment = engine.atomic(_op)
    logger.info(
        "Assigned %d pieces of %s to employee %s (assignment %s)",
        count, cut_piece_id, employee_id, assignment.id,
    )
    return assignment


def _target_item(engine, assignment: TailorAssignment, *, manufactured_item_id, product_name, actor) -> StockItem:
    if manufactured_item_id:
        existing = engine.store.find(manufactured_item_id)
        if existing is not None:
            if existing.kind != MANUFACTURED_UNIT:
                raise ValidationError(f"item {manufactured_item_id} is not a manufactured unit")
            return existing

    piece = engine.get_item(assignment.cut_piece_id)
    return engine.new_item(
        kind=MANUFACTURED_UNIT,
        name=product_name or assignment.product_name or piece.name,
        unit=PIECES,
        actor=actor,
        item_id=manufactured_item_id or None,
        min_threshold_milli=0,
        color=piece.color,
        material=piece.material,
        source_item_id=piece.id,
    )


def complete(engine, assignment_id: int, *, quantity_produced, actor,
             manufactured_item_id: str | None = None, product_name: str | None = None) -> TailorAssignment:
    """
    Close an assignment with its output.

    quantity_produced garments are stocked in; the rest of the assigned
    pieces go back to the cut-piece item.
    """
    actor = require_actor(actor)
    if isinstance(quantity_produced, bool) or not isinstance(quantity_produced, int):
        raise ValidationError("quantity_produced must be an integer")
    if quantity_produced < 0:
        raise ValidationError("quantity_produced must be >= 0")
    session = engine.session

    def _op():
        assignment = _get_assignment(session, assignment_id)
        _require_open(assignment)
        if quantity_produced > assignment.quantity:
            raise ValidationError(
                f"quantity_produced {quantity_produced} exceeds assigned quantity {assignment.quantity}"
            )

        if quantity_produced:
            target = _target_item(
                engine,
                assignment,
                manufactured_item_id=manufactured_item_id,
                product_name=product_name,
                actor=actor,
            )
            engine.post(
                target.id,
                STOCK_IN,
                quantity_produced * QUANTITY_SCALE,
                actor=actor,
                reason=f"produced under assignment {assignment.id}",
                source=SOURCE_ASSIGNMENT,
            )
            assignment.manufactured_item_id = target.id

        leftover = assignment.quantity - quantity_produced
        if leftover:
            engine.transfer(
                assignment.cut_piece_id,
                leftover * QUANTITY_SCALE,
                actor=actor,
                reason=f"returned from assignment {assignment.id}",
                source=SOURCE_ASSIGNMENT,
            )

        assignment.quantity_produced = quantity_produced
        assignment.status = ASSIGNMENT_COMPLETED
        assignment.closed_by = actor
        assignment.closed_at = engine.clock()
        session.flush()
        return assignment

    assignment = engine.atomic(_op)
    logger.info("Assignment %s completed: %d produced", assignment.id, quantity_produced)
    return assignment


def cancel(engine, assignment_id: int, *, actor, reason: str | None = None) -> TailorAssignment:
    actor = require_actor(actor)
    session = engine.session

    def _op():
        assignment = _get_assignment(session, assignment_id)
        _require_open(assignment)

        engine.transfer(
            assignment.cut_piece_id,
            assignment.quantity * QUANTITY_SCALE,
            actor=actor,
            reason=reason or f"assignment {assignment.id} cancelled",
            source=SOURCE_ASSIGNMENT,
        )
        assignment.status = ASSIGNMENT_CANCELLED
        assignment.closed_by = actor
        assignment.closed_at = engine.clock()
        session.flush()
        return assignment

    assignment = engine.atomic(_op)
    logger.info("Assignment %s cancelled", assignment.id)
    return assignment


def get_assignment(session, assignment_id: int) -> TailorAssignment:
    return _get_assignment(session, assignment_id)


def list_assignments(session, *, status: str | None = None, employee_id: int | None = None) -> list[TailorAssignment]:
    if status is not None and status not in ASSIGNMENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ASSIGNMENT_STATUSES)}")
    query = session.query(TailorAssignment)
    if status:
        query = query.filter(TailorAssignment.status == status)
    if employee_id:
        query = query.filter(TailorAssignment.employee_id == employee_id)
    return query.order_by(TailorAssignment.created_at.desc(), TailorAssignment.id.desc()).all()
