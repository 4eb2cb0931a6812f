# Overview: Service-layer operations for identifiers; monotonic id allocation.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import TransientFailure
from ..models import IdSequence
from ..models.stock import FABRIC, CUT_PIECE, MANUFACTURED_UNIT

ITEM_ID_PREFIXES = {
    FABRIC: "FAB",
    CUT_PIECE: "CUT",
    MANUFACTURED_UNIT: "MFG",
}


class IdAllocator:
    """
    Allocates ids like FAB-000001 from the id_sequences table.

    The counter is advanced with an atomic UPDATE so two concurrent callers
    can never receive the same number. Allocation joins the caller's
    transaction; a rolled-back transaction gives its number back.
    """

    def __init__(self, session):
        self.session = session

    def next_value(self, name: str) -> int:
        stmt = (
            update(IdSequence)
            .where(IdSequence.name == name)
            .values(next_value=IdSequence.next_value + 1)
            .execution_options(synchronize_session=False)
        )

        result = self.session.execute(stmt)
        if result.rowcount:
            current = self.session.query(IdSequence.next_value).filter_by(name=name).scalar()
            return current - 1

        seq = IdSequence(name=name, next_value=2)
        self.session.add(seq)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Another writer created the sequence row first
            self.session.rollback()
            raise TransientFailure(f"sequence {name} was initialised concurrently, retry") from exc
        return 1

    def next_code(self, name: str, prefix: str, *, pad: int = 6, exists=None) -> str:
        """
        Next formatted code for a sequence.

        exists(code) -> bool lets callers skip codes already taken by
        explicitly supplied ids.
        """
        while True:
            code = f"{prefix}-{self.next_value(name):0{pad}d}"
            if exists is None or not exists(code):
                return code

    def next_item_id(self, kind: str, exists=None) -> str:
        prefix = ITEM_ID_PREFIXES[kind]
        return self.next_code(f"item:{kind}", prefix, exists=exists)

    def next_employee_code(self, exists=None) -> str:
        return self.next_code("employee", "EMP", pad=4, exists=exists)
