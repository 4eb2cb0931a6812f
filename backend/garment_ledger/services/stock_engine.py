# Overview: Reservation/Consumption Engine; the only writer of stock quantities and the transaction log.

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    InsufficientStock,
    InvariantViolation,
    LedgerError,
    NotFound,
    ValidationError,
)
from ..models import CuttingRecord, LedgerTransaction, StockItem
from ..models.stock import (
    ADJUSTMENT,
    CUT_PIECE,
    FABRIC,
    ITEM_KINDS,
    PIECES,
    SOURCE_CUTTING,
    SOURCE_INTAKE,
    SOURCE_MANUAL,
    SQUARE_METERS,
    STOCK_IN,
    STOCK_OUT,
    TRANSACTION_SOURCES,
    TRANSFER,
    UNITS,
)
from ..quantities import QUANTITY_SCALE, area_milli, from_milli, is_whole, to_milli, to_positive_milli
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .identifier_service import IdAllocator
from .ledger_store import LedgerStore
from .transaction_log import TransactionLog

"""
Stock Engine Invariants (authoritative)

- Every quantity change is one LedgerStore.apply_delta plus one
  TransactionLog.append, committed together or rolled back together.
- A request that would make quantity negative fails with InsufficientStock
  before anything is written and nothing is logged.
- Multi-step operations (cut, assignment completion) run as one unit of
  work; a failure in any step rolls back every step.
- After each posting the stored quantity is re-read and compared with the
  new log entry. A mismatch is an InvariantViolation: the unit of work is
  rolled back and this engine instance refuses further writes until an
  operator calls resume().
- Idempotency keys make retries after TransientFailure safe: a key that was
  already committed returns the committed result instead of applying again.
"""

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 255
MAX_ACTOR_LENGTH = 128
MAX_KEY_LENGTH = 128


@dataclass
class LedgerResult:
    item: StockItem
    transaction: LedgerTransaction | None
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "transaction": self.transaction.to_dict() if self.transaction else None,
            "replayed": self.replayed,
        }


@dataclass
class CutResult:
    fabric: StockItem
    cut_piece: StockItem
    cutting_record: CuttingRecord
    transaction: LedgerTransaction
    piece_transaction: LedgerTransaction | None
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "fabric": self.fabric.to_dict(),
            "cut_piece": self.cut_piece.to_dict(),
            "cutting_record": self.cutting_record.to_dict(),
            "transaction": self.transaction.to_dict(),
            "piece_transaction": self.piece_transaction.to_dict() if self.piece_transaction else None,
            "replayed": self.replayed,
        }


def require_actor(actor) -> str:
    if actor is None or not str(actor).strip():
        raise ValidationError("actor is required")
    actor = str(actor).strip()
    if len(actor) > MAX_ACTOR_LENGTH:
        raise ValidationError(f"actor exceeds max length {MAX_ACTOR_LENGTH}")
    return actor


def _clean_reason(reason) -> str | None:
    if reason is None:
        return None
    reason = str(reason).strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")
    return reason or None


def _clean_key(key) -> str | None:
    if key is None:
        return None
    key = str(key).strip()
    if not key:
        return None
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"idempotency_key exceeds max length {MAX_KEY_LENGTH}")
    return key


def positive_int(value, *, field: str) -> int:
    """Strict positive integer: no bools, no floats, no '12.0'."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError(f"{field} must be a positive integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


class StockEngine:
    """
    Turns business requests into atomic ledger postings.

    Collaborators are injected: the SQLAlchemy session (shared store for the
    ledger and the log) and a clock for transaction timestamps. The app
    factory builds one engine per Flask app; tests build their own.
    """

    def __init__(
        self,
        session,
        *,
        clock=utcnow,
        default_min_threshold_milli: int = 0,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ):
        self.session = session
        self.clock = clock
        self.store = LedgerStore(session)
        self.log = TransactionLog(session, clock=clock)
        self.ids = IdAllocator(session)
        self.default_min_threshold_milli = default_min_threshold_milli
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.halted = False
        self.halt_reason: str | None = None

    @classmethod
    def from_config(cls, session, config) -> "StockEngine":
        return cls(
            session,
            default_min_threshold_milli=to_milli(config["DEFAULT_MIN_THRESHOLD"], field="DEFAULT_MIN_THRESHOLD"),
            retry_attempts=config["LEDGER_RETRY_ATTEMPTS"],
            retry_backoff=config["LEDGER_RETRY_BACKOFF_SECONDS"],
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _ensure_running(self) -> None:
        if self.halted:
            raise InvariantViolation(
                f"ledger engine halted pending operator intervention: {self.halt_reason}"
            )

    def _halt(self, exc: InvariantViolation) -> None:
        self.halted = True
        self.halt_reason = exc.message
        logger.critical("Ledger invariant violated, engine halted: %s", exc.message)

    def resume(self, actor: str) -> None:
        actor = require_actor(actor)
        logger.warning("Ledger engine resumed by %s (was halted: %s)", actor, self.halt_reason)
        self.halted = False
        self.halt_reason = None

    def atomic(self, op):
        """
        Run op() as one committed unit of work with bounded retry.

        Any exception rolls the whole unit back. Concurrency conflicts are
        retried and finally surface as TransientFailure.
        """
        self._ensure_running()

        def _op():
            try:
                result = op()
                self.session.commit()
                return result
            except InvariantViolation as exc:
                self.session.rollback()
                self._halt(exc)
                raise
            except InsufficientStock as exc:
                self.session.rollback()
                logger.info("Stock request refused: %s", exc.message)
                raise
            except Exception:
                self.session.rollback()
                raise

        return run_with_retry(
            _op,
            session=self.session,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )

    def _check_posting(self, item: StockItem, tx: LedgerTransaction) -> None:
        stored = self.session.query(StockItem.quantity_milli).filter_by(id=item.id).scalar()
        if tx.quantity_after_milli != tx.quantity_before_milli + tx.quantity_delta_milli:
            raise InvariantViolation(f"transaction {tx.id} does not balance")
        if stored != tx.quantity_after_milli:
            raise InvariantViolation(
                f"item {item.id} holds {stored} but transaction {tx.id} recorded {tx.quantity_after_milli}"
            )

    def post(
        self,
        item_id: str,
        kind: str,
        delta_milli: int,
        *,
        actor: str,
        reason: str | None = None,
        source: str = SOURCE_MANUAL,
        idempotency_key: str | None = None,
    ) -> tuple[StockItem, LedgerTransaction]:
        """
        Apply one change and log it inside the current unit of work.

        Does not commit; call from within atomic().
        """
        item = self.store.apply_delta(item_id, delta_milli)
        tx = self.log.append(
            item=item,
            kind=kind,
            delta_milli=delta_milli,
            actor=actor,
            reason=reason,
            source=source,
            idempotency_key=idempotency_key,
        )
        self._check_posting(item, tx)
        return item, tx

    def _replay(self, key: str | None, *, item_id: str, kind: str, delta_milli: int) -> LedgerResult | None:
        if key is None:
            return None
        tx = self.log.find_by_idempotency_key(key)
        if tx is None:
            return None
        if tx.item_id != item_id or tx.kind != kind or tx.quantity_delta_milli != delta_milli:
            raise ValidationError("idempotency_key was already used for a different request")
        return LedgerResult(item=self.store.get(item_id), transaction=tx, replayed=True)

    def _movement(
        self,
        item_id: str,
        kind: str,
        delta_milli: int,
        *,
        actor,
        reason,
        source: str,
        idempotency_key,
    ) -> LedgerResult:
        actor = require_actor(actor)
        reason = _clean_reason(reason)
        key = _clean_key(idempotency_key)
        if source not in TRANSACTION_SOURCES:
            raise ValidationError(f"source must be one of: {', '.join(TRANSACTION_SOURCES)}")

        def _op():
            replay = self._replay(key, item_id=item_id, kind=kind, delta_milli=delta_milli)
            if replay is not None:
                return replay
            item, tx = self.post(
                item_id,
                kind,
                delta_milli,
                actor=actor,
                reason=reason,
                source=source,
                idempotency_key=key,
            )
            return LedgerResult(item=item, transaction=tx)

        try:
            return self.atomic(_op)
        except IntegrityError:
            # Lost a race on the idempotency key; the other request committed
            replay = self._replay(key, item_id=item_id, kind=kind, delta_milli=delta_milli)
            if replay is None:
                raise
            return replay

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def consume(self, item_id: str, amount, reason=None, actor=None, *, idempotency_key=None,
                source: str = SOURCE_MANUAL) -> LedgerResult:
        """stock_out: remove amount from an item. InsufficientStock if amount > quantity."""
        amount_milli = to_positive_milli(amount)
        return self._movement(
            item_id,
            STOCK_OUT,
            -amount_milli,
            actor=actor,
            reason=reason,
            source=source,
            idempotency_key=idempotency_key,
        )

    def replenish(self, item_id: str, amount, reason=None, actor=None, *, idempotency_key=None,
                  source: str = SOURCE_MANUAL) -> LedgerResult:
        """stock_in: add amount to an item."""
        amount_milli = to_positive_milli(amount)
        return self._movement(
            item_id,
            STOCK_IN,
            amount_milli,
            actor=actor,
            reason=reason,
            source=source,
            idempotency_key=idempotency_key,
        )

    def adjust(self, item_id: str, delta, reason=None, actor=None, *, idempotency_key=None) -> LedgerResult:
        """adjustment: correction in either direction (stock takes, damage, shrink)."""
        delta_milli = to_milli(delta, field="delta")
        if delta_milli == 0:
            raise ValidationError("delta must be non-zero for an adjustment")
        return self._movement(
            item_id,
            ADJUSTMENT,
            delta_milli,
            actor=actor,
            reason=reason,
            source=SOURCE_MANUAL,
            idempotency_key=idempotency_key,
        )

    def transfer(self, item_id: str, delta_milli: int, *, actor: str, reason: str | None, source: str):
        """transfer posting inside an existing unit of work (assignments)."""
        if delta_milli == 0:
            raise ValidationError("transfer delta must be non-zero")
        return self.post(item_id, TRANSFER, delta_milli, actor=actor, reason=reason, source=source)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> StockItem:
        return self.store.get(item_id)

    def new_item(
        self,
        *,
        kind: str,
        name: str,
        unit: str,
        actor: str,
        item_id: str | None = None,
        min_threshold_milli: int | None = None,
        color: str | None = None,
        material: str | None = None,
        notes: str | None = None,
        source_item_id: str | None = None,
    ) -> StockItem:
        """Create a zero-quantity item inside the current unit of work."""
        if item_id is None:
            item_id = self.ids.next_item_id(kind, exists=self.store.exists)
        item = StockItem(
            id=item_id,
            kind=kind,
            unit=unit,
            name=name,
            color=color,
            material=material,
            notes=notes,
            quantity_milli=0,
            min_threshold_milli=(
                self.default_min_threshold_milli if min_threshold_milli is None else min_threshold_milli
            ),
            source_item_id=source_item_id,
            created_by=actor,
        )
        return self.store.create(item)

    def create_item(
        self,
        *,
        kind: str,
        name: str,
        actor,
        unit: str | None = None,
        quantity=None,
        roll_length=None,
        roll_width=None,
        min_threshold=None,
        item_id: str | None = None,
        color: str | None = None,
        material: str | None = None,
        notes: str | None = None,
        reason: str | None = None,
    ) -> LedgerResult:
        """
        Register a stock item, recording any opening quantity as stock_in.

        Fabric intake may give roll_length and roll_width instead of quantity;
        the opening quantity is then their product in square units.
        """
        actor = require_actor(actor)
        reason = _clean_reason(reason)

        if kind not in ITEM_KINDS:
            raise ValidationError(f"kind must be one of: {', '.join(ITEM_KINDS)}")
        if not name or not str(name).strip():
            raise ValidationError("name is required")
        name = str(name).strip()

        if item_id is not None:
            item_id = str(item_id).strip()
            if not item_id:
                raise ValidationError("id cannot be blank")
            if len(item_id) > 64:
                raise ValidationError("id exceeds max length 64")

        opening_milli = 0
        if quantity is not None:
            opening_milli = to_milli(quantity)
        elif roll_length is not None or roll_width is not None:
            if kind != FABRIC:
                raise ValidationError("roll_length/roll_width only apply to fabric")
            if roll_length is None or roll_width is None:
                raise ValidationError("roll_length and roll_width must be given together")
            length_milli = to_positive_milli(roll_length, field="roll_length")
            width_milli = to_positive_milli(roll_width, field="roll_width")
            opening_milli = area_milli(length_milli, width_milli, 1)
            if unit is None:
                unit = SQUARE_METERS
        if opening_milli < 0:
            raise ValidationError("quantity must be >= 0")

        if unit is None:
            unit = SQUARE_METERS if kind == FABRIC else PIECES
        if unit not in UNITS:
            raise ValidationError(f"unit must be one of: {', '.join(UNITS)}")
        if unit == PIECES and not is_whole(opening_milli):
            raise ValidationError("quantity must be a whole number of pieces")

        threshold_milli = None
        if min_threshold is not None:
            threshold_milli = to_milli(min_threshold, field="min_threshold")
            if threshold_milli < 0:
                raise ValidationError("min_threshold must be >= 0")

        def _op():
            item = self.new_item(
                kind=kind,
                name=name,
                unit=unit,
                actor=actor,
                item_id=item_id,
                min_threshold_milli=threshold_milli,
                color=color,
                material=material,
                notes=notes,
            )
            tx = None
            if opening_milli:
                item, tx = self.post(
                    item.id,
                    STOCK_IN,
                    opening_milli,
                    actor=actor,
                    reason=reason or "opening stock",
                    source=SOURCE_INTAKE,
                )
            return LedgerResult(item=item, transaction=tx)

        result = self.atomic(_op)
        logger.info("Registered %s %s with %s %s", kind, result.item.id, from_milli(opening_milli), unit)
        return result

    # ------------------------------------------------------------------
    # Cutting
    # ------------------------------------------------------------------

    def cut(
        self,
        fabric_id: str,
        piece_length,
        piece_width,
        piece_count,
        actor=None,
        *,
        cut_piece_id: str | None = None,
        product_name: str | None = None,
        usage_location: str | None = None,
        min_threshold=None,
        idempotency_key=None,
    ) -> CutResult:
        """
        Cut piece_count pieces of piece_length x piece_width from a fabric.

        Consumes length * width * count from the fabric, creates a cut_piece
        item holding piece_count pieces, and records the cutting operation.
        If any step fails (including creating the cut-piece item) the fabric
        consumption is rolled back with it.
        """
        actor = require_actor(actor)
        key = _clean_key(idempotency_key)
        length_milli = to_positive_milli(piece_length, field="piece_length")
        width_milli = to_positive_milli(piece_width, field="piece_width")
        count = positive_int(piece_count, field="piece_count")
        amount_milli = area_milli(length_milli, width_milli, count)

        threshold_milli = 0
        if min_threshold is not None:
            threshold_milli = to_milli(min_threshold, field="min_threshold")
            if threshold_milli < 0:
                raise ValidationError("min_threshold must be >= 0")

        if cut_piece_id is not None:
            cut_piece_id = str(cut_piece_id).strip() or None

        reason = (
            f"cut {count} x {from_milli(length_milli)}x{from_milli(width_milli)}"
            + (f" for {product_name}" if product_name else "")
        )

        def _op():
            if key is not None:
                replay = self._replay_cut(key, fabric_id=fabric_id, amount_milli=amount_milli)
                if replay is not None:
                    return replay

            fabric = self.store.get(fabric_id)
            if fabric.kind != FABRIC:
                raise ValidationError(f"item {fabric_id} is not fabric")

            fabric, tx = self.post(
                fabric_id,
                STOCK_OUT,
                -amount_milli,
                actor=actor,
                reason=reason,
                source=SOURCE_CUTTING,
                idempotency_key=key,
            )

            piece = self.new_item(
                kind=CUT_PIECE,
                name=product_name or f"{fabric.name} pieces",
                unit=PIECES,
                actor=actor,
                item_id=cut_piece_id,
                min_threshold_milli=threshold_milli,
                color=fabric.color,
                material=fabric.material,
                source_item_id=fabric.id,
            )
            piece, piece_tx = self.post(
                piece.id,
                STOCK_IN,
                count * QUANTITY_SCALE,
                actor=actor,
                reason=f"cut from {fabric.id}",
                source=SOURCE_CUTTING,
            )

            record = CuttingRecord(
                fabric_id=fabric.id,
                cut_piece_id=piece.id,
                transaction_id=tx.id,
                piece_length_milli=length_milli,
                piece_width_milli=width_milli,
                piece_count=count,
                total_area_milli=amount_milli,
                product_name=product_name,
                usage_location=usage_location,
                actor=actor,
            )
            self.session.add(record)
            self.session.flush()

            return CutResult(
                fabric=fabric,
                cut_piece=piece,
                cutting_record=record,
                transaction=tx,
                piece_transaction=piece_tx,
            )

        try:
            try:
                result = self.atomic(_op)
            except IntegrityError:
                # Lost a race on the idempotency key; the other cut committed
                replay = None
                if key is not None:
                    replay = self._replay_cut(key, fabric_id=fabric_id, amount_milli=amount_milli)
                if replay is None:
                    raise
                result = replay
        except LedgerError as exc:
            if not isinstance(exc, InsufficientStock):
                logger.warning("Cut of %s rolled back: %s", fabric_id, exc.message)
            raise

        if not result.replayed:
            logger.info(
                "Cut %s pieces from %s into %s (%s consumed)",
                count, fabric_id, result.cut_piece.id, from_milli(amount_milli),
            )
        return result

    def _replay_cut(self, key: str, *, fabric_id: str, amount_milli: int) -> CutResult | None:
        tx = self.log.find_by_idempotency_key(key)
        if tx is None:
            return None
        if tx.item_id != fabric_id or tx.kind != STOCK_OUT or tx.quantity_delta_milli != -amount_milli:
            raise ValidationError("idempotency_key was already used for a different request")
        record = self.session.query(CuttingRecord).filter_by(transaction_id=tx.id).first()
        if record is None:
            raise NotFound(f"cutting record for transaction {tx.id} not found")
        return CutResult(
            fabric=self.store.get(fabric_id),
            cut_piece=self.store.get(record.cut_piece_id),
            cutting_record=record,
            transaction=tx,
            piece_transaction=None,
            replayed=True,
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_history(self, actor, *, confirm: bool = False) -> int:
        """
        Purge the whole transaction log.

        There is no selective variant. Item quantities are untouched.
        """
        actor = require_actor(actor)
        if confirm is not True:
            raise ValidationError("clearing history requires confirm=true")

        deleted = self.atomic(self.log.clear)
        logger.warning("Transaction history cleared by %s (%d entries)", actor, deleted)
        return deleted

    def verify_item(self, item_id: str) -> dict:
        """
        Replay an item's log and compare with its stored quantity.

        Checks that every entry balances, that each entry starts where the
        previous one ended, and that the last entry ends at the stored
        quantity. Read-only.
        """
        item = self.store.get(item_id)
        entries = self.log.for_item(item_id)
        problems = []

        previous = None
        for tx in entries:
            if tx.quantity_after_milli != tx.quantity_before_milli + tx.quantity_delta_milli:
                problems.append(f"transaction {tx.id} does not balance")
            if tx.quantity_after_milli < 0:
                problems.append(f"transaction {tx.id} leaves a negative quantity")
            if previous is not None and tx.quantity_before_milli != previous.quantity_after_milli:
                problems.append(
                    f"transaction {tx.id} starts at {from_milli(tx.quantity_before_milli)} "
                    f"but transaction {previous.id} ended at {from_milli(previous.quantity_after_milli)}"
                )
            previous = tx

        if previous is not None and previous.quantity_after_milli != item.quantity_milli:
            problems.append(
                f"stored quantity {from_milli(item.quantity_milli)} differs from "
                f"last logged quantity {from_milli(previous.quantity_after_milli)}"
            )

        return {
            "item_id": item.id,
            "quantity": from_milli(item.quantity_milli),
            "transactions": len(entries),
            "ok": not problems,
            "problems": problems,
        }

    def verify_all(self) -> list[dict]:
        ids = [row[0] for row in self.session.query(StockItem.id).order_by(StockItem.id).all()]
        return [self.verify_item(item_id) for item_id in ids]


def get_stock_engine() -> StockEngine:
    """The engine wired by the app factory for the current app."""
    return current_app.extensions["stock_engine"]
