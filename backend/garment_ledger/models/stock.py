from __future__ import annotations

from ..extensions import db
from ..quantities import from_milli
from ..services.status_projector import project
from garment_ledger.time_utils import to_utc_z

# Item kinds
FABRIC = "fabric"
CUT_PIECE = "cut_piece"
MANUFACTURED_UNIT = "manufactured_unit"
ITEM_KINDS = (FABRIC, CUT_PIECE, MANUFACTURED_UNIT)

# Units
METERS = "meters"
SQUARE_METERS = "square_meters"
YARDS = "yards"
PIECES = "pieces"
UNITS = (METERS, SQUARE_METERS, YARDS, PIECES)

# Transaction kinds
STOCK_IN = "stock_in"
STOCK_OUT = "stock_out"
ADJUSTMENT = "adjustment"
TRANSFER = "transfer"
TRANSACTION_KINDS = (STOCK_IN, STOCK_OUT, ADJUSTMENT, TRANSFER)

# Transaction sources
SOURCE_MANUAL = "manual"
SOURCE_INTAKE = "intake"
SOURCE_CUTTING = "cutting"
SOURCE_ASSIGNMENT = "assignment"
SOURCE_QR_SCANNER = "qr_scanner"
TRANSACTION_SOURCES = (SOURCE_MANUAL, SOURCE_INTAKE, SOURCE_CUTTING, SOURCE_ASSIGNMENT, SOURCE_QR_SCANNER)


class StockItem(db.Model):
    """
    One trackable physical resource: a fabric roll, a batch of cut pieces,
    or a stock of manufactured garments.

    QUANTITY:
    quantity_milli is the single authoritative amount, in thousandths of the
    item's unit. It is changed only through LedgerStore.apply_delta, which
    the stock engine pairs with a LedgerTransaction in one DB transaction.

    STATUS:
    Not a column. to_dict() projects it from quantity and min_threshold on
    every read.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.CheckConstraint("quantity_milli >= 0", name="ck_stock_items_quantity_non_negative"),
        db.CheckConstraint("min_threshold_milli >= 0", name="ck_stock_items_threshold_non_negative"),
        db.Index("ix_stock_items_kind_name", "kind", "name"),
    )

    id = db.Column(db.String(64), primary_key=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    unit = db.Column(db.String(16), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=True)
    material = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    quantity_milli = db.Column(db.BigInteger, nullable=False, default=0)
    min_threshold_milli = db.Column(db.BigInteger, nullable=False, default=0)

    # Fabric a cut piece batch was cut from
    source_item_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=True, index=True)

    created_by = db.Column(db.String(128), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    source_item = db.relationship("StockItem", remote_side=[id], backref=db.backref("derived_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        return project(self)

    def __repr__(self) -> str:
        return f"<StockItem id={self.id!r} kind={self.kind!r} quantity_milli={self.quantity_milli}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "unit": self.unit,
            "name": self.name,
            "color": self.color,
            "material": self.material,
            "notes": self.notes,
            "quantity": from_milli(self.quantity_milli),
            "min_threshold": from_milli(self.min_threshold_milli),
            "status": self.status,
            "source_item_id": self.source_item_id,
            "created_by": self.created_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class LedgerTransaction(db.Model):
    """
    Immutable record of one committed quantity change.

    quantity_after == quantity_before + quantity_delta, and quantity_after is
    the item's quantity immediately after the commit that wrote this row.
    Rows are never updated or deleted one at a time; the only removal is the
    wholesale "clear history" operation.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.Index("ix_ledger_tx_timestamp_id", "timestamp", "id"),
        db.Index("ix_ledger_tx_item_timestamp", "item_id", "timestamp"),
        db.Index("ix_ledger_tx_kind_timestamp", "kind", "timestamp"),
        db.Index("ix_ledger_tx_actor_timestamp", "actor", "timestamp"),
        db.CheckConstraint(
            "quantity_after_milli = quantity_before_milli + quantity_delta_milli",
            name="ck_ledger_tx_balanced",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    item_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=False, index=True)
    item_kind = db.Column(db.String(32), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    source = db.Column(db.String(32), nullable=False, default=SOURCE_MANUAL)

    quantity_delta_milli = db.Column(db.BigInteger, nullable=False)
    quantity_before_milli = db.Column(db.BigInteger, nullable=False)
    quantity_after_milli = db.Column(db.BigInteger, nullable=False)

    actor = db.Column(db.String(128), nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("StockItem", backref=db.backref("transactions", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction id={self.id} item_id={self.item_id!r} kind={self.kind!r} "
            f"delta={self.quantity_delta_milli}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "item_id": self.item_id,
            "item_kind": self.item_kind,
            "kind": self.kind,
            "source": self.source,
            "quantity_delta": from_milli(self.quantity_delta_milli),
            "quantity_before": from_milli(self.quantity_before_milli),
            "quantity_after": from_milli(self.quantity_after_milli),
            "actor": self.actor,
            "reason": self.reason,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
        }


class CuttingRecord(db.Model):
    """
    One cutting operation: fabric consumed into a batch of cut pieces.

    total_area_milli = piece_length * piece_width * piece_count, and equals
    the magnitude of the fabric stock_out transaction it points at.
    """
    __tablename__ = "cutting_records"
    __table_args__ = (
        db.Index("ix_cutting_records_fabric_created", "fabric_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    fabric_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=False, index=True)
    cut_piece_id = db.Column(db.String(64), db.ForeignKey("stock_items.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("ledger_transactions.id"), nullable=True)

    piece_length_milli = db.Column(db.BigInteger, nullable=False)
    piece_width_milli = db.Column(db.BigInteger, nullable=False)
    piece_count = db.Column(db.Integer, nullable=False)
    total_area_milli = db.Column(db.BigInteger, nullable=False)

    product_name = db.Column(db.String(255), nullable=True)
    usage_location = db.Column(db.String(128), nullable=True)

    actor = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    fabric = db.relationship("StockItem", foreign_keys=[fabric_id])
    cut_piece = db.relationship("StockItem", foreign_keys=[cut_piece_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fabric_id": self.fabric_id,
            "cut_piece_id": self.cut_piece_id,
            "transaction_id": self.transaction_id,
            "piece_length": from_milli(self.piece_length_milli),
            "piece_width": from_milli(self.piece_width_milli),
            "piece_count": self.piece_count,
            "total_area_consumed": from_milli(self.total_area_milli),
            "product_name": self.product_name,
            "usage_location": self.usage_location,
            "actor": self.actor,
            "created_at": to_utc_z(self.created_at),
        }


class IdSequence(db.Model):
    """
    Monotonic counters for human-readable ids (FAB-000001, EMP-0001, ...).

    One row per sequence name; next_value is advanced with an atomic
    UPDATE ... SET next_value = next_value + 1.
    """
    __tablename__ = "id_sequences"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_id_sequences_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    next_value = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
