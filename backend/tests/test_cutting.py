# Overview: Pytest coverage for cutting fabric into pieces.

import pytest

from garment_ledger.errors import DuplicateId, InsufficientStock, NotFound, ValidationError
from garment_ledger.models import CuttingRecord, LedgerTransaction, StockItem
from garment_ledger.models.stock import CUT_PIECE, FABRIC, PIECES, SOURCE_CUTTING, STOCK_IN, STOCK_OUT

from conftest import ACTOR


def _counts(db_session):
    return (
        db_session.query(StockItem).count(),
        db_session.query(LedgerTransaction).count(),
        db_session.query(CuttingRecord).count(),
    )


class TestCut:

    def test_basic_cut(self, engine, fabric, db_session):
        result = engine.cut(
            fabric.id, 1.5, 0.8, 10,
            actor=ACTOR,
            product_name="Kurta panel",
            usage_location="Table 2",
        )

        # 1.5 x 0.8 x 10 = 12 consumed
        assert result.fabric.quantity_milli == 88_000
        assert result.transaction.kind == STOCK_OUT
        assert result.transaction.source == SOURCE_CUTTING
        assert result.transaction.quantity_delta_milli == -12_000

        piece = result.cut_piece
        assert piece.kind == CUT_PIECE
        assert piece.unit == PIECES
        assert piece.quantity_milli == 10_000
        assert piece.source_item_id == fabric.id
        assert piece.name == "Kurta panel"
        assert piece.id == "CUT-000001"

        assert result.piece_transaction.kind == STOCK_IN
        assert result.piece_transaction.quantity_after_milli == 10_000

        record = result.cutting_record
        assert record.total_area_milli == 12_000
        assert record.piece_count == 10
        assert record.transaction_id == result.transaction.id
        assert record.to_dict()["total_area_consumed"] == 12

    def test_cut_logs_one_fabric_stock_out(self, engine, db_session):
        fabric = engine.create_item(
            kind=FABRIC, name="Rayon", actor=ACTOR, item_id="FAB-R", quantity=100, min_threshold=10,
        ).item

        result = engine.cut(fabric.id, 2, 1, 10, actor="emp1")

        assert result.fabric.quantity_milli == 80_000
        assert result.fabric.status == "available"
        assert result.cut_piece.quantity_milli == 10_000
        stock_outs = db_session.query(LedgerTransaction).filter_by(item_id=fabric.id, kind=STOCK_OUT).all()
        assert [tx.quantity_delta_milli for tx in stock_outs] == [-20_000]

    def test_cut_from_small_roll_changes_nothing(self, engine, db_session):
        engine.create_item(kind=FABRIC, name="Rayon", actor=ACTOR, item_id="FAB-R", quantity=5)
        before = _counts(db_session)

        with pytest.raises(InsufficientStock):
            engine.cut("FAB-R", 2, 1, 10, actor="emp1")

        assert engine.get_item("FAB-R").quantity_milli == 5_000
        assert _counts(db_session) == before

    def test_cut_to_exactly_empty(self, engine, fabric):
        result = engine.cut(fabric.id, 2, 5, 10, actor=ACTOR)
        assert result.fabric.quantity_milli == 0
        assert result.fabric.status == "out_of_stock"

    def test_insufficient_fabric(self, engine, fabric, db_session):
        before = _counts(db_session)

        with pytest.raises(InsufficientStock):
            engine.cut(fabric.id, 2, 5, 11, actor=ACTOR)

        assert engine.get_item(fabric.id).quantity_milli == 100_000
        assert _counts(db_session) == before

    def test_cut_piece_creation_failure_restores_fabric(self, engine, fabric, cut_pieces, db_session):
        before = _counts(db_session)
        fabric_before = engine.get_item(fabric.id).quantity_milli

        # The cut-piece id is already taken, so creating the batch fails after
        # the fabric has been consumed inside the unit of work
        with pytest.raises(DuplicateId):
            engine.cut(fabric.id, 1, 1, 5, actor=ACTOR, cut_piece_id=cut_pieces.id)

        assert engine.get_item(fabric.id).quantity_milli == fabric_before
        assert engine.get_item(cut_pieces.id).quantity_milli == 20_000
        assert _counts(db_session) == before

    def test_record_failure_restores_fabric(self, engine, fabric, db_session, monkeypatch):
        before = _counts(db_session)
        real_post = engine.post
        calls = {"n": 0}

        def fail_on_piece_stock_in(item_id, kind, delta_milli, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("lost connection")
            return real_post(item_id, kind, delta_milli, **kwargs)

        monkeypatch.setattr(engine, "post", fail_on_piece_stock_in)

        with pytest.raises(RuntimeError):
            engine.cut(fabric.id, 1, 1, 5, actor=ACTOR)

        monkeypatch.undo()
        assert engine.get_item(fabric.id).quantity_milli == 100_000
        assert _counts(db_session) == before

    def test_only_fabric_can_be_cut(self, engine, cut_pieces):
        with pytest.raises(ValidationError, match="not fabric"):
            engine.cut(cut_pieces.id, 0.1, 0.1, 1, actor=ACTOR)

    def test_unknown_fabric(self, engine):
        with pytest.raises(NotFound):
            engine.cut("FAB-404", 1, 1, 1, actor=ACTOR)

    @pytest.mark.parametrize(
        "length,width,count",
        [(0, 1, 1), (1, -1, 1), (1, 1, 0), (1, 1, 2.5), (1, 1, True), ("x", 1, 1)],
    )
    def test_invalid_dimensions(self, engine, fabric, db_session, length, width, count):
        before = _counts(db_session)
        with pytest.raises(ValidationError):
            engine.cut(fabric.id, length, width, count, actor=ACTOR)
        assert _counts(db_session) == before

    def test_idempotent_cut(self, engine, fabric, db_session):
        first = engine.cut(fabric.id, 1, 1, 4, actor=ACTOR, idempotency_key="cut-1")
        second = engine.cut(fabric.id, 1, 1, 4, actor=ACTOR, idempotency_key="cut-1")

        assert second.replayed
        assert second.cut_piece.id == first.cut_piece.id
        assert second.cutting_record.id == first.cutting_record.id
        assert engine.get_item(fabric.id).quantity_milli == 96_000
        assert db_session.query(CuttingRecord).count() == 1

    def test_cut_key_committed_by_concurrent_request_replays(self, engine, fabric, db_session, monkeypatch):
        first = engine.cut(fabric.id, 1, 1, 4, actor=ACTOR, idempotency_key="cut-race")

        # The first lookup misses, as when the other request commits right
        # after this one checked for the key
        real_find = engine.log.find_by_idempotency_key
        lookups = {"n": 0}

        def late_commit(key):
            lookups["n"] += 1
            if lookups["n"] == 1:
                return None
            return real_find(key)

        monkeypatch.setattr(engine.log, "find_by_idempotency_key", late_commit)

        second = engine.cut(fabric.id, 1, 1, 4, actor=ACTOR, idempotency_key="cut-race")

        assert second.replayed
        assert second.cutting_record.id == first.cutting_record.id
        assert second.cut_piece.id == first.cut_piece.id
        assert engine.get_item(fabric.id).quantity_milli == 96_000
        assert db_session.query(CuttingRecord).count() == 1
        assert db_session.query(StockItem).filter_by(kind=CUT_PIECE).count() == 1

    def test_cut_history_verifies(self, engine, fabric, cut_pieces):
        assert engine.verify_item(fabric.id)["ok"]
        assert engine.verify_item(cut_pieces.id)["ok"]
