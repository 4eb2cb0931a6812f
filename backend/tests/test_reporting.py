# Overview: Pytest coverage for reporting: summaries, range queries, pagination.

from datetime import datetime, timedelta

import pytest

from garment_ledger.errors import NotFound, ValidationError
from garment_ledger.models.stock import FABRIC, MANUFACTURED_UNIT
from garment_ledger.services.reporting_service import ReportingService

from conftest import ACTOR


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 1, 8, 0, 0))


@pytest.fixture
def timed_engine(make_engine, clock):
    return make_engine(clock=clock)


@pytest.fixture
def reports(db_session, clock):
    return ReportingService(db_session, clock=clock, default_page_size=10, max_page_size=50)


def _ids(page):
    return [tx["id"] for tx in page["transactions"]]


class TestRangeQuery:

    @pytest.fixture
    def history(self, timed_engine, clock):
        timed_engine.create_item(kind=FABRIC, name="Linen", actor=ACTOR, item_id="FAB-L")
        for _ in range(25):
            clock.advance(minutes=1)
            timed_engine.replenish("FAB-L", 1, actor=ACTOR)
        return "FAB-L"

    def test_pages_cover_everything_once(self, reports, history):
        pages = [reports.range_query(page=n) for n in (1, 2, 3)]

        assert [len(p["transactions"]) for p in pages] == [10, 10, 5]
        seen = _ids(pages[0]) + _ids(pages[1]) + _ids(pages[2])
        assert len(seen) == len(set(seen)) == 25
        assert seen == sorted(seen, reverse=True)

        first = pages[0]["pagination"]
        assert first == {
            "page": 1,
            "page_size": 10,
            "total": 25,
            "total_pages": 3,
            "has_next": True,
            "has_prev": False,
        }
        assert pages[2]["pagination"]["has_next"] is False

    def test_page_past_the_end_is_empty(self, reports, history):
        page = reports.range_query(page=4)
        assert page["transactions"] == []
        assert page["pagination"]["total"] == 25

    def test_equal_timestamps_still_page_deterministically(self, timed_engine, reports):
        timed_engine.create_item(kind=FABRIC, name="Silk", actor=ACTOR, item_id="FAB-S")
        for _ in range(12):
            timed_engine.replenish("FAB-S", 1, actor=ACTOR)

        first = _ids(reports.range_query(page=1, page_size=5))
        second = _ids(reports.range_query(page=2, page_size=5))
        third = _ids(reports.range_query(page=3, page_size=5))

        combined = first + second + third
        assert len(set(combined)) == 12
        assert combined == sorted(combined, reverse=True)

    def test_time_window(self, reports, history):
        page = reports.range_query(start="2026-10-01T08:05:00Z", end="2026-10-01T08:10:00Z")
        assert page["pagination"]["total"] == 6

        assert reports.range_query(start="2026-10-02")["pagination"]["total"] == 0

    def test_filters(self, timed_engine, reports, history):
        timed_engine.consume(history, 3, actor="cutter-1")

        assert reports.range_query(kind="stock_out")["pagination"]["total"] == 1
        assert reports.range_query(actor="cutter-1")["pagination"]["total"] == 1
        assert reports.range_query(item_id=history)["pagination"]["total"] == 26
        assert reports.range_query(item_kind=MANUFACTURED_UNIT)["pagination"]["total"] == 0

    def test_page_size_is_capped(self, reports, history):
        assert reports.range_query(page_size=1000)["pagination"]["page_size"] == 50

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"kind": "theft"},
            {"item_kind": "button"},
            {"page": 0},
            {"page_size": 0},
            {"start": "yesterday"},
            {"start": "2026-10-02", "end": "2026-10-01"},
        ],
    )
    def test_invalid_arguments(self, reports, kwargs):
        with pytest.raises(ValidationError):
            reports.range_query(**kwargs)


class TestSummaries:

    def test_summary_by_type(self, engine, fabric, cut_pieces, db_session):
        engine.create_item(kind=MANUFACTURED_UNIT, name="Shirt", actor=ACTOR, quantity=3, min_threshold=5)
        engine.consume(fabric.id, 75, actor=ACTOR)

        summary = ReportingService(db_session).summary_by_type()

        assert summary["items"]["fabric"] == {
            "item_count": 1,
            "total_quantity": 15,
            "by_status": {"available": 0, "low_stock": 1, "out_of_stock": 0},
        }
        assert summary["items"]["cut_piece"]["total_quantity"] == 20
        assert summary["items"]["manufactured_unit"]["by_status"]["low_stock"] == 1

        # fabric opening, cut out, pieces in, shirt opening, consume
        assert summary["total_transactions"] == 5
        assert summary["transactions"]["stock_out"] == {"count": 2, "total_delta": -85}
        assert summary["transactions"]["adjustment"] == {"count": 0, "total_delta": 0}
        assert summary["recent_transactions"] == 5

    def test_recent_window(self, timed_engine, reports, clock):
        timed_engine.create_item(kind=FABRIC, name="Wool", actor=ACTOR, quantity=10)
        clock.advance(days=8)
        timed_engine.create_item(kind=FABRIC, name="Felt", actor=ACTOR, quantity=10)

        summary = reports.summary_by_type()
        assert summary["total_transactions"] == 2
        assert summary["recent_transactions"] == 1

    def test_summary_by_actor(self, timed_engine, reports, clock):
        item = timed_engine.create_item(kind=FABRIC, name="Wool", actor="intake", quantity=50).item
        clock.advance(hours=1)
        timed_engine.consume(item.id, 5, actor="cutter-1")
        clock.advance(hours=1)
        timed_engine.consume(item.id, 5, actor="cutter-1")

        summary = reports.summary_by_actor("cutter-1")
        assert summary["total_transactions"] == 2
        assert summary["by_kind"]["stock_out"] == {"count": 2, "total_delta": -10}
        assert summary["items_touched"] == 1
        assert summary["first_activity"] == "2026-10-01T09:00:00.000000Z"
        assert summary["last_activity"] == "2026-10-01T10:00:00.000000Z"

    def test_summary_for_unknown_actor(self, reports):
        with pytest.raises(NotFound):
            reports.summary_by_actor("nobody")

    def test_low_stock_items(self, engine, fabric, cut_pieces, db_session):
        engine.consume(cut_pieces.id, 20, actor=ACTOR)
        engine.consume(fabric.id, 80, actor=ACTOR)

        low = ReportingService(db_session).low_stock_items()
        assert [item.id for item in low] == [cut_pieces.id, fabric.id]

        assert ReportingService(db_session).low_stock_items(kind=FABRIC) == [engine.get_item(fabric.id)]
