"""
Concurrency tests against a file-backed SQLite database.

Many threads race to consume the same item. Whatever the interleaving:
- the item is never oversold
- the final quantity equals the opening quantity minus what succeeded
- the log holds exactly one stock_out per successful request
"""

import threading

import pytest

from garment_ledger import create_app
from garment_ledger.errors import InsufficientStock, TransientFailure
from garment_ledger.extensions import db
from garment_ledger.models import LedgerTransaction
from garment_ledger.models.stock import FABRIC, STOCK_OUT
from garment_ledger.services.stock_engine import get_stock_engine

OPENING = 20
THREADS = 8
REQUESTS_PER_THREAD = 5


@pytest.fixture
def file_app(tmp_path):
    db_file = tmp_path / "race.sqlite3"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        "LEDGER_RETRY_ATTEMPTS": 10,
        "LEDGER_RETRY_BACKOFF_SECONDS": 0.01,
    })
    with app.app_context():
        db.create_all()
        get_stock_engine().create_item(
            kind=FABRIC,
            name="Contested Denim",
            actor="setup",
            item_id="FAB-RACE",
            quantity=OPENING,
        )
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _race(app, work):
    outcomes = []
    lock = threading.Lock()
    start = threading.Barrier(THREADS)

    def worker(n):
        start.wait()
        for i in range(REQUESTS_PER_THREAD):
            with app.app_context():
                try:
                    work(get_stock_engine(), n, i)
                    outcome = "ok"
                except InsufficientStock:
                    outcome = "insufficient"
                except TransientFailure:
                    outcome = "transient"
                except Exception as exc:  # surfaced to the assertion below
                    outcome = repr(exc)
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(THREADS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)
    return outcomes


def _state(app):
    with app.app_context():
        quantity = get_stock_engine().get_item("FAB-RACE").quantity_milli
        stock_outs = (
            db.session.query(LedgerTransaction)
            .filter_by(item_id="FAB-RACE", kind=STOCK_OUT)
            .count()
        )
        report = get_stock_engine().verify_item("FAB-RACE")
    return quantity, stock_outs, report


def test_concurrent_consume_never_oversells(file_app):
    outcomes = _race(file_app, lambda engine, n, i: engine.consume("FAB-RACE", 1, actor=f"worker-{n}"))

    assert len(outcomes) == THREADS * REQUESTS_PER_THREAD
    assert set(outcomes) <= {"ok", "insufficient", "transient"}

    successes = outcomes.count("ok")
    assert successes <= OPENING

    quantity, stock_outs, report = _state(file_app)
    assert quantity == (OPENING - successes) * 1000
    assert stock_outs == successes
    assert report["ok"], report["problems"]


def test_concurrent_retries_with_one_key_apply_once(file_app):
    outcomes = _race(
        file_app,
        lambda engine, n, i: engine.consume("FAB-RACE", 3, actor="scanner", idempotency_key="scan-001"),
    )

    assert set(outcomes) <= {"ok", "transient"}
    assert "ok" in outcomes

    quantity, stock_outs, _ = _state(file_app)
    assert stock_outs == 1
    assert quantity == (OPENING - 3) * 1000


def test_halted_engine_is_shared_across_threads(file_app):
    with file_app.app_context():
        engine = get_stock_engine()
        engine.halted = True
        engine.halt_reason = "manual halt for test"

    outcomes = _race(file_app, lambda engine, n, i: engine.consume("FAB-RACE", 1, actor="w"))

    assert all("InvariantViolation" in outcome for outcome in outcomes)
    quantity, stock_outs, _ = _state(file_app)
    assert quantity == OPENING * 1000
    assert stock_outs == 0
