"""
Pytest fixtures for garment ledger backend tests.

Provides test database setup, a stock engine per test, and test client.
"""

import pytest
from garment_ledger import create_app
from garment_ledger.extensions import db
from garment_ledger.models import Employee
from garment_ledger.models.stock import FABRIC
from garment_ledger.models.workforce import ROLE_TAILOR
from garment_ledger.services.stock_engine import StockEngine

ACTOR = "tester"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF_SECONDS': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        # The app's engine outlives tests; never carry a halt across them
        app_engine = app.extensions["stock_engine"]
        app_engine.halted = False
        app_engine.halt_reason = None

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def engine(app, db_session):
    """The stock engine wired into the app."""
    return app.extensions["stock_engine"]


@pytest.fixture(scope='function')
def make_engine(db_session):
    """Build a standalone engine, e.g. with a fixed clock."""
    def _make(**kwargs):
        kwargs.setdefault("retry_backoff", 0.0)
        kwargs.setdefault("default_min_threshold_milli", 20_000)
        return StockEngine(db_session, **kwargs)
    return _make


@pytest.fixture(scope='function')
def fabric(engine):
    """100 square meters of fabric, low-stock threshold 20."""
    return engine.create_item(
        kind=FABRIC,
        name="Cotton Twill",
        actor=ACTOR,
        item_id="FAB-TEST",
        quantity=100,
        min_threshold=20,
        color="Navy",
        material="Cotton",
    ).item


@pytest.fixture(scope='function')
def cut_pieces(engine, fabric):
    """20 cut pieces (1.0 x 0.5 each) cut from the test fabric."""
    return engine.cut(fabric.id, 1, 0.5, 20, actor=ACTOR, cut_piece_id="CUT-TEST").cut_piece


@pytest.fixture(scope='function')
def tailor(db_session):
    employee = Employee(employee_code="EMP-9001", name="Asha", role=ROLE_TAILOR, is_active=True)
    db_session.add(employee)
    db_session.commit()
    return employee


def actor_headers(actor: str = ACTOR) -> dict:
    """Helper to create X-Actor headers."""
    return {'X-Actor': actor}
