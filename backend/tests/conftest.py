"""
Pytest fixtures for FinanceHub backend tests.

Provides test database setup, demo representatives, voucher factory and
role-selection login helpers.
"""

from decimal import Decimal

import pytest
from financehub import create_app
from financehub.extensions import db
from financehub.models import Representative, Voucher
from financehub.models.vouchers import STATUS_PENDING
from financehub.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GEMINI_API_KEY': None,
        'MANAGER_NAME': 'Test Manager',
        'FEED_HEARTBEAT_SECONDS': 0.05,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def reps(db_session):
    """Three representatives with zero balances."""
    rows = [
        Representative(id="rep1", name="Ahmed Mohammed"),
        Representative(id="rep2", name="Sara Khaled"),
        Representative(id="rep3", name="Mahmoud Ali"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {rep.id: rep for rep in rows}


@pytest.fixture(scope='function')
def make_voucher(db_session):
    """Insert a voucher directly into the log (bypasses the workflow)."""
    counter = {"n": 0}

    def _make(representative_id, voucher_type, amount, status=STATUS_PENDING, voucher_id=None, customer_name="Customer"):
        counter["n"] += 1
        voucher = Voucher(
            id=voucher_id or f"v{counter['n']}",
            type=voucher_type,
            amount=Decimal(str(amount)),
            date=utcnow(),
            representative_id=representative_id,
            representative_name=representative_id,
            customer_name=customer_name,
            description="",
            status=status,
        )
        db_session.add(voucher)
        db_session.commit()
        return voucher

    return _make


def login(client, role: str, representative_id: str | None = None) -> str:
    """Helper to get a session token for a role."""
    body = {"role": role}
    if representative_id:
        body["representative_id"] = representative_id
    response = client.post('/api/auth/login', json=body)
    assert response.status_code == 200, response.json
    return response.json["token"]


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def manager_headers(client, reps):
    return auth_headers(login(client, "FINANCIAL_MANAGER"))


@pytest.fixture(scope='function')
def rep1_headers(client, reps):
    return auth_headers(login(client, "SALES_REP", "rep1"))


@pytest.fixture(scope='function')
def rep2_headers(client, reps):
    return auth_headers(login(client, "SALES_REP", "rep2"))
