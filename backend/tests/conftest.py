"""
Pytest fixtures for SalesDesk backend tests.

Provides test database setup, seeded stock entries and test client.
"""

from datetime import datetime

import pytest

from salesdesk import create_app
from salesdesk.extensions import db
from salesdesk.services import inventory_service
from salesdesk.services.sales_service import SaleItemInput


SALE_DATE = datetime(2026, 1, 15, 10, 30)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALES_MAX_INSTALLMENTS': 36,
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
def sku_a(db_session):
    """SKU-A: 10 on hand, sells at 10.00 with 18% VAT."""
    return inventory_service.register_product(
        stock_code="SKU-A",
        name="Product A",
        sale_price_cents=1000,
        vat_rate_bps=1800,
        opening_quantity=10,
        session=db_session,
    )


@pytest.fixture(scope='function')
def sku_b(db_session):
    """SKU-B: 5 on hand, sells at 5.00 with 18% VAT."""
    return inventory_service.register_product(
        stock_code="SKU-B",
        name="Product B",
        sale_price_cents=500,
        vat_rate_bps=1800,
        opening_quantity=5,
        session=db_session,
    )


@pytest.fixture(scope='function')
def scarce(db_session):
    """SKU-SCARCE: only 2 on hand."""
    return inventory_service.register_product(
        stock_code="SKU-SCARCE",
        name="Scarce Product",
        sale_price_cents=2500,
        opening_quantity=2,
        session=db_session,
    )


def item(stock_code: str, quantity: int, unit_price_cents: int, tax_rate_bps: int = 0,
         discount_rate_bps: int = 0) -> SaleItemInput:
    """Helper to build a sale line."""
    return SaleItemInput(
        stock_code=stock_code,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        tax_rate_bps=tax_rate_bps,
        discount_rate_bps=discount_rate_bps,
    )


def on_hand(stock_code: str) -> int:
    """Fresh on-hand read, bypassing anything cached in the session."""
    db.session.expire_all()
    return inventory_service.get_quantity_on_hand(stock_code)
