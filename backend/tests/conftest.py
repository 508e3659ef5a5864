"""
Pytest fixtures for the sale ledger tests.

Provides an in-memory app, per-test table truncation, and outlet/product/shift
factories.
"""

from decimal import Decimal

import pytest

from pos_ledger import create_app
from pos_ledger.extensions import db
from pos_ledger.models import Outlet, Product
from pos_ledger.services import inventory_service, shift_service
from pos_ledger.validation import PaymentInput, SaleItemInput


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DISCOUNT_LIMIT_PERCENT': 50.0,
        'PAYMENT_EPSILON': '0.5',
        'DEFAULT_TAX_RATE': '11',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
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
def outlet(db_session):
    outlet = Outlet(code="BSD", name="Cabang BSD", is_active=True)
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def other_outlet(db_session):
    outlet = Outlet(code="PIK", name="Cabang PIK", is_active=True)
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(sku="KOPI-01", name="Kopi Susu", price=Decimal("85000.00"), min_stock=0)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def low_stock_product(db_session):
    product = Product(sku="TEH-01", name="Teh Tarik", price=Decimal("20000.00"), min_stock=5)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cashier_id():
    return 7


@pytest.fixture(scope='function')
def shift(db_session, outlet, cashier_id):
    return shift_service.open_shift(db_session, outlet.id, cashier_id, Decimal("100000"))


def stock(session, product, outlet, quantity: int, movement_type: str = "INITIAL"):
    """Post opening stock for a product at an outlet."""
    return inventory_service.record_stock_adjustment(
        session,
        product_id=product.id,
        outlet_id=outlet.id,
        delta=quantity,
        movement_type=movement_type,
        note="test stock",
    )


def item(product, quantity=1, unit_price=None, discount=0, taxable=True):
    return SaleItemInput(
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price if unit_price is not None else product.price,
        discount=discount,
        taxable=taxable,
    )


def cash(amount):
    return PaymentInput(method="CASH", amount=amount)


def actor_headers(user_id: int = 7) -> dict:
    """Helper to create gateway identity headers."""
    return {'X-User-Id': str(user_id)}
