"""
Pytest fixtures for harvest billing tests.

Provides an in-memory database, a fresh schema per test, and small
factories for customers, products, orders and ledger entries.
"""

import pytest

from harvest import create_app
from harvest.extensions import db
from harvest.models import Customer, Product, Order, OrderItem, Credit, CreditType


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'YOCO_SECRET_KEY': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def customer(db_session):
    """Default customer."""
    c = Customer(name="Thandi Mokoena", email="thandi@example.com", phone="+27820000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def other_customer(db_session):
    c = Customer(name="Pieter van Wyk", email="pieter@example.com")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def spinach(db_session):
    p = Product(name="Baby Spinach", unit="bunch", price_cents=2550)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def sourdough(db_session):
    p = Product(name="Sourdough Loaf", unit="loaf", price_cents=4900)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Factory: make_order(customer, [(product, quantity, price_cents), ...]).

    price_cents is the order-time snapshot; it may differ from the
    product's current catalog price.
    """
    def _make(customer, lines, delivery_fee_cents=0):
        order = Order(customer_id=customer.id, status="delivered", delivery_fee_cents=delivery_fee_cents)
        db_session.add(order)
        db_session.flush()
        for product, quantity, price_cents in lines:
            db_session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=quantity,
                price_at_order_cents=price_cents,
            ))
        db_session.commit()
        return order

    return _make


@pytest.fixture(scope='function')
def hundred_rand_order(make_order, customer, spinach, sourdough):
    """R100.00 order: 2 x spinach @ R25.50 + 1 x sourdough @ R49.00."""
    return make_order(customer, [(spinach, 2, 2550), (sourdough, 1, 4900)])


@pytest.fixture(scope='function')
def give_credit(db_session):
    """Factory: seed a ledger entry directly."""
    def _give(customer, amount_cents, credit_type=CreditType.OVERPAYMENT, reason="Seeded credit"):
        credit = Credit(
            customer_id=customer.id,
            amount_cents=amount_cents,
            reason=reason,
            type=credit_type,
        )
        db_session.add(credit)
        db_session.commit()
        return credit

    return _give
