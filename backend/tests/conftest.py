"""
Pytest fixtures for posengine tests.

Provides an in-memory database, per-test table cleanup, the TST store and
catalog fixtures, and a stub offer resolver.
"""

from decimal import Decimal

import pytest

from posengine import create_app
from posengine.extensions import db
from posengine.models import (
    Currency,
    Customer,
    PaymentMode,
    Product,
    ProductPrice,
    ProductStore,
    ProductStorePrice,
    Store,
    StoreCurrency,
)
from posengine.services import transaction_service
from posengine.services.offer_resolution import OfferResolver, register_offer_resolver

ACTOR = 7


class StubOfferResolver(OfferResolver):
    """Returns a fixed list of offers, filtered to products in the cart."""

    def __init__(self, applications=None):
        self.applications = list(applications or [])
        self.calls = []

    def resolve_applicable_offers(self, lines, *, store_id, currency_id, customer_id):
        self.calls.append({"lines": lines, "store_id": store_id, "customer_id": customer_id})
        in_cart = {line.product_id for line in lines}
        return [
            application
            for application in self.applications
            if application.product_id is None or application.product_id in in_cart
        ]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_BASE': 0,
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
def offers(app):
    """Install a stub offer resolver for one test; restores the default afterwards."""
    resolver = StubOfferResolver()
    register_offer_resolver(app, resolver)
    yield resolver
    register_offer_resolver(app, OfferResolver())


@pytest.fixture(scope='function')
def config(app):
    """Temporarily override app config values."""
    saved = {}

    def _set(**values):
        for key, value in values.items():
            saved.setdefault(key, app.config.get(key))
            app.config[key] = value

    yield _set
    app.config.update(saved)


@pytest.fixture(scope='function')
def currency(db_session):
    cur = Currency(code="USD", name="US Dollar", symbol="$", decimal_places=2, is_active=True)
    db_session.add(cur)
    db_session.commit()
    return cur


@pytest.fixture(scope='function')
def make_store(db_session, currency):
    """Factory: store accepting USD with the given tax settings."""
    def _make(code="TST", tax_percentage="0", tax_inclusive=False):
        store = Store(
            name=f"Store {code}",
            code=code,
            tax_percentage=Decimal(tax_percentage),
            tax_inclusive=tax_inclusive,
            is_active=True,
        )
        db_session.add(store)
        db_session.flush()
        db_session.add(StoreCurrency(store_id=store.id, currency_id=currency.id))
        db_session.commit()
        return store
    return _make


@pytest.fixture(scope='function')
def store(make_store):
    return make_store()


@pytest.fixture(scope='function')
def make_product(db_session, currency):
    """Factory: product with a base price and optional stock at a store."""
    counter = {"n": 0}

    def _make(price="25.00", *, store=None, stock=None, cost=None, name=None):
        counter["n"] += 1
        product = Product(
            product_number=f"P{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            is_active=True,
        )
        db_session.add(product)
        db_session.flush()
        if price is not None:
            db_session.add(ProductPrice(
                product_id=product.id,
                currency_id=currency.id,
                unit_price=Decimal(price),
                cost_price=Decimal(cost) if cost is not None else None,
            ))
        if store is not None and stock is not None:
            db_session.add(ProductStore(product_id=product.id, store_id=store.id, quantity=stock, is_active=True))
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def store_price(db_session, currency):
    """Factory: store override price for a product."""
    def _make(product, store, unit_price, cost_price=None, is_active=True):
        product_store = db_session.query(ProductStore).filter_by(product_id=product.id, store_id=store.id).first()
        if product_store is None:
            product_store = ProductStore(product_id=product.id, store_id=store.id, quantity=0, is_active=True)
            db_session.add(product_store)
            db_session.flush()
        price = ProductStorePrice(
            product_store_id=product_store.id,
            currency_id=currency.id,
            unit_price=Decimal(unit_price) if unit_price is not None else None,
            cost_price=Decimal(cost_price) if cost_price is not None else None,
            is_active=is_active,
        )
        db_session.add(price)
        db_session.commit()
        return price
    return _make


@pytest.fixture(scope='function')
def cash(db_session):
    mode = PaymentMode(name="Cash", is_active=True)
    db_session.add(mode)
    db_session.commit()
    return mode


@pytest.fixture(scope='function')
def customer(db_session):
    cust = Customer(first_name="Dana", last_name="Reyes", discount_percentage=Decimal("10"), is_active=True)
    db_session.add(cust)
    db_session.commit()
    return cust


@pytest.fixture(scope='function')
def new_txn(currency):
    """Factory: open a draft transaction at a store."""
    def _make(store, actor=ACTOR):
        return transaction_service.create_transaction(
            store_id=store.id,
            employee_id=actor,
            currency_id=currency.id,
            actor=actor,
        )
    return _make


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current ProductStore quantity for a product at a store."""
    def _get(product, store):
        db_session.expire_all()
        row = db_session.query(ProductStore).filter_by(product_id=product.id, store_id=store.id).first()
        return row.quantity if row else 0
    return _get
