"""
Pytest fixtures for Maleta Hub backend tests.

Provides the in-memory application, a clean database per test, and catalog /
representative fixtures.
"""

import pytest
from hub import create_app
from hub.extensions import db
from hub.models import Product, Representative


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GEMINI_API_KEY': 'test-key',
        'WHATSAPP_TOKEN': None,
        'WHATSAPP_PHONE_NUMBER_ID': None,
        'ALLOW_NEGATIVE_STOCK': False,
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
        # Clear all data but keep schema (core deletes skip the ledger hooks)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.extensions.pop('recognition_client', None)
        app.extensions.pop('whatsapp_transport', None)


@pytest.fixture(scope='function')
def rep_maria(db_session):
    """Active representative with a phone number."""
    rep = Representative(name="Maria Souza", phone="(11) 98888-7777", city="São Paulo")
    db_session.add(rep)
    db_session.commit()
    return rep


@pytest.fixture(scope='function')
def rep_ana(db_session):
    """Second active representative."""
    rep = Representative(name="Ana Lima", phone="21 97777-6666", city="Rio de Janeiro")
    db_session.add(rep)
    db_session.commit()
    return rep


@pytest.fixture(scope='function')
def product_a(db_session):
    """Earring priced R$ 100,00 with 10 pieces at the base."""
    product = Product(name="Brinco Gota", sku="BR-01", category="Brincos", price_cents=10000, stock=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    """Ring priced R$ 50,00 with 5 pieces at the base."""
    product = Product(name="Anel Solitário", sku="AN-01", category="Anéis", price_cents=5000, stock=5)
    db_session.add(product)
    db_session.commit()
    return product
