"""
Pytest fixtures for turnledger tests.

Provides an in-memory database app, test client, PIN users, an httpx
gateway wired straight into the app, and the client fakes from helpers.py.
"""

import httpx
import pytest

from turnledger import create_app
from turnledger.extensions import db
from turnledger.client.backend import HttpBackend
from turnledger.services.auth_service import create_user

from helpers import ANA_PIN, BEN_PIN, CRON_SECRET, FakeBackend, FakeClock, auth_headers, login


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CRON_SECRET': CRON_SECRET,
        'BUSINESS_TIMEZONE': 'America/Los_Angeles',
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
    """Fresh database contents for each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def ana(db_session):
    return create_user(name="Ana", pin=ANA_PIN, role="technician")


@pytest.fixture(scope='function')
def ben(db_session):
    return create_user(name="Ben", pin=BEN_PIN, role="manager")


@pytest.fixture(scope='function')
def ana_headers(client, ana):
    return auth_headers(login(client, ANA_PIN))


@pytest.fixture(scope='function')
def ben_headers(client, ben):
    return auth_headers(login(client, BEN_PIN))


@pytest.fixture(scope='function')
def wsgi_transport(app):
    return httpx.WSGITransport(app=app)


@pytest.fixture(scope='function')
def http_backend(wsgi_transport, db_session):
    backend = HttpBackend("http://testserver", transport=wsgi_transport)
    yield backend
    backend.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_backend():
    return FakeBackend()
