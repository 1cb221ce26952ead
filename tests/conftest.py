"""pytest configuration: path management and shared fixtures."""
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the bizbook package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bizbook import create_app  # noqa: E402
from bizbook.accounts import UserStore  # noqa: E402
from bizbook.catalog import ServiceCatalog  # noqa: E402
from bizbook.config import TestingConfig  # noqa: E402
from bizbook.extensions import db  # noqa: E402
from bizbook.ledger import BookingLedger  # noqa: E402
from bizbook.schemas import BookingDraft, Registration, ServiceCreate  # noqa: E402

# Wednesday morning; every booking in the store tests is relative to this.
FIXED_NOW = datetime(2030, 1, 15, 9, 0)

OWNER_PAYLOAD = {
    "email": "owner@example.com",
    "password": "secret-pass-1",
    "business_name": "Fade Factory",
    "owner_name": "Sam Rivera",
    "phone": "+15551234567",
}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session


@pytest.fixture
def store(session):
    return UserStore(session, TestingConfig.SECRET_KEY, hash_method=TestingConfig.PASSWORD_HASH_METHOD)


@pytest.fixture
def catalog(session):
    return ServiceCatalog(session)


@pytest.fixture
def ledger(session):
    return BookingLedger(session, now=lambda: FIXED_NOW)


@pytest.fixture
def owner(store):
    return store.register(Registration.from_payload(dict(OWNER_PAYLOAD)))


@pytest.fixture
def other_owner(store):
    payload = dict(OWNER_PAYLOAD, email="other@example.com", business_name="Other Shop")
    return store.register(Registration.from_payload(payload))


@pytest.fixture
def service(catalog, owner):
    return catalog.create(owner.user_id, ServiceCreate(name="Haircut", duration=60, price=500))


def make_draft(service, **overrides) -> BookingDraft:
    values = {
        "business_id": service.business_id,
        "client_name": "Alex Client",
        "client_email": "alex@example.com",
        "client_phone": "+15557654321",
        "service_id": service.service_id,
        "service_name": service.name,
        "date": "2030-01-20",
        "time": "10:00",
        "duration": service.duration_minutes,
        "total_amount": service.price,
        "notes": "",
    }
    values.update(overrides)
    return BookingDraft(**values)


@pytest.fixture
def register_owner(client):
    """Register a business over HTTP and return ``(headers, user)``."""

    def _register(**overrides):
        payload = dict(OWNER_PAYLOAD, **overrides)
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.get_json()
        data = response.get_json()
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return _register
