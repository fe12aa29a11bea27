"""Pytest configuration and fixtures for Photodesk tests."""

import os
import tempfile
from datetime import datetime, timedelta

# Point the app at a throwaway SQLite database before anything imports it
_TEST_DB_DIR = tempfile.mkdtemp(prefix="photodesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("FIREBASE_PROJECT_ID", "photodesk-test")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from photodesk import models_order  # noqa: E402,F401
from photodesk.auth import get_current_user  # noqa: E402
from photodesk.database import Base, SessionLocal, engine, get_db  # noqa: E402
from photodesk.domain.orders.aggregate import Order, RevisionRounds  # noqa: E402
from photodesk.domain.orders.router import get_order_service  # noqa: E402
from photodesk.domain.orders.service import OrderService  # noqa: E402
from photodesk.main import app  # noqa: E402
from photodesk.models import User  # noqa: E402

NOW = datetime(2026, 3, 2, 9, 30, 0)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    """Fresh schema and session for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def service(db, clock):
    return OrderService(db, clock=clock, auto_approval_window=timedelta(days=3))


@pytest.fixture
def partner_user(db):
    user = User(
        firebase_uid="partner-uid",
        email="studio@example.com",
        full_name="Studio Owner",
        partner_id="partner-1",
        role="partner",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def editor_user(db):
    user = User(
        firebase_uid="editor-uid",
        email="editor@example.com",
        full_name="Photo Editor",
        partner_id=None,
        role="editor",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_order():
    """Build an in-memory order at any status."""

    def _make(status="pending", used=0, max_rounds=2, editor="editor-uid", **kwargs):
        return Order(
            order_id=kwargs.pop("order_id", "order-1"),
            status=status,
            revision_rounds=RevisionRounds(used=used, max=max_rounds),
            assigned_editor=editor,
            **kwargs,
        )

    return _make


@pytest.fixture
def auth_state(partner_user):
    """Holder for the user the API client acts as."""
    return {"user": partner_user}


@pytest.fixture
def client(db, service, auth_state):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_order_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: auth_state["user"]
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
