from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from visitgate.api.deps import get_clock, get_window_policy
from visitgate.db.base import Base
from visitgate.db.models import VisitRequest, VisitStatus
from visitgate.db.session import get_db
from visitgate.main import fastapi_app
from visitgate.services.qr_validation_service import WindowPolicy
from visitgate.services.visit_store import VisitRequestStore

SLOT_START = datetime(2025, 1, 10, 10, 0)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return VisitRequestStore(db)


@pytest.fixture
def policy():
    return WindowPolicy()


@pytest.fixture
def clock():
    return FrozenClock(SLOT_START.replace(minute=5))


@pytest.fixture
def make_visit(db):
    def _make(**overrides) -> VisitRequest:
        values = {
            "id": "V100",
            "client_name": "Ana Cruz",
            "inmate_name": "Jose Reyes",
            "visit_date": "2025-01-10",
            "visit_time": "10:00",
            "status": VisitStatus.approved,
            "qr_used": False,
            "qr_invalidated": False,
        }
        values.update(overrides)
        row = VisitRequest(**values)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def client(session_factory, clock, policy):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_clock] = lambda: clock
    fastapi_app.dependency_overrides[get_window_policy] = lambda: policy
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
