"""Shared fixtures: in-memory database, frozen clock, recording notifier."""
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rental_escrow.api.deps import get_clock, get_notifier
from rental_escrow.db.base import Base
from rental_escrow.db.session import get_db
from rental_escrow.main import app
from rental_escrow.models import booking, escrow, ledger, notification, wallet  # noqa: F401
from rental_escrow.models.booking import Booking

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
GUEST = "guest@example.com"
HOST = "host@example.com"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, event, recipient, payload):
        self.sent.append((event, recipient, payload))

    def events(self):
        return [event for event, _, _ in self.sent]


class FailingNotifier:
    def notify(self, event, recipient, payload):
        raise ConnectionError("notification service down")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def run(db):
    """Run ``fn(db, ...)`` in its own committed transaction."""
    def _run(fn, *args, **kwargs):
        if db.in_transaction():
            db.commit()
        # other sessions (API requests, the sweeper) may have written since
        db.expire_all()
        with db.begin():
            return fn(db, *args, **kwargs)
    return _run


def make_booking(
    booking_id: str = "bk-1",
    amount: int = 100000,
    check_in: date = date(2024, 1, 1),
    guest: str = GUEST,
    host: str = HOST,
) -> Booking:
    return Booking(
        id=booking_id,
        guest_account=guest,
        host_account=host,
        apartment_title="2 bedroom flat, Lekki",
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=3),
        number_of_guests=2,
        total_amount=amount,
    )


@pytest.fixture
def add_booking(run):
    def _add(**kwargs) -> Booking:
        new_booking = make_booking(**kwargs)

        def _insert(db):
            db.add(new_booking)
            db.flush()
            return new_booking
        return run(_insert)
    return _add


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, clock, notifier):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
