"""
Two transactions racing for overlapping seats against a real PostgreSQL.

SQLite ignores FOR UPDATE, so this only runs when TEST_POSTGRES_URL
points at a disposable database.
"""

import os
import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from src.application.booking_service import BookingService
from src.domain.exceptions import SeatAlreadyBookedError
from src.infrastructure.db.models import Base, Booking, Bus, Seat, User
from src.infrastructure.notifications.email_notifier import LoggingEmailNotifier


POSTGRES_URL = os.getenv("TEST_POSTGRES_URL")

pytestmark = pytest.mark.skipif(
    not POSTGRES_URL,
    reason="TEST_POSTGRES_URL not set",
)


@pytest.fixture
def pg_sessionmaker():
    pg_engine = create_engine(POSTGRES_URL, pool_pre_ping=True)
    Base.metadata.drop_all(bind=pg_engine)
    Base.metadata.create_all(bind=pg_engine)
    try:
        yield sessionmaker(bind=pg_engine, autoflush=False, autocommit=False)
    finally:
        Base.metadata.drop_all(bind=pg_engine)
        pg_engine.dispose()


def _seed(make_session):
    with make_session() as session:
        user = User(name="Race Rider", email="race@example.com")
        bus = Bus(
            bus_name="Night Rider",
            source="Pune",
            destination="Goa",
            price=Decimal("100"),
            total_seats=3,
        )
        bus.seats = [Seat(seat_number=f"S{n}", price=Decimal("100")) for n in (1, 2, 3)]
        session.add_all([user, bus])
        session.commit()
        return user.id, [seat.id for seat in bus.seats]


def test_overlapping_bookings_one_wins(pg_sessionmaker):
    user_id, (s1, s2, s3) = _seed(pg_sessionmaker)
    requests = [[s1, s2], [s3, s2]]
    barrier = threading.Barrier(len(requests))
    outcomes = []
    lock = threading.Lock()

    def attempt(seat_ids):
        session = pg_sessionmaker()
        service = BookingService(session, notifier=LoggingEmailNotifier())
        barrier.wait()
        try:
            booking = service.book(user_id, seat_ids, Decimal("200"))
            result = ("ok", booking.id)
        except SeatAlreadyBookedError as exc:
            result = ("conflict", exc.seat_number)
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(ids,)) for ids in requests]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    kinds = sorted(kind for kind, _ in outcomes)
    assert kinds == ["conflict", "ok"]
    assert [value for kind, value in outcomes if kind == "conflict"] == ["S2"]

    with pg_sessionmaker() as session:
        assert len(session.execute(select(Booking)).scalars().all()) == 1
        booked = session.execute(
            select(Seat.id).where(Seat.booked.is_(True)).order_by(Seat.id)
        ).scalars().all()
        assert len(booked) == 2
        assert s2 in booked
