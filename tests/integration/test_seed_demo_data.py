from datetime import timedelta

from sqlalchemy import func, select

from scripts.seed_demo_data import seed_buses, seed_users
from src.infrastructure.db.models import Bus, Seat, User


def _count(db_session, model) -> int:
    return db_session.execute(select(func.count()).select_from(model)).scalar_one()


def test_seeding_twice_adds_nothing_new(db_session):
    for _ in range(2):
        seed_users(db_session)
        seed_buses(db_session)
        db_session.commit()

    assert _count(db_session, User) == 2
    assert _count(db_session, Bus) == 2
    assert _count(db_session, Seat) == 70

    bus = db_session.execute(select(Bus).where(Bus.bus_name == "Kaveri Express")).scalar_one()
    assert {seat.price for seat in bus.seats} == {bus.price}
    assert not any(seat.booked for seat in bus.seats)


def test_reseeding_on_a_later_day_adds_no_buses(db_session):
    seed_buses(db_session)
    db_session.commit()

    # same effect as running the seed again tomorrow
    for bus in db_session.execute(select(Bus)).scalars():
        bus.departure_date -= timedelta(days=1)
    db_session.commit()

    seed_buses(db_session)
    db_session.commit()

    assert _count(db_session, Bus) == 2
    assert _count(db_session, Seat) == 70
