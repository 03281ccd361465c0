from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from src.infrastructure.db.models import Base, Bus, Seat, User
from src.infrastructure.db.session import engine, get_db_session


def _departure(days_from_now: int) -> date:
    return date.today() + timedelta(days=days_from_now)


def seed_users(db) -> None:
    users = [
        {"name": "Asha Menon", "email": "asha@example.com", "phone_number": "9876500001"},
        {"name": "Ravi Kumar", "email": "ravi@example.com", "phone_number": "9876500002"},
    ]

    for item in users:
        existing = db.execute(
            select(User).where(User.email == item["email"])
        ).scalar_one_or_none()
        if existing:
            existing.name = item["name"]
            existing.phone_number = item["phone_number"]
            continue
        db.add(User(**item))


def seed_buses(db) -> None:
    bus_defs = [
        {
            "bus_name": "Kaveri Express",
            "bus_type": "AC Sleeper",
            "source": "Bengaluru",
            "destination": "Chennai",
            "departure_time": "21:30",
            "arrival_time": "05:45",
            "departure_date": _departure(3),
            "price": Decimal("950.00"),
            "seat_count": 30,
        },
        {
            "bus_name": "Deccan Rider",
            "bus_type": "Non-AC Seater",
            "source": "Hyderabad",
            "destination": "Pune",
            "departure_time": "07:15",
            "arrival_time": "18:00",
            "departure_date": _departure(5),
            "price": Decimal("640.00"),
            "seat_count": 40,
        },
    ]

    for item in bus_defs:
        seat_count = item.pop("seat_count")
        existing = db.execute(
            select(Bus).where(Bus.bus_name == item["bus_name"])
        ).scalar_one_or_none()
        if existing:
            continue

        bus = Bus(total_seats=seat_count, status="active", **item)
        # Seat price defaults to the bus base price at provisioning time.
        bus.seats = [
            Seat(seat_number=f"S{number}", price=item["price"], booked=False)
            for number in range(1, seat_count + 1)
        ]
        db.add(bus)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        seed_users(db)
        seed_buses(db)
    print("Seed complete: demo users and two buses with seats added.")


if __name__ == "__main__":
    main()
