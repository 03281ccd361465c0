# src/infrastructure/repositories/bus_repository.py

from datetime import date

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select

from src.infrastructure.db.models import BookingSeat, Bus, Seat


class BusRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, bus_id: int) -> Bus | None:
        return self.db.get(Bus, bus_id)

    def get_for_update(self, bus_id: int) -> Bus | None:
        stmt = (
            select(Bus)
            .where(Bus.id == bus_id)
            .with_for_update(of=Bus)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def search(
        self,
        source: str,
        destination: str,
        departure_date: date,
    ) -> list[Bus]:
        """Route search; city names compare case-insensitively, the date exactly."""
        stmt = (
            select(Bus)
            .options(selectinload(Bus.seats))
            .where(func.upper(Bus.source) == source.strip().upper())
            .where(func.upper(Bus.destination) == destination.strip().upper())
            .where(Bus.departure_date == departure_date)
            .order_by(Bus.departure_time, Bus.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def seats_with_history(self, seat_ids: list[int]) -> set[int]:
        # Seats referenced by any booking, past or present, cannot be deleted.
        if not seat_ids:
            return set()
        stmt = select(BookingSeat.seat_id).where(BookingSeat.seat_id.in_(seat_ids)).distinct()
        return set(self.db.execute(stmt).scalars().all())

    def add_seats(self, bus: Bus, seats: list[Seat]) -> None:
        bus.seats.extend(seats)
        self.db.flush()

    def remove_seats(self, bus: Bus, seats: list[Seat]) -> None:
        for seat in seats:
            bus.seats.remove(seat)
        self.db.flush()
