import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from src.domain.exceptions import BusNotFoundError, InvalidRequestError
from src.infrastructure.db.models import Bus, Seat
from src.infrastructure.repositories.bus_repository import BusRepository


logger = logging.getLogger(__name__)


@dataclass
class SeatGeneration:
    bus: Bus
    added: int
    removed: int


class BusService:
    """Bus lookup, route search and seat provisioning."""

    def __init__(self, db: Session):
        self.db = db
        self.bus_repository = BusRepository(db)

    def get_bus(self, bus_id: int) -> Bus:
        bus = self.bus_repository.get_by_id(bus_id)
        if bus is None:
            raise BusNotFoundError(bus_id)
        return bus

    def search(self, source: str, destination: str, departure_date: date) -> list[Bus]:
        if not source or not source.strip() or not destination or not destination.strip():
            raise InvalidRequestError("source and destination are required")
        return self.bus_repository.search(source, destination, departure_date)

    def generate_seats(self, bus_id: int, total_seats: int | None = None) -> SeatGeneration:
        """
        Brings the seat map of a bus to `total_seats` (default: the
        bus's own count).

        Missing seats are appended as the lowest free S<n> labels at
        the bus base price.
        Surplus seats are dropped from the end of the map, skipping
        any that are booked or appear in a booking. Shrinking below
        the number of booked seats is refused.
        """
        try:
            bus = self.bus_repository.get_for_update(bus_id)
            if bus is None:
                raise BusNotFoundError(bus_id)

            target = bus.total_seats if total_seats is None else total_seats
            if target < 0:
                raise InvalidRequestError("totalSeats must be zero or positive")

            existing = list(bus.seats)
            added = removed = 0

            if target > len(existing):
                taken = {seat.seat_number for seat in existing}
                new_seats = []
                number = 0
                while len(existing) + len(new_seats) < target:
                    number += 1
                    if f"S{number}" in taken:
                        continue
                    new_seats.append(Seat(seat_number=f"S{number}", price=bus.price, booked=False))
                self.bus_repository.add_seats(bus, new_seats)
                added = len(new_seats)
            elif target < len(existing):
                booked_count = sum(1 for seat in existing if seat.booked)
                if target < booked_count:
                    raise InvalidRequestError(
                        f"Cannot reduce total seats below booked count ({booked_count})"
                    )
                surplus = existing[target:]
                referenced = self.bus_repository.seats_with_history([seat.id for seat in surplus])
                removable = [
                    seat for seat in surplus
                    if not seat.booked and seat.id not in referenced
                ]
                self.bus_repository.remove_seats(bus, removable)
                removed = len(removable)

            bus.total_seats = target
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Seats generated for bus_id=%s: total=%s added=%s removed=%s",
            bus_id,
            target,
            added,
            removed,
        )
        return SeatGeneration(bus=self.get_bus(bus_id), added=added, removed=removed)
