# src/infrastructure/repositories/seat_repository.py

import logging
from typing import Iterable, Sequence

from sqlalchemy.orm import Session
from sqlalchemy import Select, select

from src.infrastructure.db.models import Bus, Seat
from src.domain.exceptions import BusNotFoundError, SeatsNotFoundError


logger = logging.getLogger(__name__)


def seat_lock_statement(seat_ids: Sequence[int]) -> Select:
    return (
        select(Seat)
        .where(Seat.id.in_(seat_ids))
        .order_by(Seat.id)
        .with_for_update(of=Seat)
        .execution_options(populate_existing=True)
    )


class SeatRepository:

    def __init__(self, db: Session):
        self.db = db

    def lock_seats_for_update(self, seat_ids: Sequence[int]) -> list[Seat]:
        """
        SELECT ... FOR UPDATE over the whole seat set in one statement.

        Rows are locked in ascending id order so two transactions with
        overlapping seat sets always acquire locks in the same order.
        The result follows the caller's order.
        """
        requested = list(dict.fromkeys(seat_ids))

        seats = list(self.db.execute(seat_lock_statement(requested)).scalars().all())

        by_id = {seat.id: seat for seat in seats}
        missing = [seat_id for seat_id in requested if seat_id not in by_id]
        if missing:
            raise SeatsNotFoundError(missing)

        return [by_id[seat_id] for seat_id in requested]

    def get_by_id(self, seat_id: int) -> Seat | None:
        return self.db.get(Seat, seat_id)

    def list_by_bus(
        self,
        bus_id: int,
        available_only: bool = False,
    ) -> list[Seat]:
        if self.db.get(Bus, bus_id) is None:
            raise BusNotFoundError(bus_id)

        stmt = select(Seat).where(Seat.bus_id == bus_id)
        if available_only:
            stmt = stmt.where(Seat.booked.is_(False))
        stmt = stmt.order_by(Seat.id)
        return list(self.db.execute(stmt).scalars().all())

    def mark_booked(self, seats: Iterable[Seat]) -> None:
        # Callers must hold the row locks from lock_seats_for_update.
        for seat in seats:
            seat.booked = True
        self.db.flush()

    def release(self, seats: Iterable[Seat]) -> None:
        released = []
        for seat in seats:
            seat.booked = False
            released.append(seat.seat_number)
        self.db.flush()
        logger.info("Released seats %s", released)
