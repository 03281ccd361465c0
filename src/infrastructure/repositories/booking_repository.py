# src/infrastructure/repositories/booking_repository.py

from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Booking, BookingSeat, Bus, Seat, User
from src.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def _eager(self):
        # User, bus and seats come back as one snapshot so nothing
        # lazy-loads after the session is gone.
        return select(Booking).options(
            joinedload(Booking.user),
            joinedload(Booking.bus),
            selectinload(Booking.seat_links).joinedload(BookingSeat.seat),
        )

    def get_by_id(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = self._eager().where(Booking.id == booking_id)
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def get_for_update(
        self,
        booking_id: int,
    ) -> Booking | None:

        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update(of=Booking)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_payment_record_id(
        self,
        payment_record_id: int,
    ) -> Booking | None:

        stmt = self._eager().where(Booking.payment_record_id == payment_record_id)
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def list_by_user(self, user_id: int) -> list[Booking]:
        stmt = (
            self._eager()
            .where(Booking.user_id == user_id)
            .order_by(Booking.booking_time.desc(), Booking.id.desc())
        )
        return list(self.db.execute(stmt).unique().scalars().all())

    def create_booking(
        self,
        user: User,
        bus: Bus,
        seats: Sequence[Seat],
        total_fare: Decimal,
        payment_record_id: int | None = None,
    ) -> Booking:

        booking = Booking(
            user=user,
            bus=bus,
            total_fare=total_fare,
            booking_time=datetime.now(timezone.utc),
            status=BookingStatus.CONFIRMED,
            payment_record_id=payment_record_id,
        )
        booking.seat_links = [
            BookingSeat(seat=seat, position=position)
            for position, seat in enumerate(seats)
        ]

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status
