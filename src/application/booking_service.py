import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.application.payment_resolver import PaymentResolver, SignatureVerifier
from src.domain.exceptions import (
    BookingNotFoundError,
    BusBookingError,
    FareMismatchError,
    InvalidRequestError,
    SeatAlreadyBookedError,
    UserNotFoundError,
)
from src.domain.fare_validator import FareValidator, to_money
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking, Bus, Seat, User
from src.infrastructure.notifications.email_notifier import EmailNotifier, LoggingEmailNotifier
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.seat_repository import SeatRepository
from src.infrastructure.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Email:
    to_address: str
    subject: str
    body: str


class BookingService:
    """
    Application service for the seat-locking booking transaction
    and the cancel/refund flows that share its invariants.

    Each public write method is one unit of work on `db`: it commits
    on success and rolls back on any error. Email goes out only after
    the commit and never affects the outcome.
    """

    def __init__(
        self,
        db: Session,
        notifier: EmailNotifier | None = None,
        verifier: SignatureVerifier | None = None,
        fare_validator: FareValidator | None = None,
    ):
        self.db = db
        self.notifier = notifier or LoggingEmailNotifier()
        self.fare_validator = fare_validator or FareValidator()
        self.booking_repository = BookingRepository(db)
        self.seat_repository = SeatRepository(db)
        self.user_repository = UserRepository(db)
        self.payment_resolver = PaymentResolver(db, verifier=verifier)

    def book(
        self,
        user_id: int,
        seat_ids: Sequence[int],
        client_total: Decimal,
        payment_record_id: int | None = None,
        order_id: str | None = None,
        payment_id: str | None = None,
        signature: str | None = None,
        bus_id: int | None = None,
    ) -> Booking:
        self._validate_request(user_id, seat_ids, client_total)

        logger.info(
            "Booking requested: user_id=%s seat_ids=%s fare=%s payment_record_id=%s order_id=%s payment_id=%s",
            user_id,
            list(seat_ids),
            client_total,
            payment_record_id,
            order_id,
            payment_id,
        )

        try:
            resolved = self.payment_resolver.resolve(
                user_id=user_id,
                amount=client_total,
                payment_record_id=payment_record_id,
                order_id=order_id,
                payment_id=payment_id,
                signature=signature,
            )
            if resolved.is_replay:
                replayed_id = resolved.existing_booking.id
                self.db.commit()
                return self.booking_repository.get_by_id(replayed_id)

            user = self.user_repository.get_by_id(user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            seats = self.seat_repository.lock_seats_for_update(seat_ids)
            bus = self._single_bus(seats, bus_id)

            for seat in seats:
                if seat.booked:
                    raise SeatAlreadyBookedError(seat.seat_number)

            total = self.fare_validator.validate(seats, client_total)

            record = resolved.record
            if record is not None:
                self.payment_resolver.check_amount(record, total)

            self.seat_repository.mark_booked(seats)

            linked_record_id = record.id if record is not None else None
            booking = self.booking_repository.create_booking(
                user=user,
                bus=bus,
                seats=seats,
                total_fare=total,
                payment_record_id=linked_record_id,
            )

            if record is not None:
                self.payment_resolver.finalize(record, bus, seats, payment_id=payment_id)

            email = self._confirmation_email(user, bus, seats, total)
            booking_id = booking.id
            self.db.commit()
        except (SeatAlreadyBookedError, FareMismatchError) as exc:
            self.db.rollback()
            logger.warning("Booking rejected for user_id=%s seat_ids=%s: %s", user_id, list(seat_ids), exc)
            raise
        except BusBookingError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            existing = self.payment_resolver.find_existing_booking(
                payment_record_id=payment_record_id,
                order_id=order_id,
                payment_id=payment_id,
            )
            if existing is None:
                logger.exception(
                    "Booking failed on a constraint: user_id=%s seat_ids=%s fare=%s",
                    user_id,
                    list(seat_ids),
                    client_total,
                )
                raise
            logger.info(
                "Payment already booked by a concurrent request, returning booking_id=%s",
                existing.id,
            )
            return self.booking_repository.get_by_id(existing.id)
        except Exception:
            self.db.rollback()
            logger.exception(
                "Booking failed unexpectedly: user_id=%s seat_ids=%s fare=%s",
                user_id,
                list(seat_ids),
                client_total,
            )
            raise

        logger.info(
            "Booking saved: booking_id=%s payment_record_id=%s total_fare=%s",
            booking_id,
            linked_record_id,
            total,
        )
        self._notify(email, booking_id)

        return self.booking_repository.get_by_id(booking_id)

    def cancel_booking(self, booking_id: int) -> Booking:
        try:
            booking = self.booking_repository.get_for_update(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)

            if booking.status != BookingStatus.CANCELLED:
                BookingStateMachine.validate_transition(booking.status, BookingStatus.CANCELLED)
                self._release_seats(booking)
                self.booking_repository.update_status(booking, BookingStatus.CANCELLED)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Booking cancelled: id=%s", booking_id)
        return self.booking_repository.get_by_id(booking_id)

    def process_refund(self, booking_id: int) -> bool:
        """
        Refunds a CONFIRMED booking, releasing its seats.

        Already refunded (or refund pending) bookings report success
        without changes; any other status reports failure.
        """
        try:
            booking = self.booking_repository.get_for_update(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)

            if booking.status in (BookingStatus.REFUNDED, BookingStatus.REFUND_PENDING):
                self.db.commit()
                return True

            if booking.status != BookingStatus.CONFIRMED:
                logger.info(
                    "Refund refused for booking_id=%s in status %s",
                    booking_id,
                    booking.status.value,
                )
                self.db.commit()
                return False

            self._release_seats(booking)
            BookingStateMachine.validate_transition(booking.status, BookingStatus.REFUNDED)
            self.booking_repository.update_status(booking, BookingStatus.REFUNDED)

            email = _Email(
                to_address=booking.user.email,
                subject="Bus Booking Refund Processed",
                body=(
                    f"Your booking {booking.id} has been refunded. "
                    f"Amount: ₹{to_money(booking.total_fare)}"
                ),
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Booking refunded: id=%s", booking_id)
        self._notify(email, booking_id)
        return True

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def get_bookings_by_user(self, user_id: int) -> list[Booking]:
        return self.booking_repository.list_by_user(user_id)

    def find_by_payment_record_id(self, payment_record_id: int | None) -> Booking | None:
        if payment_record_id is None:
            return None
        return self.booking_repository.find_by_payment_record_id(payment_record_id)

    def _release_seats(self, booking: Booking) -> None:
        seat_ids = [link.seat_id for link in booking.seat_links]
        if not seat_ids:
            return
        seats = self.seat_repository.lock_seats_for_update(seat_ids)
        self.seat_repository.release(seats)

    @staticmethod
    def _validate_request(user_id, seat_ids, client_total) -> None:
        if not seat_ids:
            raise InvalidRequestError("No seats selected for booking")
        if user_id is None:
            raise InvalidRequestError("userId is required")
        if client_total is None:
            raise InvalidRequestError("totalFare is required")
        if Decimal(client_total) < 0:
            raise InvalidRequestError("totalFare must be zero or positive")
        if len(set(seat_ids)) != len(seat_ids):
            raise InvalidRequestError("seatIds must not contain duplicates")

    @staticmethod
    def _single_bus(seats: Sequence[Seat], bus_id: int | None) -> Bus:
        bus_ids = {seat.bus_id for seat in seats}
        if len(bus_ids) > 1:
            raise InvalidRequestError("All seats in a booking must belong to the same bus")
        seat_bus_id = next(iter(bus_ids))
        if bus_id is not None and seat_bus_id != bus_id:
            raise InvalidRequestError(
                f"Seats do not belong to bus {bus_id}"
            )
        return seats[0].bus

    @staticmethod
    def _confirmation_email(user: User, bus: Bus, seats: Sequence[Seat], total: Decimal) -> _Email:
        seat_numbers = ", ".join(seat.seat_number for seat in seats)
        body = (
            f"Dear {user.name},\n\n"
            "Your bus booking is confirmed!\n\n"
            f"Bus: {bus.bus_name}\n"
            f"Route: {bus.source} → {bus.destination}\n"
            f"Seats: {seat_numbers}\n"
            f"Total Fare: ₹{to_money(total)}\n"
            f"Departure: {bus.departure_date or ''} {bus.departure_time or ''}\n\n"
            "Thank you for booking with us!"
        )
        return _Email(
            to_address=user.email,
            subject="Bus Booking Confirmation",
            body=body,
        )

    def _notify(self, email: _Email, booking_id: int) -> None:
        try:
            self.notifier.send(email.to_address, email.subject, email.body)
        except Exception:
            logger.warning(
                "Failed to send email for booking_id=%s",
                booking_id,
                exc_info=True,
            )
