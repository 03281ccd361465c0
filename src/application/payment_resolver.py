import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from sqlalchemy.orm import Session

from src.domain.exceptions import (
    InvalidRequestError,
    PaymentAmountMismatchError,
    PaymentNotFoundError,
    PaymentNotUsableError,
    PaymentVerificationError,
    UserNotFoundError,
)
from src.domain.fare_validator import FARE_TOLERANCE, to_money
from src.domain.state_machine import PaymentStateMachine, PaymentStatus
from src.infrastructure.db.models import Booking, Bus, PaymentRecord, Seat
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository
from src.infrastructure.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


class SignatureVerifier(Protocol):
    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...


@dataclass
class ResolvedPayment:
    record: PaymentRecord | None = None
    existing_booking: Booking | None = None

    @property
    def is_replay(self) -> bool:
        return self.existing_booking is not None


class PaymentResolver:
    """
    Finds (or, for a gateway-confirmed payment, creates) the payment
    record a booking will link to, and detects replays of payments
    that already produced a booking.
    """

    def __init__(self, db: Session, verifier: SignatureVerifier | None = None):
        self.db = db
        self.verifier = verifier
        self.payment_repository = PaymentRepository(db)
        self.booking_repository = BookingRepository(db)
        self.user_repository = UserRepository(db)

    def resolve(
        self,
        user_id: int,
        amount: Decimal,
        payment_record_id: int | None = None,
        order_id: str | None = None,
        payment_id: str | None = None,
        signature: str | None = None,
    ) -> ResolvedPayment:
        record: PaymentRecord | None = None

        if payment_record_id is not None:
            record = self.payment_repository.get_for_update(payment_record_id)
            if record is None:
                raise PaymentNotFoundError(payment_record_id)
        elif _present(order_id):
            record = self.payment_repository.get_by_order_id_for_update(order_id)

        if record is None and _present(payment_id):
            record = self.upsert_confirmed_payment(
                user_id=user_id,
                amount=amount,
                order_id=order_id,
                payment_id=payment_id,
                signature=signature,
            )

        if record is None:
            return ResolvedPayment()

        if record.status == PaymentStatus.FAILED:
            raise PaymentNotUsableError(
                f"Payment record {record.id} is FAILED and cannot back a booking"
            )

        if record.status == PaymentStatus.SUCCESS:
            existing = self.booking_repository.find_by_payment_record_id(record.id)
            if existing is not None:
                logger.info(
                    "Existing booking found for payment_record_id=%s, returning booking_id=%s",
                    record.id,
                    existing.id,
                )
                return ResolvedPayment(record=record, existing_booking=existing)

        return ResolvedPayment(record=record)

    def upsert_confirmed_payment(
        self,
        user_id: int,
        amount: Decimal,
        order_id: str | None,
        payment_id: str,
        signature: str | None,
    ) -> PaymentRecord:
        """
        Idempotent upsert keyed by (order_id, payment_id) for a gateway
        confirmation whose intermediate record was never written.

        The record is only created as SUCCESS once the gateway signature
        has been verified here.
        """
        existing = self.payment_repository.get_by_payment_id(payment_id)
        if existing is not None:
            if _present(order_id) and existing.order_id and existing.order_id != order_id:
                raise InvalidRequestError(
                    f"Payment {payment_id} belongs to a different order"
                )
            return existing

        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        if not _present(order_id) or not _present(signature):
            raise InvalidRequestError(
                "orderId and razorpaySignature are required to confirm a payment without a payment record"
            )
        if self.verifier is None or not self.verifier.verify_signature(order_id, payment_id, signature):
            raise PaymentVerificationError("Invalid payment signature")

        record = PaymentRecord(
            order_id=order_id,
            payment_id=payment_id,
            status=PaymentStatus.SUCCESS,
            amount=amount,
            user_id=user_id,
            email=user.email,
            contact=user.phone_number,
        )

        self.payment_repository.save(record)
        logger.info(
            "Recorded confirmed payment. payment_id=%s order_id=%s id=%s",
            payment_id,
            order_id,
            record.id,
        )
        return record

    def finalize(
        self,
        record: PaymentRecord,
        bus: Bus,
        seats: Sequence[Seat],
        payment_id: str | None = None,
    ) -> None:
        """Back-fills bus and seat details on the linked record and marks it SUCCESS."""
        updated = False
        if record.bus_id is None:
            record.bus_id = bus.id
            updated = True
        if not record.seat_numbers:
            record.seat_numbers = ",".join(seat.seat_number for seat in seats)
            updated = True
        if not record.payment_id and _present(payment_id):
            record.payment_id = payment_id

        if record.status != PaymentStatus.SUCCESS:
            PaymentStateMachine.validate_transition(record.status, PaymentStatus.SUCCESS)
            record.status = PaymentStatus.SUCCESS

        self.db.flush()
        if updated:
            logger.info("Updated payment id=%s with bus_id/seat_numbers", record.id)

    def check_amount(self, record: PaymentRecord, fare: Decimal) -> None:
        """Rejects a payment whose recorded amount differs from the fare."""
        if record.amount is None:
            return
        paid = to_money(record.amount)
        if abs(paid - to_money(fare)) > FARE_TOLERANCE:
            logger.warning(
                "Payment amount mismatch: payment_record_id=%s paid=%s fare=%s",
                record.id,
                paid,
                fare,
            )
            raise PaymentAmountMismatchError(record.id, paid, to_money(fare))

    def find_existing_booking(
        self,
        payment_record_id: int | None = None,
        order_id: str | None = None,
        payment_id: str | None = None,
    ) -> Booking | None:
        """
        Looks up the booking already linked to the payment a request
        refers to. Used to answer a request that lost a race on the
        payment's unique keys.
        """
        record = None
        if payment_record_id is not None:
            record = self.payment_repository.get_by_id(payment_record_id)
        if record is None and _present(order_id):
            record = self.payment_repository.get_by_order_id(order_id)
        if record is None and _present(payment_id):
            record = self.payment_repository.get_by_payment_id(payment_id)
        if record is None:
            return None
        return self.booking_repository.find_by_payment_record_id(record.id)


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""
