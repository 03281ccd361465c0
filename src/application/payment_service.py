import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from src.domain.exceptions import InvalidRequestError, PaymentNotFoundError
from src.domain.fare_validator import to_money
from src.domain.state_machine import PaymentStateMachine, PaymentStatus
from src.infrastructure.db.models import PaymentRecord
from src.infrastructure.payments.razorpay_gateway import RazorpayGateway, to_paise
from src.infrastructure.repositories.payment_repository import PaymentRepository


logger = logging.getLogger(__name__)


@dataclass
class CreatedOrder:
    record: PaymentRecord
    order_id: str
    amount_paise: int
    currency: str
    key_id: str | None


class PaymentService:
    """Payment initiation and verification ahead of a booking."""

    def __init__(self, db: Session, gateway: RazorpayGateway):
        self.db = db
        self.gateway = gateway
        self.payment_repository = PaymentRepository(db)

    def create_order(
        self,
        amount: Decimal,
        email: str | None = None,
        contact: str | None = None,
        user_id: int | None = None,
        bus_id: int | None = None,
        seat_numbers: Sequence[str] = (),
    ) -> CreatedOrder:
        if amount is None or amount <= 0:
            raise InvalidRequestError("Invalid amount: must be > 0")

        amount = to_money(amount)
        amount_paise = to_paise(amount)
        receipt = f"bus-{bus_id or 'na'}-user-{user_id or 'na'}"

        try:
            order = self.gateway.create_order(amount_paise=amount_paise, receipt=receipt)
            order_id = str(order["id"])

            record = self.payment_repository.get_by_order_id(order_id)
            if record is None:
                record = PaymentRecord(order_id=order_id)
            record.amount = amount
            record.email = email
            record.contact = contact
            record.status = PaymentStatus.CREATED
            record.user_id = user_id
            record.bus_id = bus_id
            record.seat_numbers = ",".join(seat_numbers) or None
            self.payment_repository.save(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Payment order created: order_id=%s amount=%s user_id=%s bus_id=%s seats=%s",
            order_id,
            amount,
            user_id,
            bus_id,
            list(seat_numbers),
        )
        return CreatedOrder(
            record=record,
            order_id=order_id,
            amount_paise=amount_paise,
            currency=str(order.get("currency", self.gateway.currency)),
            key_id=self.gateway.key_id,
        )

    def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> PaymentRecord:
        try:
            record = self.payment_repository.get_by_order_id(order_id)
            if record is None:
                raise PaymentNotFoundError(f"orderId={order_id}")

            if record.status == PaymentStatus.SUCCESS and record.payment_id == payment_id:
                self.db.commit()
                return record

            valid = self.gateway.verify_signature(order_id, payment_id, signature)
            new_status = PaymentStatus.SUCCESS if valid else PaymentStatus.FAILED
            PaymentStateMachine.validate_transition(record.status, new_status)

            record.payment_id = payment_id
            record.status = new_status
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if valid:
            logger.info(
                "Payment verified: order_id=%s payment_id=%s user_id=%s",
                order_id,
                payment_id,
                record.user_id,
            )
        else:
            logger.warning(
                "Payment verification failed: order_id=%s payment_id=%s",
                order_id,
                payment_id,
            )
        return record
