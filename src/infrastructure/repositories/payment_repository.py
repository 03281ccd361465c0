# src/infrastructure/repositories/payment_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import PaymentRecord


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, record_id: int) -> PaymentRecord | None:
        return self.db.get(PaymentRecord, record_id)

    def get_for_update(self, record_id: int) -> PaymentRecord | None:
        """
        Row-locks the payment record so two bookings replaying
        the same payment serialize on it.
        """
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_order_id(self, order_id: str) -> PaymentRecord | None:
        if not order_id or not order_id.strip():
            return None
        stmt = select(PaymentRecord).where(PaymentRecord.order_id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_order_id_for_update(self, order_id: str) -> PaymentRecord | None:
        if not order_id or not order_id.strip():
            return None
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_payment_id(self, payment_id: str) -> PaymentRecord | None:
        if not payment_id or not payment_id.strip():
            return None
        stmt = select(PaymentRecord).where(PaymentRecord.payment_id == payment_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def save(self, record: PaymentRecord) -> PaymentRecord:
        self.db.add(record)
        self.db.flush()
        return record
