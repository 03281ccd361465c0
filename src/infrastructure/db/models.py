# src/infrastructure/db/models.py

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    String,
    Integer,
    DateTime,
    Enum,
    Numeric,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime

from src.infrastructure.db.session import Base
from src.domain.state_machine import BookingStatus, PaymentStatus


class User(Base):
    """
    Account owner. Registration and auth live elsewhere;
    the booking core only reads name and contact details.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Bus(Base):
    __tablename__ = "buses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bus_name: Mapped[str] = mapped_column(String(128), nullable=False)
    bus_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(String(128), nullable=False)
    destination: Mapped[str] = mapped_column(String(128), nullable=False)
    departure_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    arrival_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    seats: Mapped[list["Seat"]] = relationship(
        back_populates="bus",
        cascade="all, delete-orphan",
        order_by="Seat.id",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_bus_price_nonnegative"),
        CheckConstraint("total_seats >= 0", name="ck_bus_total_seats_nonnegative"),
    )


class Seat(Base):
    """
    A sellable seat. `booked` flips to True only inside a committed
    booking transaction and back to False only on cancel/refund.
    """

    __tablename__ = "seats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bus_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seat_number: Mapped[str] = mapped_column(String(16), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    bus: Mapped[Bus] = relationship(back_populates="seats")

    __table_args__ = (
        UniqueConstraint("bus_id", "seat_number", name="uq_seat_number_per_bus"),
        CheckConstraint("price >= 0", name="ck_seat_price_nonnegative"),
    )


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.CREATED,
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact: Mapped[str | None] = mapped_column(String(32), nullable=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
    )
    bus_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    seat_numbers: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_payment_order_id"),
        UniqueConstraint("payment_id", name="uq_payment_payment_id"),
    )


class BookingSeat(Base):
    """Booking ↔ seat membership; `position` keeps the requested seat order."""

    __tablename__ = "booking_seats"

    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    seat_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("seats.id"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    seat: Mapped[Seat] = relationship(lazy="joined")


class Booking(Base):
    """
    Immutable record of a completed booking transaction.
    Later mutation is limited to status changes by cancel/refund.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    bus_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("buses.id"),
        nullable=False,
    )
    total_fare: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    booking_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    payment_record_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("payment_records.id"),
        nullable=True,
    )

    user: Mapped[User] = relationship()
    bus: Mapped[Bus] = relationship()
    seat_links: Mapped[list[BookingSeat]] = relationship(
        order_by=BookingSeat.position,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint(
            "payment_record_id",
            name="uq_booking_payment_record_id",
        ),
        CheckConstraint("total_fare >= 0", name="ck_booking_total_fare_nonnegative"),
    )

    @property
    def seats(self) -> list[Seat]:
        return [link.seat for link in self.seat_links]
