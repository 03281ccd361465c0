# tests/unit/test_state_machine.py

import pytest

from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    PaymentStateMachine,
    PaymentStatus,
)
from src.domain.exceptions import InvalidStateTransitionError


# ---------------------
# VALID TRANSITIONS
# ---------------------

def test_confirmed_booking_can_be_cancelled_or_refunded():
    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.REFUNDED,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.REFUND_PENDING,
        BookingStatus.REFUNDED,
    )


def test_payment_created_settles_either_way():
    assert PaymentStateMachine.get_allowed_transitions(PaymentStatus.CREATED) == {
        PaymentStatus.SUCCESS,
        PaymentStatus.FAILED,
    }


# ---------------------
# INVALID TRANSITIONS
# ---------------------

def test_cancelled_booking_cannot_be_refunded():
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.CANCELLED,
            BookingStatus.REFUNDED,
        )


def test_terminal_state_refunded():
    assert BookingStateMachine.is_terminal(BookingStatus.REFUNDED)

    with pytest.raises(InvalidStateTransitionError) as excinfo:
        BookingStateMachine.validate_transition(
            BookingStatus.REFUNDED,
            BookingStatus.CANCELLED,
        )

    assert excinfo.value.from_state == "REFUNDED"
    assert excinfo.value.to_state == "CANCELLED"


def test_failed_payment_is_terminal():
    assert PaymentStateMachine.is_terminal(PaymentStatus.FAILED)

    with pytest.raises(InvalidStateTransitionError):
        PaymentStateMachine.validate_transition(
            PaymentStatus.FAILED,
            PaymentStatus.SUCCESS,
        )


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "CONFIRMED",  # invalid type
            BookingStatus.CANCELLED,
        )

    with pytest.raises(TypeError):
        PaymentStateMachine.can_transition(
            BookingStatus.CONFIRMED,
            PaymentStatus.SUCCESS,
        )
