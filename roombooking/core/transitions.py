"""Allowed status transitions for bookings and payments."""

from __future__ import annotations

from enum import Enum

from ..db.models import BookingStatus, PaymentStatus
from .errors import ConflictError, ValidationError

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.active: frozenset({BookingStatus.cancelled, BookingStatus.completed}),
    BookingStatus.cancelled: frozenset(),
    BookingStatus.completed: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.pending: frozenset({PaymentStatus.paid, PaymentStatus.failed}),
    PaymentStatus.failed: frozenset({PaymentStatus.pending}),
    PaymentStatus.paid: frozenset({PaymentStatus.refunded}),
    PaymentStatus.refunded: frozenset(),
}


def parse_enum(enum_cls: type[Enum], value: object, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {allowed}") from exc


def can_transition_booking(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def ensure_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    if can_transition_booking(current, target):
        return
    if current != BookingStatus.active:
        raise ConflictError(f"Booking is already {current.value}")
    raise ConflictError(f"Booking cannot move from {current.value} to {target.value}")


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if can_transition_payment(current, target):
        return
    if current == target:
        raise ConflictError(f"Payment is already {current.value}")
    raise ConflictError(f"Payment status cannot move from {current.value} to {target.value}")
