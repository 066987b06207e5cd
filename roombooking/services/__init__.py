from . import (
    audit_service,
    availability,
    booking_service,
    payment_service,
    room_status,
    slot_generator,
)

__all__ = [
    "audit_service",
    "availability",
    "booking_service",
    "payment_service",
    "room_status",
    "slot_generator",
]
