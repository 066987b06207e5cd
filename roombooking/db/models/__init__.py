from .room import Room, RoomStatus, Amenity
from .payment import (
    Payment,
    PaymentStatus,
    PaymentMethod,
    PaymentProvider,
    REMOTE_TRANSFER_METHODS,
)
from .booking import Booking, BookingStatus
from .payment_event import PaymentEvent
from .audit_log import AuditLog, ActorType
