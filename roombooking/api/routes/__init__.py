from . import bookings, misc, payments, rooms

__all__ = [
    "bookings",
    "misc",
    "payments",
    "rooms",
]
