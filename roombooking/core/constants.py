"""Common application-wide constants."""

from datetime import timedelta

# Booking length bounds, in whole hours
MIN_BOOKING_HOURS = 1
MAX_BOOKING_HOURS = 24

DEFAULT_SLOT_DURATION = timedelta(minutes=60)
DEFAULT_BREAK_DURATION = timedelta(minutes=10)

# Smallest chargeable amount per currency, in minor units (satang, cents)
GATEWAY_MINIMUM_AMOUNTS = {
    "thb": 2000,
}
GATEWAY_DEFAULT_MINIMUM_AMOUNT = 50

# Cancellation reason when none is given
DEFAULT_CANCEL_REASON = "cancelled_by_requester"


__all__ = [
    "MIN_BOOKING_HOURS",
    "MAX_BOOKING_HOURS",
    "DEFAULT_SLOT_DURATION",
    "DEFAULT_BREAK_DURATION",
    "GATEWAY_MINIMUM_AMOUNTS",
    "GATEWAY_DEFAULT_MINIMUM_AMOUNT",
    "DEFAULT_CANCEL_REASON",
]
