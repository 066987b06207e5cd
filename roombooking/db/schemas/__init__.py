from .room import Room, RoomCreate, RoomUpdate, RoomAvailability
from .booking import (
    Booking,
    BookingCreate,
    BookingCancel,
    BookingStatusUpdate,
    BookingPaymentStatusUpdate,
    BookingPriceCorrection,
    BookingStats,
)
from .payment import Payment, PaymentCreate, PaymentIntentCreate, PaymentRefund, PaymentIntent, IntentOutcome
from .slot import Slot, RoomSchedule, FleetRoom, FleetSummary, FleetAvailability
