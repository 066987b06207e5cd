from datetime import datetime
from pydantic import BaseModel, Field

from ..models.booking import BookingStatus
from ..models.payment import PaymentStatus


class BookingCreate(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    duration_hours: int | None = None
    notes: str | None = Field(default=None, max_length=500)
    # Admins may book on behalf of a customer.
    requester_id: int | None = None


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class BookingStatusUpdate(BaseModel):
    status: str


class BookingPaymentStatusUpdate(BaseModel):
    payment_status: str


class BookingPriceCorrection(BaseModel):
    total_price: float = Field(ge=0)


class Booking(BaseModel):
    id: int
    room_id: int
    requester_id: int
    start_time: datetime
    end_time: datetime
    duration_hours: int
    status: BookingStatus
    total_price: float
    payment_status: PaymentStatus
    notes: str | None = None
    room_name: str | None = None
    price_per_hour: float | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class BookingStats(BaseModel):
    total_bookings: int
    total_spent: float
    period_bookings: int
    active_bookings: int
