from datetime import datetime
from pydantic import BaseModel, Field

from ..models.payment import PaymentMethod, PaymentProvider, PaymentStatus


class PaymentCreate(BaseModel):
    booking_id: int
    method: str
    amount: float | None = Field(default=None, gt=0)
    transaction_id: str | None = Field(default=None, max_length=128)
    proof_reference: str | None = Field(default=None, max_length=512)


class PaymentIntentCreate(BaseModel):
    booking_id: int


class PaymentRefund(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str = "requested_by_customer"


class Payment(BaseModel):
    id: int
    booking_id: int
    amount: float
    currency: str
    method: PaymentMethod
    provider: PaymentProvider
    status: PaymentStatus
    intent_id: str | None = None
    transaction_id: str | None = None
    proof_reference: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PaymentIntent(BaseModel):
    payment: Payment
    intent_id: str
    client_secret: str | None = None
    amount_minor: int
    currency: str


class IntentOutcome(BaseModel):
    intent_id: str
    status: str
    payment_status: str
    booking_id: int
