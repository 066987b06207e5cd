from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..config import Settings, get_settings
from ..core.constants import GATEWAY_DEFAULT_MINIMUM_AMOUNT, GATEWAY_MINIMUM_AMOUNTS
from ..core.context import Actor, RequestContext
from ..core.errors import (
    ConflictError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from ..core.policy import AuthorizationPolicy
from ..core.transitions import can_transition_payment, ensure_payment_transition, parse_enum
from ..db import models
from .audit_service import log_audit
from .payments.gateway import (
    INTENT_FAILED,
    INTENT_PENDING,
    INTENT_REFUNDED,
    INTENT_SUCCEEDED,
    BasePaymentGateway,
    GatewayIntent,
    get_gateway,
)
from .unit_of_work import atomic

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# A gateway may still capture an intent after reporting a failed attempt on it.
CONFIRMABLE_STATUSES = (models.PaymentStatus.pending, models.PaymentStatus.failed)


def to_minor_units(amount: Decimal | float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(CENT)


class PaymentStateMachine:
    """Payment records per booking and the booking's payment_status."""

    def __init__(
        self,
        db: Session,
        policy: AuthorizationPolicy | None = None,
        gateway: BasePaymentGateway | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.policy = policy or AuthorizationPolicy()
        self.settings = settings or get_settings()
        self.gateway = gateway or get_gateway(self.settings)

    @property
    def currency(self) -> str:
        return (self.settings.payment_currency or "thb").lower()

    def minimum_amount(self) -> int:
        if self.settings.payment_min_amount_minor is not None:
            return self.settings.payment_min_amount_minor
        return GATEWAY_MINIMUM_AMOUNTS.get(self.currency, GATEWAY_DEFAULT_MINIMUM_AMOUNT)

    def chargeable_amount(self, total_price: Decimal | float) -> int:
        return max(to_minor_units(total_price), self.minimum_amount())

    def _booking(self, booking_id: int, *, lock: bool = False) -> models.Booking:
        stmt = select(models.Booking).where(models.Booking.id == booking_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        booking = self.db.execute(stmt).scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def _payment_by_intent(self, intent_id: str, *, lock: bool = False) -> models.Payment:
        stmt = (
            select(models.Payment)
            .options(selectinload(models.Payment.booking))
            .where(models.Payment.intent_id == intent_id)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        payment = self.db.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment intent not found")
        return payment

    def _require_payer(self, actor: Actor, booking: models.Booking) -> None:
        if not self.policy.can_pay_booking(actor, booking):
            raise ForbiddenError("Only the booking owner or an administrator can pay for it")

    def _ensure_payable(self, booking: models.Booking) -> None:
        if booking.status == models.BookingStatus.cancelled:
            raise ConflictError("Cannot take payment for a cancelled booking")
        if booking.payment_status == models.PaymentStatus.paid:
            raise ConflictError("Booking is already paid")
        if booking.payment_status == models.PaymentStatus.refunded:
            raise ConflictError("Booking payment was refunded")

    def _move_booking(
        self,
        actor: Actor | None,
        booking: models.Booking,
        target: models.PaymentStatus,
        reason: str,
    ) -> None:
        previous = booking.payment_status
        ensure_payment_transition(previous, target)
        booking.payment_status = target
        log_audit(
            self.db,
            actor,
            "payment_status_changed",
            "booking",
            booking.id,
            {"from": previous.value, "to": target.value, "reason": reason},
        )

    def _retry_if_failed(self, actor: Actor | None, booking: models.Booking) -> None:
        if booking.payment_status == models.PaymentStatus.failed:
            self._move_booking(actor, booking, models.PaymentStatus.pending, "retry")

    def _release_read(self) -> None:
        # Never hold row locks while waiting on the gateway.
        self.db.commit()

    def create_payment(
        self,
        ctx: RequestContext,
        booking_id: int,
        method: str,
        amount: Decimal | float | None = None,
        transaction_id: str | None = None,
        proof_reference: str | None = None,
    ) -> models.Payment:
        payment_method = parse_enum(models.PaymentMethod, method, "method")
        proof_reference = (proof_reference or "").strip() or None
        if payment_method in models.REMOTE_TRANSFER_METHODS and not proof_reference:
            raise ValidationError(
                f"A proof of payment is required for {payment_method.value} payments"
            )

        with atomic(self.db, "payment_create", ctx.logger, booking_id=booking_id):
            booking = self._booking(booking_id, lock=True)
            self._require_payer(ctx.actor, booking)
            self._ensure_payable(booking)

            total = Decimal(str(booking.total_price)).quantize(CENT)
            if amount is not None and Decimal(str(amount)).quantize(CENT) != total:
                raise ValidationError(f"Payment amount must equal the booking total of {total}")

            self._retry_if_failed(ctx.actor, booking)
            payment = models.Payment(
                booking_id=booking.id,
                amount=total,
                currency=self.currency.upper(),
                method=payment_method,
                provider=models.PaymentProvider.manual,
                status=models.PaymentStatus.paid,
                transaction_id=transaction_id,
                proof_reference=proof_reference,
            )
            self.db.add(payment)
            self._move_booking(ctx.actor, booking, models.PaymentStatus.paid, "payment_recorded")
        ctx.logger.info(
            "Payment recorded",
            extra={"booking_id": booking_id, "payment_id": payment.id, "method": payment_method.value},
        )
        return payment

    def create_intent(self, ctx: RequestContext, booking_id: int) -> tuple[models.Payment, GatewayIntent]:
        booking = self._booking(booking_id)
        self._require_payer(ctx.actor, booking)
        self._ensure_payable(booking)
        amount = self.chargeable_amount(booking.total_price)
        self._release_read()

        try:
            intent = self.gateway.create_intent(
                amount=amount,
                currency=self.currency,
                description=f"Room booking #{booking_id}",
                metadata={"booking_id": booking_id, "requester_id": booking.requester_id},
            )
        except GatewayError:
            ctx.logger.exception(
                "Gateway failed to create payment intent",
                extra={"booking_id": booking_id, "amount": amount},
            )
            raise

        with atomic(self.db, "payment_intent_create", ctx.logger, booking_id=booking_id):
            booking = self._booking(booking_id, lock=True)
            self._ensure_payable(booking)
            self._retry_if_failed(ctx.actor, booking)
            payment = models.Payment(
                booking_id=booking.id,
                amount=from_minor_units(amount),
                currency=self.currency.upper(),
                method=models.PaymentMethod.card,
                provider=models.PaymentProvider(self.gateway.provider),
                status=models.PaymentStatus.pending,
                intent_id=intent.intent_id,
            )
            self.db.add(payment)
            log_audit(
                self.db,
                ctx.actor,
                "payment_intent_created",
                "booking",
                booking.id,
                {"intent_id": intent.intent_id, "amount_minor": amount},
            )
        return payment, intent

    def _apply_outcome(
        self,
        actor: Actor | None,
        payment: models.Payment,
        outcome: str,
        transaction_id: str | None,
        source: str,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> bool:
        """Move payment and booking to ``outcome``; False when not allowed."""
        booking = payment.booking
        target = {
            INTENT_SUCCEEDED: models.PaymentStatus.paid,
            INTENT_FAILED: models.PaymentStatus.failed,
            INTENT_REFUNDED: models.PaymentStatus.refunded,
        }.get(outcome)
        if target == models.PaymentStatus.paid and payment.status == models.PaymentStatus.failed:
            payment.status = models.PaymentStatus.pending
        if target is None or not can_transition_payment(payment.status, target):
            return False

        payment.status = target
        if target == models.PaymentStatus.paid:
            payment.transaction_id = transaction_id or payment.transaction_id or payment.intent_id
            if booking.payment_status in (models.PaymentStatus.paid, models.PaymentStatus.refunded):
                log.error(
                    "Second successful payment for booking",
                    extra={"booking_id": booking.id, "payment_id": payment.id},
                )
                log_audit(self.db, actor, "duplicate_payment", "booking", booking.id, {"intent_id": payment.intent_id})
            else:
                self._retry_if_failed(actor, booking)
                self._move_booking(actor, booking, models.PaymentStatus.paid, source)
            if booking.status == models.BookingStatus.cancelled:
                log.warning(
                    "Payment succeeded for a cancelled booking",
                    extra={"booking_id": booking.id, "intent_id": payment.intent_id},
                )
                log_audit(self.db, actor, "payment_after_cancel", "booking", booking.id, {"intent_id": payment.intent_id})
        elif target == models.PaymentStatus.failed:
            if booking.payment_status == models.PaymentStatus.pending:
                self._move_booking(actor, booking, models.PaymentStatus.failed, source)
        elif target == models.PaymentStatus.refunded:
            if booking.payment_status == models.PaymentStatus.paid:
                self._move_booking(actor, booking, models.PaymentStatus.refunded, source)
        return True

    def confirm_intent(self, ctx: RequestContext, intent_id: str) -> dict[str, Any]:
        payment = self._payment_by_intent(intent_id)
        self._require_payer(ctx.actor, payment.booking)
        if payment.status not in CONFIRMABLE_STATUSES:
            raise ConflictError(f"Payment is already {payment.status.value}")
        self._release_read()

        try:
            intent = self.gateway.retrieve_intent(intent_id)
        except GatewayError:
            # The booking stays pending; a later confirm or webhook settles it.
            ctx.logger.exception("Gateway failed to report intent status", extra={"intent_id": intent_id})
            raise

        with atomic(self.db, "payment_intent_confirm", ctx.logger, intent_id=intent_id):
            payment = self._payment_by_intent(intent_id, lock=True)
            if payment.status not in CONFIRMABLE_STATUSES:
                raise ConflictError(f"Payment is already {payment.status.value}")
            if intent.status != INTENT_PENDING:
                self._apply_outcome(
                    ctx.actor, payment, intent.status, intent.transaction_id, "intent_confirmed", ctx.logger
                )
        ctx.logger.info(
            "Payment intent confirmed",
            extra={"intent_id": intent_id, "gateway_status": intent.raw_status or intent.status},
        )
        return {
            "intent_id": intent_id,
            "status": intent.status,
            "payment_status": payment.status.value,
            "booking_id": payment.booking_id,
        }

    def cancel_intent(self, ctx: RequestContext, intent_id: str) -> models.Payment:
        payment = self._payment_by_intent(intent_id)
        self._require_payer(ctx.actor, payment.booking)
        if payment.status != models.PaymentStatus.pending:
            raise ConflictError(f"Payment is already {payment.status.value}")
        self._release_read()

        try:
            self.gateway.cancel_intent(intent_id)
        except GatewayError:
            ctx.logger.exception("Gateway failed to cancel intent", extra={"intent_id": intent_id})
            raise

        with atomic(self.db, "payment_intent_cancel", ctx.logger, intent_id=intent_id):
            payment = self._payment_by_intent(intent_id, lock=True)
            if not self._apply_outcome(ctx.actor, payment, INTENT_FAILED, None, "intent_cancelled", ctx.logger):
                raise ConflictError(f"Payment is already {payment.status.value}")
        return payment

    def refund(
        self,
        ctx: RequestContext,
        intent_id: str,
        amount: Decimal | float | None = None,
        reason: str = "requested_by_customer",
    ) -> models.Payment:
        self.policy.require_admin(ctx.actor)
        payment = self._payment_by_intent(intent_id)
        if payment.status != models.PaymentStatus.paid:
            raise ConflictError("Only paid payments can be refunded")
        refund_minor = None
        if amount is not None:
            refund_minor = to_minor_units(amount)
            if refund_minor <= 0 or refund_minor > to_minor_units(payment.amount):
                raise ValidationError("Refund amount must be positive and not exceed the payment")
        self._release_read()

        try:
            refund = self.gateway.refund(intent_id, refund_minor, reason)
        except GatewayError:
            ctx.logger.exception("Gateway failed to refund", extra={"intent_id": intent_id})
            raise

        with atomic(self.db, "payment_refund", ctx.logger, intent_id=intent_id):
            payment = self._payment_by_intent(intent_id, lock=True)
            if not self._apply_outcome(ctx.actor, payment, INTENT_REFUNDED, None, "refund", ctx.logger):
                raise ConflictError(f"Payment is already {payment.status.value}")
            log_audit(
                self.db,
                ctx.actor,
                "payment_refunded",
                "payment",
                payment.id,
                {"refund_id": refund.refund_id, "amount_minor": refund.amount, "reason": reason},
            )
        return payment

    def handle_webhook(self, data: dict[str, Any]) -> dict[str, Any]:
        event = self.gateway.parse_webhook(data)
        if not event.event_id:
            raise ValidationError("Webhook event has no id")

        with atomic(self.db, "payment_webhook", logger, event_id=event.event_id):
            journal = models.PaymentEvent(
                event_id=event.event_id,
                intent_id=event.intent_id,
                event_type=event.event_type,
                applied=False,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(journal)
            except IntegrityError:
                logger.info("Duplicate webhook delivery", extra={"event_id": event.event_id})
                return {"status": "duplicate", "event_id": event.event_id}

            if event.status is None or event.intent_id is None:
                logger.info("Unhandled webhook event", extra={"event_type": event.event_type})
                return {"status": "ignored", "event_id": event.event_id}

            payment = self._payment_by_intent(event.intent_id, lock=True)
            journal.applied = self._apply_outcome(
                None, payment, event.status, None, f"webhook:{event.event_type}", logger
            )
            if not journal.applied:
                logger.warning(
                    "Webhook transition not allowed",
                    extra={
                        "event_id": event.event_id,
                        "intent_id": event.intent_id,
                        "payment_status": payment.status.value,
                        "event_status": event.status,
                    },
                )
        return {"status": "applied" if journal.applied else "ignored", "event_id": event.event_id}

    def list_payments(self, ctx: RequestContext, booking_id: int) -> list[models.Payment]:
        booking = self._booking(booking_id)
        self.policy.require_booking_access(ctx.actor, booking)
        return list(
            self.db.execute(
                select(models.Payment)
                .where(models.Payment.booking_id == booking_id)
                .order_by(models.Payment.id.desc())
            ).scalars()
        )
