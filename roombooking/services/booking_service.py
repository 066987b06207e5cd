from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.clock import as_utc, to_utc, utc_now, venue_tz
from ..core.constants import DEFAULT_CANCEL_REASON, MAX_BOOKING_HOURS, MIN_BOOKING_HOURS
from ..core.context import RequestContext
from ..core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..core.policy import AuthorizationPolicy
from ..core.transitions import ensure_booking_transition, ensure_payment_transition, parse_enum
from ..db import models
from . import availability
from .audit_service import log_audit
from .unit_of_work import atomic

logger = logging.getLogger(__name__)

EXCLUSION_CONSTRAINT = "ex_bookings_room_active_interval"


@dataclass
class BookingFilters:
    requester_id: int | None = None
    room_id: int | None = None
    status: str | None = None
    payment_status: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    limit: int = 50
    offset: int = 0


def _interval_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _resolve_duration(start: datetime, end: datetime, duration_hours: int | None) -> int:
    hours = _interval_hours(start, end)
    if duration_hours is None:
        if hours != int(hours):
            raise ValidationError("Bookings must cover a whole number of hours")
        duration_hours = int(hours)
    if not MIN_BOOKING_HOURS <= duration_hours <= MAX_BOOKING_HOURS:
        raise ValidationError(
            f"duration_hours must be between {MIN_BOOKING_HOURS} and {MAX_BOOKING_HOURS}"
        )
    if duration_hours != hours:
        raise ValidationError("duration_hours does not match the requested interval")
    return duration_hours


def _is_exclusion_violation(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", "") or ""
    return constraint == EXCLUSION_CONSTRAINT or EXCLUSION_CONSTRAINT in str(exc.orig)


class BookingLedger:
    """Owns booking rows: creation, cancellation, status changes and queries."""

    def __init__(self, db: Session, policy: AuthorizationPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or AuthorizationPolicy()

    def _load(self, booking_id: int, *, lock: bool = False) -> models.Booking:
        stmt = (
            select(models.Booking)
            .options(selectinload(models.Booking.room))
            .where(models.Booking.id == booking_id)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        booking = self.db.execute(stmt).scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def get(self, ctx: RequestContext, booking_id: int) -> models.Booking:
        booking = self._load(booking_id)
        self.policy.require_booking_access(ctx.actor, booking)
        return booking

    def create(
        self,
        ctx: RequestContext,
        room_id: int,
        start: datetime,
        end: datetime,
        duration_hours: int | None = None,
        *,
        notes: str | None = None,
        requester_id: int | None = None,
        now: datetime | None = None,
    ) -> models.Booking:
        start, end = to_utc(start), to_utc(end)
        if start >= end:
            raise ValidationError("Start time must be before end time")
        duration_hours = _resolve_duration(start, end, duration_hours)

        requester_id = ctx.actor.requester_id if requester_id is None else requester_id
        if not self.policy.can_book_for(ctx.actor, requester_id):
            raise ForbiddenError("Administrator role required to book for another customer")

        with atomic(self.db, "booking_create", ctx.logger, room_id=room_id):
            # The room row lock serialises concurrent reservations for one room.
            room = self.db.execute(
                select(models.Room).where(models.Room.id == room_id).with_for_update()
            ).scalar_one_or_none()
            if room is None:
                raise NotFoundError("Room not found")
            # Maintenance is a manual override, not the derived occupancy cache.
            if room.status == models.RoomStatus.maintenance:
                raise ConflictError(f"Room '{room.name}' is under maintenance")

            conflicts = availability.find_conflicts(self.db, room.id, start, end)
            if conflicts:
                result = availability.evaluate(room, conflicts, as_utc(now) if now else utc_now(), venue_tz())
                ctx.logger.info(
                    "Booking rejected: interval taken",
                    extra={"room_id": room.id, "conflict_ids": [b.id for b in conflicts]},
                )
                raise ConflictError(
                    result.message,
                    next_available=result.next_available,
                    conflicts=result.conflicts_payload(),
                )

            booking = models.Booking(
                room_id=room.id,
                requester_id=requester_id,
                start_time=start,
                end_time=end,
                duration_hours=duration_hours,
                total_price=(Decimal(str(room.price_per_hour)) * duration_hours).quantize(Decimal("0.01")),
                status=models.BookingStatus.active,
                payment_status=models.PaymentStatus.pending,
                notes=notes,
            )
            booking.room = room
            self.db.add(booking)
            try:
                self.db.flush()
            except IntegrityError as exc:
                if not _is_exclusion_violation(exc):
                    raise
                raise ConflictError(
                    f"Room '{room.name}' was booked for an overlapping time by another request"
                ) from exc
            log_audit(
                self.db,
                ctx.actor,
                "booking_created",
                "booking",
                booking.id,
                {"room_id": room.id, "total_price": str(booking.total_price)},
            )
        ctx.logger.info("Booking created", extra={"booking_id": booking.id, "room_id": room_id})
        return booking

    def cancel(self, ctx: RequestContext, booking_id: int, reason: str | None = None) -> models.Booking:
        with atomic(self.db, "booking_cancel", ctx.logger, booking_id=booking_id):
            booking = self._load(booking_id, lock=True)
            if not self.policy.can_cancel_booking(ctx.actor, booking):
                raise ForbiddenError("Only the booking owner or an administrator can cancel it")
            ensure_booking_transition(booking.status, models.BookingStatus.cancelled)
            booking.status = models.BookingStatus.cancelled
            booking.cancelled_at = utc_now()
            booking.cancelled_by = "admin" if ctx.actor.is_admin else "requester"
            booking.cancellation_reason = reason or DEFAULT_CANCEL_REASON
            log_audit(
                self.db,
                ctx.actor,
                "booking_cancelled",
                "booking",
                booking.id,
                {"reason": booking.cancellation_reason, "payment_status": booking.payment_status.value},
            )
        if booking.payment_status == models.PaymentStatus.paid:
            ctx.logger.warning(
                "Cancelled booking was already paid",
                extra={"booking_id": booking.id},
            )
        return booking

    def update_status(self, ctx: RequestContext, booking_id: int, status: str) -> models.Booking:
        self.policy.require_admin(ctx.actor)
        target = parse_enum(models.BookingStatus, status, "status")
        with atomic(self.db, "booking_status_update", ctx.logger, booking_id=booking_id):
            booking = self._load(booking_id, lock=True)
            previous = booking.status
            ensure_booking_transition(previous, target)
            booking.status = target
            now = utc_now()
            if target == models.BookingStatus.cancelled:
                booking.cancelled_at = now
                booking.cancelled_by = "admin"
            elif target == models.BookingStatus.completed:
                booking.completed_at = now
            log_audit(
                self.db,
                ctx.actor,
                "booking_status_changed",
                "booking",
                booking.id,
                {"from": previous.value, "to": target.value},
            )
        return booking

    def update_payment_status(self, ctx: RequestContext, booking_id: int, payment_status: str) -> models.Booking:
        self.policy.require_admin(ctx.actor)
        target = parse_enum(models.PaymentStatus, payment_status, "payment_status")
        with atomic(self.db, "booking_payment_status_update", ctx.logger, booking_id=booking_id):
            booking = self._load(booking_id, lock=True)
            previous = booking.payment_status
            ensure_payment_transition(previous, target)
            booking.payment_status = target
            log_audit(
                self.db,
                ctx.actor,
                "payment_status_changed",
                "booking",
                booking.id,
                {"from": previous.value, "to": target.value},
            )
        return booking

    def correct_price(self, ctx: RequestContext, booking_id: int, total_price: Decimal | float) -> models.Booking:
        self.policy.require_admin(ctx.actor)
        new_price = Decimal(str(total_price)).quantize(Decimal("0.01"))
        if new_price < 0:
            raise ValidationError("total_price cannot be negative")
        with atomic(self.db, "booking_price_correction", ctx.logger, booking_id=booking_id):
            booking = self._load(booking_id, lock=True)
            previous = booking.total_price
            booking.total_price = new_price
            log_audit(
                self.db,
                ctx.actor,
                "booking_price_corrected",
                "booking",
                booking.id,
                {"from": str(previous), "to": str(new_price)},
            )
        return booking

    def purge(self, ctx: RequestContext, booking_id: int) -> None:
        self.policy.require_admin(ctx.actor)
        with atomic(self.db, "booking_purge", ctx.logger, booking_id=booking_id):
            booking = self._load(booking_id, lock=True)
            if booking.status == models.BookingStatus.active:
                raise ConflictError("Active bookings must be cancelled before they can be purged")
            paid_payments = self.db.scalar(
                select(func.count(models.Payment.id)).where(
                    models.Payment.booking_id == booking.id,
                    models.Payment.status == models.PaymentStatus.paid,
                )
            )
            if booking.payment_status == models.PaymentStatus.paid or paid_payments:
                raise ConflictError("Paid bookings must be refunded or reconciled before they can be purged")
            log_audit(
                self.db,
                ctx.actor,
                "booking_purged",
                "booking",
                booking.id,
                {"status": booking.status.value, "payment_status": booking.payment_status.value},
            )
            self.db.delete(booking)
        ctx.logger.info("Booking purged", extra={"booking_id": booking_id})

    def list(self, filters: BookingFilters) -> list[models.Booking]:
        query = self.db.query(models.Booking).options(selectinload(models.Booking.room))
        if filters.requester_id is not None:
            query = query.filter(models.Booking.requester_id == filters.requester_id)
        if filters.room_id is not None:
            query = query.filter(models.Booking.room_id == filters.room_id)
        if filters.status:
            query = query.filter(
                models.Booking.status == parse_enum(models.BookingStatus, filters.status, "status")
            )
        if filters.payment_status:
            query = query.filter(
                models.Booking.payment_status
                == parse_enum(models.PaymentStatus, filters.payment_status, "payment_status")
            )
        if filters.date_from:
            query = query.filter(
                models.Booking.start_time
                >= to_utc(datetime.combine(filters.date_from, time.min))
            )
        if filters.date_to:
            query = query.filter(
                models.Booking.start_time
                < to_utc(datetime.combine(filters.date_to + timedelta(days=1), time.min))
            )
        return (
            query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )

    def list_flagged(self) -> list[models.Booking]:
        return (
            self.db.query(models.Booking)
            .options(selectinload(models.Booking.room))
            .filter(models.Booking.status == models.BookingStatus.cancelled)
            .filter(models.Booking.payment_status == models.PaymentStatus.paid)
            .order_by(models.Booking.cancelled_at.desc())
            .all()
        )

    def get_stats(self, requester_id: int, now: datetime | None = None) -> dict:
        now = as_utc(now) if now else utc_now()
        local = now.astimezone(venue_tz())
        period_start = to_utc(datetime(local.year, local.month, 1))
        base = self.db.query(models.Booking).filter(models.Booking.requester_id == requester_id)

        total_bookings = base.count()
        total_spent = self.db.scalar(
            select(func.coalesce(func.sum(models.Booking.total_price), 0)).where(
                models.Booking.requester_id == requester_id,
                models.Booking.payment_status == models.PaymentStatus.paid,
            )
        )
        next_period = to_utc(datetime(local.year + local.month // 12, local.month % 12 + 1, 1))
        period_bookings = base.filter(
            models.Booking.start_time >= period_start, models.Booking.start_time < next_period
        ).count()
        active_bookings = base.filter(models.Booking.status == models.BookingStatus.active).count()
        return {
            "total_bookings": total_bookings,
            "total_spent": float(total_spent or 0),
            "period_bookings": period_bookings,
            "active_bookings": active_bookings,
        }
