from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ...api import deps
from ...core.context import RequestContext
from ...db import schemas
from ...services.booking_service import BookingFilters, BookingLedger

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    ctx: RequestContext = Depends(deps.get_context),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.create(
        ctx,
        payload.room_id,
        payload.start_time,
        payload.end_time,
        payload.duration_hours,
        notes=payload.notes,
        requester_id=payload.requester_id,
    )


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    requester_id: int | None = None,
    room_id: int | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    payment_status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    ctx: RequestContext = Depends(deps.get_context),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    if not ctx.actor.is_admin:
        requester_id = ctx.actor.requester_id
    filters = BookingFilters(
        requester_id=requester_id,
        room_id=room_id,
        status=status_filter,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return ledger.list(filters)


@router.get("/stats", response_model=schemas.BookingStats)
def booking_stats(
    requester_id: int | None = None,
    ctx: RequestContext = Depends(deps.get_context),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    if requester_id is None or not ctx.actor.is_admin:
        requester_id = ctx.actor.requester_id
    return ledger.get_stats(requester_id)


@router.get("/flagged", response_model=list[schemas.Booking])
def flagged_bookings(
    _: RequestContext = Depends(deps.require_admin),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.list_flagged()


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(
    booking_id: int,
    ctx: RequestContext = Depends(deps.get_context),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.get(ctx, booking_id)


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel | None = None,
    ctx: RequestContext = Depends(deps.get_context),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.cancel(ctx, booking_id, payload.reason if payload else None)


@router.patch("/{booking_id}/status", response_model=schemas.Booking)
def update_booking_status(
    booking_id: int,
    payload: schemas.BookingStatusUpdate,
    ctx: RequestContext = Depends(deps.require_admin),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.update_status(ctx, booking_id, payload.status)


@router.patch("/{booking_id}/payment-status", response_model=schemas.Booking)
def update_booking_payment_status(
    booking_id: int,
    payload: schemas.BookingPaymentStatusUpdate,
    ctx: RequestContext = Depends(deps.require_admin),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.update_payment_status(ctx, booking_id, payload.payment_status)


@router.patch("/{booking_id}/price", response_model=schemas.Booking)
def correct_booking_price(
    booking_id: int,
    payload: schemas.BookingPriceCorrection,
    ctx: RequestContext = Depends(deps.require_admin),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    return ledger.correct_price(ctx, booking_id, payload.total_price)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def purge_booking(
    booking_id: int,
    ctx: RequestContext = Depends(deps.require_admin),
    ledger: BookingLedger = Depends(deps.get_ledger),
):
    ledger.purge(ctx, booking_id)
