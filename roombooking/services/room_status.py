from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import as_utc, utc_now
from ..db import models
from .audit_service import log_audit
from .unit_of_work import atomic

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    completed_bookings: list[int] = field(default_factory=list)
    rooms_updated: list[int] = field(default_factory=list)


def _sync_room(db: Session, room_id: int, now: datetime, report: SyncReport) -> None:
    room = db.execute(
        select(models.Room)
        .where(models.Room.id == room_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if room is None:
        return

    active = list(
        db.execute(
            select(models.Booking).where(
                models.Booking.room_id == room.id,
                models.Booking.status == models.BookingStatus.active,
                models.Booking.start_time <= now,
            )
        ).scalars()
    )
    occupied = False
    for booking in active:
        if as_utc(booking.end_time) <= now:
            booking.status = models.BookingStatus.completed
            booking.completed_at = now
            log_audit(db, None, "booking_completed", "booking", booking.id, {"end_time": as_utc(booking.end_time).isoformat()})
            report.completed_bookings.append(booking.id)
        else:
            occupied = True

    if room.status == models.RoomStatus.maintenance:
        return
    target = models.RoomStatus.occupied if occupied else models.RoomStatus.available
    if room.status != target:
        room.status = target
        report.rooms_updated.append(room.id)


def synchronize_room_status(db: Session, now: datetime | None = None) -> SyncReport:
    """Complete bookings that have ended and derive each room's occupancy.

    Each room is handled in its own transaction under the room lock, so a
    reservation for that room never interleaves with its sync. Running it
    twice for the same ``now`` changes nothing the second time.
    """
    now = as_utc(now) if now else utc_now()
    report = SyncReport()
    room_ids = list(db.execute(select(models.Room.id).order_by(models.Room.id)).scalars())
    db.commit()
    for room_id in room_ids:
        with atomic(db, "room_status_sync", logger, room_id=room_id):
            _sync_room(db, room_id, now, report)
    if report.completed_bookings or report.rooms_updated:
        logger.info(
            "Room status synchronised",
            extra={
                "completed_bookings": report.completed_bookings,
                "rooms_updated": report.rooms_updated,
            },
        )
    return report
