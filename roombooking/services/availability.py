"""Conflict detection against active bookings.

Reads here are advisory: admission is re-validated under the room lock in
``BookingLedger.create``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any, Iterable

from sqlalchemy import and_, not_, or_, select
from sqlalchemy.orm import Session

from ..core.clock import as_utc, to_utc, utc_now, venue_tz
from ..core.errors import NotFoundError, ValidationError
from ..db import models
from .slot_generator import TimeSlot, operating_window, slots_for_room


@dataclass
class AvailabilityResult:
    room_id: int
    available: bool
    conflicts: list[models.Booking] = field(default_factory=list)
    next_available: datetime | None = None
    message: str = ""

    def conflicts_payload(self) -> list[dict[str, Any]]:
        return [conflict_payload(booking) for booking in self.conflicts]


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    return not (end1 <= start2 or start1 >= end2)


def overlap_clause(start: datetime, end: datetime):
    return not_(or_(models.Booking.end_time <= start, models.Booking.start_time >= end))


def conflict_payload(booking: models.Booking) -> dict[str, Any]:
    return {
        "booking_id": booking.id,
        "start_time": as_utc(booking.start_time).isoformat(),
        "end_time": as_utc(booking.end_time).isoformat(),
    }


def find_conflicts(
    db: Session,
    room_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: int | None = None,
) -> list[models.Booking]:
    stmt = (
        select(models.Booking)
        .where(
            models.Booking.room_id == room_id,
            models.Booking.status == models.BookingStatus.active,
            overlap_clause(start, end),
        )
        .order_by(models.Booking.start_time, models.Booking.id)
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(models.Booking.id != exclude_booking_id)
    return list(db.execute(stmt).scalars().all())


def _format_local(value: datetime, tz: tzinfo) -> str:
    return as_utc(value).astimezone(tz).strftime("%Y-%m-%d %H:%M")


def conflict_message(
    room: models.Room,
    conflicts: list[models.Booking],
    next_available: datetime | None,
    tz: tzinfo,
) -> str:
    first = conflicts[0]
    message = (
        f"Room '{room.name}' is already booked from {_format_local(first.start_time, tz)} "
        f"to {_format_local(first.end_time, tz)}"
    )
    if len(conflicts) > 1:
        message += f" (and {len(conflicts) - 1} more booking(s))"
    if next_available is not None:
        message += f". Next available at {_format_local(next_available, tz)}"
    return message


def evaluate(
    room: models.Room,
    conflicts: list[models.Booking],
    now: datetime,
    tz: tzinfo,
) -> AvailabilityResult:
    if not conflicts:
        return AvailabilityResult(
            room_id=room.id,
            available=True,
            message=f"Room '{room.name}' is available for the requested time",
        )
    future_ends = [as_utc(b.end_time) for b in conflicts if as_utc(b.end_time) > now]
    next_available = min(future_ends) if future_ends else None
    return AvailabilityResult(
        room_id=room.id,
        available=False,
        conflicts=conflicts,
        next_available=next_available,
        message=conflict_message(room, conflicts, next_available, tz),
    )


def check_availability(
    db: Session,
    room_id: int,
    start: datetime,
    end: datetime,
    *,
    now: datetime | None = None,
    exclude_booking_id: int | None = None,
    tz: tzinfo | None = None,
) -> AvailabilityResult:
    start, end = to_utc(start), to_utc(end)
    if start >= end:
        raise ValidationError("Start time must be before end time")
    room = db.get(models.Room, room_id)
    if room is None:
        raise NotFoundError("Room not found")
    conflicts = find_conflicts(db, room_id, start, end, exclude_booking_id)
    return evaluate(room, conflicts, as_utc(now) if now else utc_now(), tz or venue_tz())


def list_available_rooms(
    db: Session,
    start: datetime,
    end: datetime,
    *,
    capacity_min: int | None = None,
) -> list[models.Room]:
    start, end = to_utc(start), to_utc(end)
    if start >= end:
        raise ValidationError("Start time must be before end time")
    busy_rooms = select(models.Booking.room_id).where(
        models.Booking.status == models.BookingStatus.active,
        overlap_clause(start, end),
    )
    stmt = select(models.Room).where(
        models.Room.id.not_in(busy_rooms),
        models.Room.status != models.RoomStatus.maintenance,
    )
    if capacity_min:
        stmt = stmt.where(models.Room.capacity >= capacity_min)
    stmt = stmt.order_by(models.Room.price_per_hour, models.Room.name)
    return list(db.execute(stmt).scalars().all())


def annotate_slots(slots: Iterable[TimeSlot], bookings: list[models.Booking]) -> list[dict[str, Any]]:
    annotated = []
    for slot in slots:
        conflict = next(
            (
                booking
                for booking in bookings
                if overlaps(slot.start, slot.end, as_utc(booking.start_time), as_utc(booking.end_time))
            ),
            None,
        )
        annotated.append(
            {
                "start_time": slot.start,
                "end_time": slot.end,
                "duration_minutes": slot.duration_minutes,
                "available": conflict is None,
                "booking_info": (
                    {
                        "booking_id": conflict.id,
                        "start_time": as_utc(conflict.start_time),
                        "end_time": as_utc(conflict.end_time),
                    }
                    if conflict
                    else None
                ),
            }
        )
    return annotated


def _schedule(room: models.Room, target_date: date, bookings: list[models.Booking], tz: tzinfo) -> dict[str, Any]:
    slots = annotate_slots(slots_for_room(room, target_date, tz), bookings)
    available_count = sum(1 for slot in slots if slot["available"])
    return {
        "room_id": room.id,
        "room_name": room.name,
        "date": target_date,
        "slots": slots,
        "total": len(slots),
        "available_count": available_count,
        "booked_count": len(slots) - available_count,
    }


def _active_bookings_between(
    db: Session, room_ids: list[int], start: datetime, end: datetime
) -> dict[int, list[models.Booking]]:
    grouped: dict[int, list[models.Booking]] = defaultdict(list)
    if not room_ids:
        return grouped
    rows = db.execute(
        select(models.Booking)
        .where(
            models.Booking.room_id.in_(room_ids),
            models.Booking.status == models.BookingStatus.active,
            and_(models.Booking.start_time < end, models.Booking.end_time > start),
        )
        .order_by(models.Booking.start_time)
    ).scalars()
    for booking in rows:
        grouped[booking.room_id].append(booking)
    return grouped


def room_day_schedule(
    db: Session, room_id: int, target_date: date, tz: tzinfo | None = None
) -> dict[str, Any]:
    tz = tz or venue_tz()
    room = db.get(models.Room, room_id)
    if room is None:
        raise NotFoundError("Room not found")
    opens_at, closes_at = operating_window(room.open_time, room.close_time, target_date, tz)
    bookings = _active_bookings_between(db, [room.id], opens_at, closes_at)
    return _schedule(room, target_date, bookings[room.id], tz)


def fleet_availability(db: Session, target_date: date, tz: tzinfo | None = None) -> dict[str, Any]:
    tz = tz or venue_tz()
    rooms = list(
        db.execute(
            select(models.Room)
            .where(models.Room.status != models.RoomStatus.maintenance)
            .order_by(models.Room.price_per_hour, models.Room.name)
        ).scalars()
    )
    windows = [operating_window(r.open_time, r.close_time, target_date, tz) for r in rooms]
    if windows:
        grouped = _active_bookings_between(
            db,
            [room.id for room in rooms],
            min(opens for opens, _ in windows),
            max(closes for _, closes in windows),
        )
    else:
        grouped = {}

    fleet = []
    for room in rooms:
        schedule = _schedule(room, target_date, grouped.get(room.id, []), tz)
        total = schedule["total"]
        schedule["price_per_hour"] = float(room.price_per_hour)
        schedule["capacity"] = room.capacity
        schedule["availability_percentage"] = (
            round(schedule["available_count"] / total * 100) if total else 0
        )
        fleet.append(schedule)

    return {
        "date": target_date,
        "rooms": fleet,
        "summary": {
            "total_rooms": len(fleet),
            "total_slots": sum(room["total"] for room in fleet),
            "available_slots": sum(room["available_count"] for room in fleet),
            "booked_slots": sum(room["booked_count"] for room in fleet),
        },
    }
