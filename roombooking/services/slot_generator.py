"""Candidate time slots inside a room's operating hours.

Everything here is pure: no database access, no clock reads. Identical
arguments always produce the identical, finite sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator

from ..core.constants import DEFAULT_BREAK_DURATION, DEFAULT_SLOT_DURATION
from ..core.errors import ValidationError
from ..db import models


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def operating_window(
    open_time: time,
    close_time: time,
    target_date: date,
    tz: tzinfo = timezone.utc,
) -> tuple[datetime, datetime]:
    """Return the opening and closing instants (UTC) for ``target_date``.

    A closing time at or before the opening time means the venue runs past
    midnight and closes on the following day; equal times give a 24 hour
    window.
    """
    opens_at = datetime.combine(target_date, open_time, tzinfo=tz)
    close_date = target_date if close_time > open_time else target_date + timedelta(days=1)
    closes_at = datetime.combine(close_date, close_time, tzinfo=tz)
    return opens_at.astimezone(timezone.utc), closes_at.astimezone(timezone.utc)


def iter_slots(
    open_time: time,
    close_time: time,
    target_date: date,
    slot_duration: timedelta = DEFAULT_SLOT_DURATION,
    break_duration: timedelta = DEFAULT_BREAK_DURATION,
    tz: tzinfo = timezone.utc,
) -> Iterator[TimeSlot]:
    if slot_duration <= timedelta(0):
        raise ValidationError("Slot duration must be positive")
    if break_duration < timedelta(0):
        raise ValidationError("Break duration cannot be negative")

    opens_at, closes_at = operating_window(open_time, close_time, target_date, tz)
    step = slot_duration + break_duration
    current = opens_at
    while current + slot_duration <= closes_at:
        yield TimeSlot(
            start=current.astimezone(tz),
            end=(current + slot_duration).astimezone(tz),
        )
        current += step


def generate_slots(
    open_time: time,
    close_time: time,
    target_date: date,
    slot_duration: timedelta = DEFAULT_SLOT_DURATION,
    break_duration: timedelta = DEFAULT_BREAK_DURATION,
    tz: tzinfo = timezone.utc,
) -> list[TimeSlot]:
    return list(
        iter_slots(open_time, close_time, target_date, slot_duration, break_duration, tz)
    )


def slots_for_room(room: models.Room, target_date: date, tz: tzinfo = timezone.utc) -> list[TimeSlot]:
    return generate_slots(
        room.open_time,
        room.close_time,
        target_date,
        slot_duration=timedelta(minutes=room.slot_duration_min),
        break_duration=timedelta(minutes=room.break_duration_min),
        tz=tz,
    )
