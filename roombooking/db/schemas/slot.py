from datetime import date, datetime
from pydantic import BaseModel


class ConflictingBooking(BaseModel):
    booking_id: int
    start_time: datetime
    end_time: datetime


class Slot(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    available: bool
    booking_info: ConflictingBooking | None = None


class RoomSchedule(BaseModel):
    room_id: int
    room_name: str
    date: date
    slots: list[Slot]
    total: int
    available_count: int
    booked_count: int


class FleetRoom(RoomSchedule):
    price_per_hour: float
    capacity: int
    availability_percentage: int


class FleetSummary(BaseModel):
    total_rooms: int
    total_slots: int
    available_slots: int
    booked_slots: int


class FleetAvailability(BaseModel):
    date: date
    rooms: list[FleetRoom]
    summary: FleetSummary
