from datetime import datetime, time
from pydantic import BaseModel, Field, field_validator

from ..models.room import Amenity, RoomStatus


class RoomBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    capacity: int = Field(default=1, gt=0)
    price_per_hour: float = Field(ge=0)
    open_time: time = time(9, 0)
    close_time: time = time(23, 0)
    slot_duration_min: int = Field(default=60, gt=0)
    break_duration_min: int = Field(default=10, ge=0)
    amenities: list[Amenity] = Field(default_factory=list)

    @field_validator("amenities")
    @classmethod
    def unique_amenities(cls, value: list[Amenity]) -> list[Amenity]:
        return list(dict.fromkeys(value))


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    capacity: int | None = Field(default=None, gt=0)
    price_per_hour: float | None = Field(default=None, ge=0)
    open_time: time | None = None
    close_time: time | None = None
    slot_duration_min: int | None = Field(default=None, gt=0)
    break_duration_min: int | None = Field(default=None, ge=0)
    amenities: list[Amenity] | None = None
    status: RoomStatus | None = None


class Room(RoomBase):
    id: int
    status: RoomStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class RoomAvailability(BaseModel):
    room_id: int
    available: bool
    conflicts: list[dict]
    next_available: datetime | None = None
    message: str
