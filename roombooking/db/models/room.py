from datetime import datetime, time
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Integer,
    JSON,
    Numeric,
    String,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class RoomStatus(str, PyEnum):
    available = "available"
    occupied = "occupied"
    maintenance = "maintenance"


class Amenity(str, PyEnum):
    projector = "projector"
    whiteboard = "whiteboard"
    video_conference = "video_conference"
    sound_system = "sound_system"
    karaoke = "karaoke"
    air_conditioning = "air_conditioning"
    wifi = "wifi"


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_room_capacity_positive"),
        CheckConstraint("price_per_hour >= 0", name="ck_room_price_non_negative"),
        CheckConstraint("slot_duration_min > 0", name="ck_room_slot_duration_positive"),
        CheckConstraint("break_duration_min >= 0", name="ck_room_break_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(9, 0))
    close_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(23, 0))
    slot_duration_min: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    break_duration_min: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    amenities: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # Derived cache, recomputed by the room status synchronizer.
    status: Mapped[RoomStatus] = mapped_column(Enum(RoomStatus), default=RoomStatus.available)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    bookings = relationship("Booking", back_populates="room")
