from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...api import deps
from ...core.context import RequestContext
from ...db import models, schemas
from ...db.session import get_db
from ...services import availability, room_status
from ...services.audit_service import log_audit

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=list[schemas.Room])
def list_rooms(
    status_filter: models.RoomStatus | None = Query(default=None, alias="status"),
    capacity_min: int | None = None,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    query = db.query(models.Room)
    if status_filter:
        query = query.filter(models.Room.status == status_filter)
    if capacity_min:
        query = query.filter(models.Room.capacity >= capacity_min)
    return query.order_by(models.Room.price_per_hour, models.Room.name).all()


@router.get("/available", response_model=list[schemas.Room])
def list_available_rooms(
    start: datetime,
    end: datetime,
    capacity_min: int | None = None,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    return availability.list_available_rooms(db, start, end, capacity_min=capacity_min)


@router.get("/availability/{target_date}", response_model=schemas.FleetAvailability)
def fleet_availability(
    target_date: date,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    return availability.fleet_availability(db, target_date)


@router.post("/sync")
def sync_room_status(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(deps.require_admin),
):
    report = room_status.synchronize_room_status(db)
    ctx.logger.info("Manual room status sync", extra={"rooms_updated": report.rooms_updated})
    return {
        "completed_bookings": report.completed_bookings,
        "rooms_updated": report.rooms_updated,
    }


@router.get("/{room_id}", response_model=schemas.Room)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    room = db.get(models.Room, room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.post("", response_model=schemas.Room, status_code=status.HTTP_201_CREATED)
def create_room(
    payload: schemas.RoomCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(deps.require_admin),
):
    data = payload.model_dump()
    data["amenities"] = [amenity.value for amenity in payload.amenities]
    room = models.Room(**data)
    db.add(room)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Room name already exists") from exc
    log_audit(db, ctx.actor, "room_created", "room", room.id, {"name": room.name})
    db.commit()
    db.refresh(room)
    return room


@router.patch("/{room_id}", response_model=schemas.Room)
def update_room(
    room_id: int,
    payload: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(deps.require_admin),
):
    room = db.get(models.Room, room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    changes = payload.model_dump(exclude_unset=True)
    if "amenities" in changes:
        changes["amenities"] = [amenity.value for amenity in payload.amenities or []]
    for key, value in changes.items():
        setattr(room, key, value)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Room name already exists") from exc
    log_audit(
        db,
        ctx.actor,
        "room_updated",
        "room",
        room.id,
        payload.model_dump(mode="json", exclude_unset=True),
    )
    db.commit()
    db.refresh(room)
    return room


@router.get("/{room_id}/availability", response_model=schemas.RoomAvailability)
def check_room_availability(
    room_id: int,
    start: datetime,
    end: datetime,
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    result = availability.check_availability(db, room_id, start, end)
    return {
        "room_id": result.room_id,
        "available": result.available,
        "conflicts": result.conflicts_payload(),
        "next_available": result.next_available,
        "message": result.message,
    }


@router.get("/{room_id}/slots", response_model=schemas.RoomSchedule)
def room_slots(
    room_id: int,
    target_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
    _: RequestContext = Depends(deps.get_context),
):
    return availability.room_day_schedule(db, room_id, target_date)
