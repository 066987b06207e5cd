from datetime import time
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roombooking.api import deps
from roombooking.api.errors import register_exception_handlers
from roombooking.api.routes import bookings, misc, payments, rooms
from roombooking.config import get_settings
from roombooking.core.context import Actor, RequestContext, Role
from roombooking.db import models
from roombooking.db.session import Base, build_engine, get_db
from roombooking.services.payments import StubGateway


@pytest.fixture()
def db_session():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_room(db_session):
    def factory(
        name: str = "Studio A",
        price_per_hour: str = "300",
        capacity: int = 6,
        status: models.RoomStatus = models.RoomStatus.available,
        open_time: time = time(0, 0),
        close_time: time = time(0, 0),
    ) -> models.Room:
        room = models.Room(
            name=name,
            capacity=capacity,
            price_per_hour=Decimal(price_per_hour),
            open_time=open_time,
            close_time=close_time,
            slot_duration_min=60,
            break_duration_min=10,
            amenities=[models.Amenity.wifi.value],
            status=status,
        )
        db_session.add(room)
        db_session.commit()
        return room

    return factory


@pytest.fixture()
def customer():
    return RequestContext(actor=Actor(requester_id=101))


@pytest.fixture()
def other_customer():
    return RequestContext(actor=Actor(requester_id=202))


@pytest.fixture()
def admin():
    return RequestContext(actor=Actor(requester_id=1, role=Role.admin))


@pytest.fixture()
def api_client():
    engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    current = {"actor": Actor(requester_id=101)}
    gateway = StubGateway(get_settings())

    test_app = FastAPI()
    register_exception_handlers(test_app)
    for module in (rooms, bookings, payments, misc):
        test_app.include_router(module.router, prefix="/api/v1")

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_current_actor] = lambda: current["actor"]
    test_app.dependency_overrides[deps.get_gateway] = lambda: gateway

    def act_as(requester_id: int, role: Role = Role.customer) -> None:
        current["actor"] = Actor(requester_id=requester_id, role=role)

    with TestClient(test_app) as client:
        yield client, TestingSessionLocal, act_as

    test_app.dependency_overrides.clear()
    engine.dispose()
