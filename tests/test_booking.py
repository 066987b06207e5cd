import random
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from roombooking.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from roombooking.db import models
from roombooking.services.booking_service import BookingFilters, BookingLedger


def at(hour, minute=0, day=15):
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


def audit_actions(session, booking_id):
    return [
        entry.action
        for entry in session.query(models.AuditLog)
        .filter(models.AuditLog.entity_type == "booking", models.AuditLog.entity_id == booking_id)
        .order_by(models.AuditLog.id)
    ]


def test_create_booking_prices_and_defaults(db_session, make_room, customer):
    room = make_room(price_per_hour="300")
    ledger = BookingLedger(db_session)

    booking = ledger.create(customer, room.id, at(10), at(11), 1, now=at(8))

    assert booking.total_price == Decimal("300")
    assert booking.status == models.BookingStatus.active
    assert booking.payment_status == models.PaymentStatus.pending
    assert booking.requester_id == customer.actor.requester_id
    assert booking.room_name == "Studio A"
    assert audit_actions(db_session, booking.id) == ["booking_created"]


@pytest.mark.parametrize("hours", range(1, 25))
def test_total_price_is_rate_times_hours(db_session, make_room, customer, hours):
    room = make_room(price_per_hour="250.50")
    ledger = BookingLedger(db_session)

    booking = ledger.create(customer, room.id, at(0), at(0) + timedelta(hours=hours))

    assert booking.duration_hours == hours
    assert booking.total_price == Decimal("250.50") * hours


def test_duration_defaults_to_interval_and_must_match(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)

    assert ledger.create(customer, room.id, at(9), at(12)).duration_hours == 3
    with pytest.raises(ValidationError):
        ledger.create(customer, room.id, at(13), at(15), duration_hours=3)
    with pytest.raises(ValidationError):
        ledger.create(customer, room.id, at(13), at(14, 30))
    with pytest.raises(ValidationError):
        ledger.create(customer, room.id, at(0), at(1, day=16), duration_hours=25)
    with pytest.raises(ValidationError):
        ledger.create(customer, room.id, at(15), at(15))


def test_naive_times_are_venue_local(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)

    booking = ledger.create(customer, room.id, datetime(2030, 1, 15, 14), datetime(2030, 1, 15, 16))

    assert booking.start_time == at(7)


def test_overlapping_booking_is_rejected_with_next_available(db_session, make_room, customer, other_customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    first = ledger.create(customer, room.id, at(14), at(16))

    with pytest.raises(ConflictError) as exc_info:
        ledger.create(other_customer, room.id, at(15), at(17), now=at(8))

    error = exc_info.value
    assert error.next_available == at(16)
    assert [conflict["booking_id"] for conflict in error.conflicts] == [first.id]
    detail = error.to_detail()
    assert detail["next_available"] == at(16).isoformat()
    assert db_session.query(models.Booking).count() == 1


def test_back_to_back_bookings_are_allowed(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    ledger.create(customer, room.id, at(10), at(12))
    ledger.create(customer, room.id, at(12), at(13))
    ledger.create(customer, room.id, at(9), at(10))

    assert db_session.query(models.Booking).count() == 3


def test_active_bookings_never_overlap(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    rng = random.Random(7)
    for _ in range(60):
        start = at(0) + timedelta(hours=rng.randrange(0, 47))
        end = start + timedelta(hours=rng.randrange(1, 5))
        try:
            ledger.create(customer, room.id, start, end)
        except ConflictError:
            pass

    bookings = (
        db_session.query(models.Booking)
        .filter(models.Booking.status == models.BookingStatus.active)
        .order_by(models.Booking.start_time)
        .all()
    )
    assert bookings
    for previous, current in zip(bookings, bookings[1:]):
        assert previous.end_time <= current.start_time


def test_maintenance_and_missing_rooms(db_session, make_room, customer):
    room = make_room(status=models.RoomStatus.maintenance)
    ledger = BookingLedger(db_session)

    with pytest.raises(ConflictError):
        ledger.create(customer, room.id, at(10), at(11))
    with pytest.raises(NotFoundError):
        ledger.create(customer, 404, at(10), at(11))


def test_only_admin_books_on_behalf_of_others(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)

    with pytest.raises(ForbiddenError):
        ledger.create(customer, room.id, at(10), at(11), requester_id=555)
    booking = ledger.create(admin, room.id, at(10), at(11), requester_id=555)
    assert booking.requester_id == 555


def test_get_enforces_ownership(db_session, make_room, customer, other_customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    assert ledger.get(customer, booking.id).id == booking.id
    assert ledger.get(admin, booking.id).id == booking.id
    with pytest.raises(ForbiddenError):
        ledger.get(other_customer, booking.id)
    with pytest.raises(NotFoundError):
        ledger.get(admin, 9999)


def test_cancel_twice_conflicts(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    cancelled = ledger.cancel(customer, booking.id, "plans changed")
    assert cancelled.status == models.BookingStatus.cancelled
    assert cancelled.cancelled_by == "requester"
    assert cancelled.cancellation_reason == "plans changed"
    assert cancelled.payment_status == models.PaymentStatus.pending

    with pytest.raises(ConflictError, match="already cancelled"):
        ledger.cancel(customer, booking.id)


def test_cancelled_interval_can_be_booked_again(db_session, make_room, customer, other_customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))
    ledger.cancel(customer, booking.id)

    rebooked = ledger.create(other_customer, room.id, at(10), at(11))
    assert rebooked.status == models.BookingStatus.active


def test_cancel_requires_owner_or_admin(db_session, make_room, customer, other_customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    with pytest.raises(ForbiddenError):
        ledger.cancel(other_customer, booking.id)
    cancelled = ledger.cancel(admin, booking.id)
    assert cancelled.cancelled_by == "admin"


def test_completed_booking_cannot_be_cancelled(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))
    ledger.update_status(admin, booking.id, "completed")

    with pytest.raises(ConflictError, match="already completed"):
        ledger.cancel(customer, booking.id)


def test_status_updates_follow_transition_table(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    with pytest.raises(ForbiddenError):
        ledger.update_status(customer, booking.id, "completed")
    with pytest.raises(ValidationError):
        ledger.update_status(admin, booking.id, "archived")

    updated = ledger.update_status(admin, booking.id, "completed")
    assert updated.status == models.BookingStatus.completed
    assert updated.completed_at is not None
    with pytest.raises(ConflictError):
        ledger.update_status(admin, booking.id, "active")


def test_payment_status_updates_follow_transition_table(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    with pytest.raises(ValidationError):
        ledger.update_payment_status(admin, booking.id, "settled")
    assert ledger.update_payment_status(admin, booking.id, "paid").payment_status == models.PaymentStatus.paid
    with pytest.raises(ConflictError, match="already paid"):
        ledger.update_payment_status(admin, booking.id, "paid")
    with pytest.raises(ConflictError):
        ledger.update_payment_status(admin, booking.id, "pending")
    assert ledger.update_payment_status(admin, booking.id, "refunded").payment_status == models.PaymentStatus.refunded
    assert "payment_status_changed" in audit_actions(db_session, booking.id)


def test_price_correction_is_admin_only_and_audited(db_session, make_room, customer, admin):
    room = make_room(price_per_hour="300")
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(12))

    with pytest.raises(ForbiddenError):
        ledger.correct_price(customer, booking.id, 100)
    corrected = ledger.correct_price(admin, booking.id, 450)

    assert corrected.total_price == Decimal("450.00")
    entry = (
        db_session.query(models.AuditLog)
        .filter(models.AuditLog.action == "booking_price_corrected")
        .one()
    )
    assert Decimal(entry.payload["from"]) == Decimal("600")
    assert entry.payload["to"] == "450.00"


def test_purge_removes_inactive_bookings_only(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))

    with pytest.raises(ConflictError):
        ledger.purge(admin, booking.id)

    ledger.cancel(customer, booking.id)
    db_session.add(
        models.Payment(
            booking_id=booking.id,
            amount=Decimal("300"),
            method=models.PaymentMethod.card,
            status=models.PaymentStatus.failed,
        )
    )
    db_session.commit()
    ledger.purge(admin, booking.id)

    assert db_session.get(models.Booking, booking.id) is None
    assert db_session.query(models.Payment).count() == 0


def test_list_filters_and_paging(db_session, make_room, customer, other_customer, admin):
    first_room = make_room(name="First")
    second_room = make_room(name="Second")
    ledger = BookingLedger(db_session)
    mine = [
        ledger.create(customer, first_room.id, at(10, day=15), at(11, day=15)),
        ledger.create(customer, second_room.id, at(10, day=16), at(11, day=16)),
        ledger.create(customer, first_room.id, at(10, day=18), at(11, day=18)),
    ]
    ledger.create(other_customer, second_room.id, at(12, day=16), at(13, day=16))
    ledger.cancel(customer, mine[0].id)

    assert len(ledger.list(BookingFilters())) == 4
    own = ledger.list(BookingFilters(requester_id=customer.actor.requester_id))
    assert [b.id for b in own] == [b.id for b in reversed(mine)]
    assert [b.id for b in ledger.list(BookingFilters(room_id=second_room.id, requester_id=101))] == [mine[1].id]
    assert [b.id for b in ledger.list(BookingFilters(status="cancelled"))] == [mine[0].id]
    assert len(ledger.list(BookingFilters(payment_status="pending"))) == 4
    ranged = ledger.list(BookingFilters(date_from=date(2030, 1, 16), date_to=date(2030, 1, 16)))
    assert len(ranged) == 2
    page = ledger.list(BookingFilters(limit=2, offset=1))
    assert len(page) == 2
    with pytest.raises(ValidationError):
        ledger.list(BookingFilters(status="unknown"))


def test_flagged_lists_cancelled_but_paid(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    paid = ledger.create(customer, room.id, at(10), at(11))
    unpaid = ledger.create(customer, room.id, at(12), at(13))
    ledger.update_payment_status(admin, paid.id, "paid")
    ledger.cancel(customer, paid.id)
    ledger.cancel(customer, unpaid.id)

    assert [b.id for b in ledger.list_flagged()] == [paid.id]


def test_stats_for_requester(db_session, make_room, customer, other_customer, admin):
    room = make_room(price_per_hour="200")
    ledger = BookingLedger(db_session)
    paid = ledger.create(customer, room.id, at(10), at(12))
    ledger.create(customer, room.id, at(13), at(14))
    ledger.create(customer, room.id, at(10) - timedelta(days=30), at(11) - timedelta(days=30))
    ledger.create(customer, room.id, at(10) + timedelta(days=30), at(11) + timedelta(days=30))
    ledger.create(other_customer, room.id, at(15), at(16))
    ledger.update_payment_status(admin, paid.id, "paid")

    stats = ledger.get_stats(customer.actor.requester_id, now=at(9))

    assert stats == {
        "total_bookings": 4,
        "total_spent": 400.0,
        "period_bookings": 2,
        "active_bookings": 4,
    }


def test_cancelled_but_paid_booking_cannot_be_purged(db_session, make_room, customer, admin):
    room = make_room()
    ledger = BookingLedger(db_session)
    booking = ledger.create(customer, room.id, at(10), at(11))
    db_session.add(
        models.Payment(
            booking_id=booking.id,
            amount=Decimal("300"),
            method=models.PaymentMethod.cash,
            status=models.PaymentStatus.paid,
            transaction_id="txn-1",
        )
    )
    db_session.commit()
    ledger.update_payment_status(admin, booking.id, "paid")
    ledger.cancel(customer, booking.id)

    with pytest.raises(ConflictError):
        ledger.purge(admin, booking.id)

    assert [b.id for b in ledger.list_flagged()] == [booking.id]
    assert db_session.query(models.Payment).filter_by(transaction_id="txn-1").count() == 1


def test_stats_period_follows_venue_calendar(db_session, make_room, customer):
    room = make_room()
    ledger = BookingLedger(db_session)
    # 03:00 on February 1st in Bangkok is still January 31st in UTC.
    ledger.create(
        customer,
        room.id,
        datetime(2030, 1, 31, 20, tzinfo=timezone.utc),
        datetime(2030, 1, 31, 21, tzinfo=timezone.utc),
    )

    february = ledger.get_stats(customer.actor.requester_id, now=datetime(2030, 2, 10, tzinfo=timezone.utc))
    january = ledger.get_stats(customer.actor.requester_id, now=datetime(2030, 1, 20, tzinfo=timezone.utc))

    assert february["period_bookings"] == 1
    assert january["period_bookings"] == 0
