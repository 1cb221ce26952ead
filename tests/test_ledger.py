"""Tests for the booking ledger: conflicts, lifecycle, statistics and reminders."""
from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from bizbook.catalog import ServiceCatalog
from bizbook.errors import (AlreadyCompleted, InvalidStatus, InvalidTransition, NotFound, PastDateError,
                            SlotUnavailable, ValidationError)
from bizbook.ledger import BookingLedger, intervals_overlap
from bizbook.schemas import BookingFilters, DateRange, ServiceCreate, parse_date

from conftest import FIXED_NOW, make_draft


def test_create_booking_starts_pending_payment(ledger, service):
    booking = ledger.create(make_draft(service))

    assert booking.status == "pending_payment"
    assert booking.payment_proof is None
    assert booking.payment_verified is False
    assert booking.reminder_sent is False
    assert booking.confirmation_sent is False
    assert booking.duration_minutes == 60
    assert len(booking.booking_id) == 32


def test_booking_scenario(session, owner):
    catalog = ServiceCatalog(session)
    ledger = BookingLedger(session, now=lambda: FIXED_NOW)
    service = catalog.create(owner.user_id, ServiceCreate(name="Consultation", duration=60, price=500))

    booking_a = ledger.create(make_draft(service, client_name="Client A", date="2099-01-01", time="10:00"))
    assert booking_a.status == "pending_payment"

    with pytest.raises(SlotUnavailable):
        ledger.create(make_draft(service, client_name="Client B", date="2099-01-01", time="10:30"))

    booking_b = ledger.create(make_draft(service, client_name="Client B", date="2099-01-01", time="11:00"))

    assert ledger.verify_payment(booking_a.booking_id, owner.user_id, True).status == "confirmed"
    assert ledger.cancel(booking_b.booking_id).status == "cancelled"

    stats = ledger.stats(owner.user_id)
    assert stats["total"] == 2
    assert stats["confirmed"] == 1
    assert stats["cancelled"] == 1
    assert stats["total_revenue"] == 500


@pytest.mark.parametrize(
    "start, duration, conflicts",
    [
        ("09:00", 60, False),  # ends exactly when the existing one starts
        ("09:30", 60, True),
        ("10:15", 15, True),  # fully inside
        ("09:00", 180, True),  # fully covers
        ("10:59", 15, True),
        ("11:00", 60, False),  # starts exactly when the existing one ends
    ],
)
def test_overlap_is_half_open(ledger, catalog, owner, service, start, duration, conflicts):
    ledger.create(make_draft(service, time="10:00"))
    other = catalog.create(owner.user_id, ServiceCreate(name=f"Custom {start}", duration=duration, price=100))

    if conflicts:
        with pytest.raises(SlotUnavailable):
            ledger.create(make_draft(other, time=start))
    else:
        assert ledger.create(make_draft(other, time=start)).status == "pending_payment"


def test_intervals_overlap_helper():
    base = datetime(2030, 1, 20, 10, 0)
    hour = timedelta(hours=1)

    assert intervals_overlap(base, base + hour, base + hour / 2, base + 2 * hour)
    assert not intervals_overlap(base, base + hour, base + hour, base + 2 * hour)


def test_cancelled_booking_frees_its_slot(ledger, service):
    first = ledger.create(make_draft(service))
    ledger.cancel(first.booking_id, "client request")

    second = ledger.create(make_draft(service, client_name="Second Client"))

    assert second.status == "pending_payment"


def test_other_business_same_slot_is_allowed(ledger, catalog, other_owner, service):
    elsewhere = catalog.create(other_owner.user_id, ServiceCreate(name="Haircut", duration=60, price=400))
    ledger.create(make_draft(service))

    assert ledger.create(make_draft(elsewhere)).business_id == other_owner.user_id


def test_same_time_on_another_date_is_allowed(ledger, service):
    ledger.create(make_draft(service, date="2030-01-20"))

    assert ledger.create(make_draft(service, date="2030-01-21")).status == "pending_payment"


def test_no_overlaps_after_creates_and_reschedules(ledger, service):
    slots = ["09:00", "10:00", "11:00", "12:00", "13:00"]
    bookings = [ledger.create(make_draft(service, time=slot)) for slot in slots]

    for booking, target in zip(bookings, ["09:30", "14:00", "10:30", "12:00", "15:00"]):
        try:
            ledger.reschedule(booking.booking_id, "2030-01-20", target)
        except SlotUnavailable:
            pass

    active = [b for b in ledger.list_by_business(service.business_id) if b.status != "cancelled"]
    for index, first in enumerate(active):
        for second in active[index + 1:]:
            if first.date == second.date:
                assert not intervals_overlap(first.starts_at, first.ends_at, second.starts_at, second.ends_at)


def test_past_booking_rejected_before_other_validation(ledger, service):
    draft = make_draft(service, date="2030-01-15", time="08:59", client_email="broken", client_phone="nope",
                       total_amount=0)

    with pytest.raises(PastDateError) as excinfo:
        ledger.create(draft)
    assert excinfo.value.code == "past_date"


def test_booking_at_exactly_now_is_allowed(ledger, service):
    assert ledger.create(make_draft(service, date="2030-01-15", time="09:00")).status == "pending_payment"


def test_invalid_booking_fields_are_listed(ledger, service):
    draft = make_draft(service, client_email="not-an-email", client_phone="12-34", duration=0, total_amount=-5)

    with pytest.raises(ValidationError) as excinfo:
        ledger.create(draft)

    fields = {detail["field"] for detail in excinfo.value.details}
    assert fields == {"client_email", "client_phone", "duration", "total_amount"}


def test_phone_accepts_spaces_and_plus(ledger, service):
    booking = ledger.create(make_draft(service, client_phone="+1 555 765 4321"))

    assert booking.client_phone == "+1 555 765 4321"


def test_missing_required_fields(ledger, service):
    with pytest.raises(ValidationError) as excinfo:
        ledger.create(make_draft(service, client_name="", date=None))

    fields = {detail["field"] for detail in excinfo.value.details}
    assert {"client_name", "date"} <= fields


def test_payment_flow(ledger, owner, service):
    booking = ledger.create(make_draft(service))

    booking = ledger.upload_payment_proof(booking.booking_id, "receipt-123.png")
    assert booking.status == "pending_verification"
    assert booking.payment_proof == "receipt-123.png"

    booking = ledger.verify_payment(booking.booking_id, owner.user_id, False)
    assert booking.status == "pending_payment"
    assert booking.payment_verified is False

    booking = ledger.verify_payment(booking.booking_id, owner.user_id, True)
    assert booking.status == "confirmed"
    assert booking.payment_verified is True


def test_verify_payment_for_other_business_is_not_found(ledger, other_owner, service):
    booking = ledger.create(make_draft(service))

    with pytest.raises(NotFound):
        ledger.verify_payment(booking.booking_id, other_owner.user_id, True)


def test_cancel_completed_booking_fails(ledger, owner, service):
    booking = ledger.create(make_draft(service))
    ledger.verify_payment(booking.booking_id, owner.user_id, True)
    ledger.update_status(booking.booking_id, "completed", owner.user_id)

    with pytest.raises(AlreadyCompleted) as excinfo:
        ledger.cancel(booking.booking_id)
    assert excinfo.value.message == "Cannot cancel completed booking"


@pytest.mark.parametrize("status_path", [[], ["pending_verification"], ["pending_verification", "confirmed"]])
def test_cancel_is_terminal(ledger, owner, service, status_path):
    booking = ledger.create(make_draft(service))
    for status in status_path:
        ledger.update_status(booking.booking_id, status, owner.user_id)

    cancelled = ledger.cancel(booking.booking_id, "changed plans")
    assert cancelled.status == "cancelled"
    assert cancelled.cancellation_reason == "changed plans"

    with pytest.raises(InvalidTransition):
        ledger.reschedule(booking.booking_id, "2030-01-22", "10:00")
    with pytest.raises(InvalidTransition):
        ledger.verify_payment(booking.booking_id, owner.user_id, True)
    with pytest.raises(InvalidTransition):
        ledger.upload_payment_proof(booking.booking_id, "late-receipt.png")
    with pytest.raises(InvalidTransition):
        ledger.update_status(booking.booking_id, "confirmed", owner.user_id)


def test_reschedule_completed_booking_fails(ledger, owner, service):
    booking = ledger.create(make_draft(service))
    ledger.update_status(booking.booking_id, "confirmed", owner.user_id)
    ledger.update_status(booking.booking_id, "completed", owner.user_id)

    with pytest.raises(InvalidTransition):
        ledger.reschedule(booking.booking_id, "2030-01-22", "10:00")


def test_reschedule_excludes_itself_from_conflicts(ledger, service):
    booking = ledger.create(make_draft(service, time="10:00"))

    moved = ledger.reschedule(booking.booking_id, "2030-01-20", "10:30")

    assert moved.time.strftime("%H:%M") == "10:30"


def test_reschedule_into_taken_slot_fails(ledger, service):
    ledger.create(make_draft(service, time="10:00"))
    second = ledger.create(make_draft(service, time="12:00"))

    with pytest.raises(SlotUnavailable):
        ledger.reschedule(second.booking_id, "2030-01-20", "10:30")

    assert ledger.get(second.booking_id).time.strftime("%H:%M") == "12:00"


def test_reschedule_into_the_past_fails(ledger, service):
    booking = ledger.create(make_draft(service))

    with pytest.raises(PastDateError):
        ledger.reschedule(booking.booking_id, "2030-01-14", "10:00")


def test_reschedule_clears_reminder_flag(ledger, owner, service):
    booking = ledger.create(make_draft(service))
    ledger.verify_payment(booking.booking_id, owner.user_id, True)
    ledger.mark_reminder_sent(booking.booking_id)

    same_slot = ledger.reschedule(booking.booking_id, "2030-01-20", "10:00")
    assert same_slot.reminder_sent is True

    moved = ledger.reschedule(booking.booking_id, "2030-01-21", "15:00")
    assert moved.reminder_sent is False


def test_update_status_rejects_unknown_value(ledger, owner, service):
    booking = ledger.create(make_draft(service))

    with pytest.raises(InvalidStatus):
        ledger.update_status(booking.booking_id, "archived", owner.user_id)


def test_update_status_enforces_transition_table(ledger, owner, service):
    booking = ledger.create(make_draft(service))

    with pytest.raises(InvalidTransition):
        ledger.update_status(booking.booking_id, "completed", owner.user_id)

    ledger.update_status(booking.booking_id, "confirmed", owner.user_id)
    with pytest.raises(InvalidTransition):
        ledger.update_status(booking.booking_id, "pending_payment", owner.user_id)

    assert ledger.update_status(booking.booking_id, "completed", owner.user_id).status == "completed"


def test_update_status_same_value_is_allowed(ledger, owner, service):
    booking = ledger.create(make_draft(service))

    assert ledger.update_status(booking.booking_id, "pending_payment", owner.user_id).status == "pending_payment"


def test_stats_revenue_counts_only_confirmed_and_completed(ledger, owner, catalog, service):
    amounts = {"pending_payment": 100, "pending_verification": 200, "confirmed": 300, "completed": 400,
               "cancelled": 500}
    paths = {
        "pending_payment": [],
        "pending_verification": ["pending_verification"],
        "confirmed": ["confirmed"],
        "completed": ["confirmed", "completed"],
        "cancelled": ["cancelled"],
    }
    for hour, (status, amount) in enumerate(amounts.items(), start=9):
        priced = catalog.create(owner.user_id, ServiceCreate(name=f"Service {status}", duration=30, price=amount))
        booking = ledger.create(make_draft(priced, time=f"{hour}:00"))
        for step in paths[status]:
            ledger.update_status(booking.booking_id, step, owner.user_id)

    stats = ledger.stats(owner.user_id)

    assert stats["total"] == 5
    for status in amounts:
        assert stats[status] == 1
    assert stats["total_revenue"] == 700


def test_stats_with_date_range(ledger, owner, service):
    ledger.create(make_draft(service, date="2030-01-20"))
    ledger.create(make_draft(service, date="2030-02-20"))

    stats = ledger.stats(owner.user_id, DateRange(date(2030, 1, 1), date(2030, 1, 31)))

    assert stats["total"] == 1


def test_list_filters_and_ordering(ledger, owner, catalog, service):
    beard = catalog.create(owner.user_id, ServiceCreate(name="Beard Trim", duration=30, price=150))
    late = ledger.create(make_draft(service, date="2030-01-21", time="09:00"))
    early = ledger.create(make_draft(service, date="2030-01-20", time="14:00"))
    earliest = ledger.create(make_draft(beard, date="2030-01-20", time="09:00"))
    ledger.cancel(late.booking_id)

    ordered = ledger.list_by_business(owner.user_id)
    assert [b.booking_id for b in ordered] == [earliest.booking_id, early.booking_id, late.booking_id]

    assert [b.booking_id for b in ledger.list_by_business(owner.user_id, BookingFilters(status="cancelled"))] == [
        late.booking_id
    ]
    assert len(ledger.list_by_business(owner.user_id, BookingFilters(date=date(2030, 1, 20)))) == 2
    assert [b.booking_id for b in ledger.list_by_business(owner.user_id, BookingFilters(service_id=beard.service_id))] == [
        earliest.booking_id
    ]
    ranged = BookingFilters(start_date=date(2030, 1, 21), end_date=date(2030, 1, 31))
    assert [b.booking_id for b in ledger.list_by_business(owner.user_id, ranged)] == [late.booking_id]


def test_list_never_crosses_businesses(ledger, catalog, other_owner, service):
    ledger.create(make_draft(service))

    assert ledger.list_by_business(other_owner.user_id) == []


def test_filters_require_both_range_ends():
    with pytest.raises(ValidationError):
        BookingFilters.from_args({"start_date": "2030-01-01"})
    with pytest.raises(ValidationError):
        BookingFilters.from_args({"end_date": "2030-01-31"})


def test_date_range_requires_both_ends():
    assert DateRange.from_args({}) is None
    with pytest.raises(ValidationError):
        DateRange.from_args({"start_date": "2030-01-01"})
    with pytest.raises(ValidationError):
        DateRange.from_args({"end_date": "2030-01-31"})


def test_parse_date_rejects_trailing_text():
    assert parse_date(" 2099-01-01 ") == date(2099, 1, 1)
    with pytest.raises(ValidationError):
        parse_date("2099-01-01garbage")


def test_reminders_due_window(session, owner, service):
    # Bookings are created while "now" is earlier, then checked at FIXED_NOW.
    creator = BookingLedger(session, now=lambda: FIXED_NOW - timedelta(days=1))
    checker = BookingLedger(session, now=lambda: FIXED_NOW)

    unconfirmed = creator.create(make_draft(service, date="2030-01-15", time="09:00", duration=15))
    reminded = creator.create(make_draft(service, date="2030-01-15", time="09:15", duration=15))
    soon = creator.create(make_draft(service, date="2030-01-15", time="09:30"))
    later = creator.create(make_draft(service, date="2030-01-15", time="11:00"))
    for booking in (soon, later, reminded):
        checker.verify_payment(booking.booking_id, owner.user_id, True)
    checker.mark_reminder_sent(reminded.booking_id)

    due = checker.reminders_due()

    assert [b.booking_id for b in due] == [soon.booking_id]
    assert unconfirmed.booking_id not in {b.booking_id for b in due}


def test_reminder_window_is_half_open(session, owner, service):
    creator = BookingLedger(session, now=lambda: FIXED_NOW - timedelta(days=1))
    checker = BookingLedger(session, now=lambda: FIXED_NOW)
    at_now = creator.create(make_draft(service, date="2030-01-15", time="09:00"))
    at_edge = creator.create(make_draft(service, date="2030-01-15", time="10:00"))
    for booking in (at_now, at_edge):
        checker.verify_payment(booking.booking_id, owner.user_id, True)

    assert [b.booking_id for b in checker.reminders_due()] == [at_now.booking_id]


def test_reminders_due_across_midnight(session, owner, service):
    late_evening = datetime(2030, 1, 15, 23, 30)
    creator = BookingLedger(session, now=lambda: FIXED_NOW)
    checker = BookingLedger(session, now=lambda: late_evening)
    booking = creator.create(make_draft(service, date="2030-01-16", time="00:15"))
    checker.verify_payment(booking.booking_id, owner.user_id, True)

    assert [b.booking_id for b in checker.reminders_due()] == [booking.booking_id]


def test_mark_flags_are_idempotent(ledger, service):
    booking = ledger.create(make_draft(service))

    ledger.mark_reminder_sent(booking.booking_id)
    ledger.mark_reminder_sent(booking.booking_id)
    ledger.mark_confirmation_sent(booking.booking_id)
    ledger.mark_confirmation_sent(booking.booking_id)

    refreshed = ledger.get(booking.booking_id)
    assert refreshed.reminder_sent is True
    assert refreshed.confirmation_sent is True


def test_unknown_booking_is_not_found(ledger):
    with pytest.raises(NotFound):
        ledger.get("0" * 32)
    with pytest.raises(NotFound):
        ledger.cancel("0" * 32)
