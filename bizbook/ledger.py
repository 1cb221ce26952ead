"""Booking ledger: slot conflicts, the status lifecycle and booking statistics.

Bookings are never deleted. Cancelling is a status change, and cancelled
bookings stop occupying their slot.

Status lifecycle::

    pending_payment --proof uploaded--> pending_verification
    pending_verification --verified--> confirmed
    pending_verification --rejected--> pending_payment
    confirmed --owner--> completed              (terminal)
    any status except completed --> cancelled  (terminal)
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from .errors import (AlreadyCompleted, InvalidStatus, InvalidTransition, NotFound, PastDateError, SlotUnavailable,
                     ValidationError)
from .models import BOOKING_STATUSES, Booking
from .schemas import BookingDraft, BookingFilters, DateRange, is_valid_email, is_valid_phone, parse_date, parse_time

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})
REVENUE_STATUSES = frozenset({"confirmed", "completed"})

# Moves the generic status endpoint may make. The dedicated operations
# (proof upload, payment verification, cancel) follow the same graph.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending_payment": frozenset({"pending_verification", "confirmed", "cancelled"}),
    "pending_verification": frozenset({"pending_payment", "confirmed", "cancelled"}),
    "confirmed": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

_locks_guard = threading.Lock()
_business_locks: dict[str, threading.Lock] = {}


def business_lock(business_id: str) -> threading.Lock:
    """Per-business mutex serializing check-then-write on the slot table."""
    with _locks_guard:
        return _business_locks.setdefault(business_id, threading.Lock())


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap: touching intervals do not conflict."""
    return start_a < end_b and end_a > start_b


class BookingLedger:
    def __init__(
        self,
        session,
        now: Callable[[], datetime] = datetime.now,
        reminder_window_minutes: int = 60,
    ) -> None:
        self.session = session
        self.now = now
        self.reminder_window = timedelta(minutes=reminder_window_minutes)

    # --- lookups ---------------------------------------------------------

    def get(self, booking_id: str) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def get_owned(self, booking_id: str, business_id: str) -> Booking:
        """Fetch a booking, treating a business mismatch exactly like a missing id."""
        booking = self.session.get(Booking, booking_id)
        if booking is None or booking.business_id != business_id:
            raise NotFound("Booking not found")
        return booking

    def _find(self, booking_id: str, business_id: str | None) -> Booking:
        return self.get(booking_id) if business_id is None else self.get_owned(booking_id, business_id)

    # --- conflict detection ----------------------------------------------

    def is_slot_available(
        self,
        business_id: str,
        day: date,
        start: time,
        duration: int,
        exclude_id: str | None = None,
    ) -> bool:
        requested_start = datetime.combine(day, start)
        requested_end = requested_start + timedelta(minutes=duration)

        query = self.session.query(Booking).filter(
            Booking.business_id == business_id,
            Booking.date == day,
            Booking.status != "cancelled",
        )
        if exclude_id:
            query = query.filter(Booking.booking_id != exclude_id)

        return not any(
            intervals_overlap(requested_start, requested_end, existing.starts_at, existing.ends_at)
            for existing in query.all()
        )

    # --- creation --------------------------------------------------------

    def _validate(self, draft: BookingDraft) -> tuple[date, time]:
        details: list[dict[str, str]] = []
        required = ("client_name", "client_email", "client_phone", "service_id", "date", "time",
                    "duration", "total_amount", "business_id")
        for key in required:
            if getattr(draft, key) in (None, ""):
                details.append({"field": key, "message": f"{key} is required"})

        day = start = None
        if draft.date not in (None, ""):
            try:
                day = parse_date(draft.date)
            except ValidationError as exc:
                details.extend(exc.details)
        if draft.time not in (None, ""):
            try:
                start = parse_time(draft.time)
            except ValidationError as exc:
                details.extend(exc.details)

        # A past appointment is rejected before anything else is reported.
        if day is not None and start is not None and datetime.combine(day, start) < self.now():
            raise PastDateError()

        if draft.duration not in (None, "") and not draft.duration > 0:
            details.append({"field": "duration", "message": "Duration must be greater than 0"})
        if draft.total_amount not in (None, "") and not draft.total_amount > 0:
            details.append({"field": "total_amount", "message": "Total amount must be greater than 0"})
        if draft.client_email and not is_valid_email(draft.client_email):
            details.append({"field": "client_email", "message": "Invalid email format"})
        if draft.client_phone and not is_valid_phone(draft.client_phone):
            details.append({"field": "client_phone", "message": "Invalid phone number format"})

        if details:
            raise ValidationError("Validation failed", details=details)
        return day, start

    def create(self, draft: BookingDraft) -> Booking:
        day, start = self._validate(draft)

        with business_lock(draft.business_id):
            if not self.is_slot_available(draft.business_id, day, start, draft.duration):
                raise SlotUnavailable()

            booking = Booking(
                business_id=draft.business_id,
                client_name=draft.client_name,
                client_email=draft.client_email.strip().lower(),
                client_phone=draft.client_phone,
                service_id=draft.service_id,
                service_name=draft.service_name,
                date=day,
                time=start,
                duration_minutes=draft.duration,
                total_amount=draft.total_amount,
                notes=draft.notes or "",
                status="pending_payment",
                payment_proof=None,
                payment_verified=False,
                reminder_sent=False,
                confirmation_sent=False,
            )
            self.session.add(booking)
            self.session.commit()

        logger.info("Created booking %s for business %s on %s %s", booking.booking_id,
                    booking.business_id, day.isoformat(), start.strftime("%H:%M"))
        return booking

    # --- lifecycle -------------------------------------------------------

    def _touch(self, booking: Booking) -> None:
        booking.updated_at = datetime.now(timezone.utc)
        self.session.commit()

    def update_status(self, booking_id: str, new_status: str, business_id: str) -> Booking:
        booking = self.get_owned(booking_id, business_id)
        if new_status not in BOOKING_STATUSES:
            raise InvalidStatus(f"Status must be one of: {', '.join(BOOKING_STATUSES)}")
        if new_status != booking.status and new_status not in ALLOWED_TRANSITIONS[booking.status]:
            raise InvalidTransition(f"Cannot change status from '{booking.status}' to '{new_status}'")

        booking.status = new_status
        self._touch(booking)
        return booking

    def upload_payment_proof(self, booking_id: str, proof: str) -> Booking:
        if not proof:
            raise ValidationError.for_field("proof_reference", "Payment proof file is required")
        booking = self.get(booking_id)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Cannot upload payment proof for a {booking.status} booking")

        booking.payment_proof = proof
        booking.status = "pending_verification"
        self._touch(booking)
        return booking

    def verify_payment(self, booking_id: str, business_id: str, verified: bool) -> Booking:
        booking = self.get_owned(booking_id, business_id)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Cannot verify payment for a {booking.status} booking")

        booking.payment_verified = bool(verified)
        booking.status = "confirmed" if verified else "pending_payment"
        self._touch(booking)
        return booking

    def cancel(self, booking_id: str, reason: str = "", business_id: str | None = None) -> Booking:
        booking = self._find(booking_id, business_id)
        if booking.status == "completed":
            raise AlreadyCompleted()

        booking.status = "cancelled"
        booking.cancellation_reason = reason or ""
        self._touch(booking)
        return booking

    def reschedule(self, booking_id: str, new_date, new_time, business_id: str | None = None) -> Booking:
        booking = self._find(booking_id, business_id)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition("Cannot reschedule completed or cancelled booking")

        day = parse_date(new_date, "new_date")
        start = parse_time(new_time, "new_time")
        if datetime.combine(day, start) < self.now():
            raise PastDateError()

        with business_lock(booking.business_id):
            if not self.is_slot_available(booking.business_id, day, start, booking.duration_minutes,
                                          exclude_id=booking.booking_id):
                raise SlotUnavailable()
            if (booking.date, booking.time) != (day, start):
                # reminder_sent refers to the current appointment time.
                booking.reminder_sent = False
            booking.date = day
            booking.time = start
            self._touch(booking)
        return booking

    def mark_reminder_sent(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if not booking.reminder_sent:
            booking.reminder_sent = True
            self._touch(booking)
        return booking

    def mark_confirmation_sent(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if not booking.confirmation_sent:
            booking.confirmation_sent = True
            self._touch(booking)
        return booking

    # --- queries -----------------------------------------------------------

    def list_by_business(self, business_id: str, filters: BookingFilters | None = None) -> list[Booking]:
        filters = filters or BookingFilters()
        query = self.session.query(Booking).filter(Booking.business_id == business_id)
        if filters.status:
            query = query.filter(Booking.status == filters.status)
        if filters.date:
            query = query.filter(Booking.date == filters.date)
        if filters.start_date and filters.end_date:
            query = query.filter(Booking.date >= filters.start_date, Booking.date <= filters.end_date)
        if filters.service_id:
            query = query.filter(Booking.service_id == filters.service_id)
        return query.order_by(Booking.date.asc(), Booking.time.asc()).all()

    def recent(self, business_id: str, limit: int = 5) -> list[Booking]:
        return (
            self.session.query(Booking)
            .filter(Booking.business_id == business_id)
            .order_by(Booking.created_at.desc())
            .limit(limit)
            .all()
        )

    def stats(self, business_id: str, date_range: DateRange | None = None) -> dict[str, object]:
        bookings = self.session.query(Booking).filter(Booking.business_id == business_id).all()
        if date_range:
            bookings = [booking for booking in bookings if date_range.contains(booking.date)]
        return summarize(bookings)

    def reminders_due(self, business_id: str | None = None) -> list[Booking]:
        """Confirmed, un-reminded bookings starting in ``[now, now + window)``."""
        now = self.now()
        window_end = now + self.reminder_window
        query = self.session.query(Booking).filter(
            Booking.status == "confirmed",
            Booking.reminder_sent.is_(False),
            Booking.date >= now.date(),
            Booking.date <= window_end.date(),
        )
        if business_id:
            query = query.filter(Booking.business_id == business_id)
        candidates = query.all()
        due = [booking for booking in candidates if now <= booking.starts_at < window_end]
        return sorted(due, key=lambda booking: booking.starts_at)


def summarize(bookings: list[Booking]) -> dict[str, object]:
    """Count bookings per status and total the revenue of confirmed and completed ones."""
    counts = {status: 0 for status in BOOKING_STATUSES}
    for booking in bookings:
        counts[booking.status] += 1
    return {
        "total": len(bookings),
        **counts,
        "total_revenue": sum(b.total_amount for b in bookings if b.status in REVENUE_STATUSES),
    }
