"""Database models for the bizbook backend."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from .extensions import db

BOOKING_STATUSES = (
    "pending_payment",
    "pending_verification",
    "confirmed",
    "completed",
    "cancelled",
)

NOTIFICATION_KINDS = (
    "booking_confirmation",
    "payment_confirmed",
    "booking_cancelled",
    "booking_rescheduled",
    "appointment_reminder",
    "new_booking_owner",
)


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class User(db.Model):
    """A business owner account; the tenant boundary for services and bookings."""

    __tablename__ = "users"

    user_id = db.Column(db.String(32), primary_key=True, default=new_id)
    # Uniqueness only applies among active accounts, so it is enforced by UserStore.
    email = db.Column(db.String(255), nullable=False, index=True)
    business_name = db.Column(db.String(100), nullable=False)
    owner_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30))
    business_type = db.Column(db.String(100))
    address = db.Column(db.String(200))
    role = db.Column(
        db.Enum(
            "business_owner",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="business_owner",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)

    def to_dict(self) -> dict[str, object]:
        # Never includes the password hash; that lives on AuthAccount.
        return {
            "id": self.user_id,
            "email": self.email,
            "business_name": self.business_name,
            "owner_name": self.owner_name,
            "phone": self.phone,
            "business_type": self.business_type,
            "address": self.address,
            "role": self.role,
            "is_active": bool(self.is_active),
            "settings": self.settings or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.String(32), db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Service(db.Model):
    """A service offering in a business catalog."""

    __tablename__ = "services"

    service_id = db.Column(db.String(32), primary_key=True, default=new_id)
    business_id = db.Column(db.String(32), db.ForeignKey("users.user_id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    duration_minutes = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Float, nullable=False)
    category = db.Column(db.String(50), nullable=False, default="General")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    business = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description or "",
            "duration": self.duration_minutes,
            "price": self.price,
            "category": self.category,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Booking(db.Model):
    """A client appointment held in the booking ledger.

    ``date`` and ``time`` are the business's local calendar day and clock
    time; the occupied interval is ``[starts_at, ends_at)``.
    """

    __tablename__ = "bookings"

    booking_id = db.Column(db.String(32), primary_key=True, default=new_id)
    business_id = db.Column(db.String(32), db.ForeignKey("users.user_id"), nullable=False, index=True)
    service_id = db.Column(db.String(32), db.ForeignKey("services.service_id"), nullable=False)
    service_name = db.Column(db.String(100), nullable=False)
    client_name = db.Column(db.String(100), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(30), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.Time, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, nullable=False, default="")
    status = db.Column(
        db.Enum(
            *BOOKING_STATUSES,
            name="booking_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="pending_payment",
    )
    payment_proof = db.Column(db.String(500))
    payment_verified = db.Column(db.Boolean, nullable=False, default=False)
    reminder_sent = db.Column(db.Boolean, nullable=False, default=False)
    confirmation_sent = db.Column(db.Boolean, nullable=False, default=False)
    cancellation_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    service = db.relationship("Service")

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "business_id": self.business_id,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "date": self.date.isoformat() if self.date else None,
            "time": self.time.strftime("%H:%M") if self.time else None,
            "duration": self.duration_minutes,
            "total_amount": self.total_amount,
            "notes": self.notes or "",
            "status": self.status,
            "payment_proof": self.payment_proof,
            "payment_verified": bool(self.payment_verified),
            "reminder_sent": bool(self.reminder_sent),
            "confirmation_sent": bool(self.confirmation_sent),
            "cancellation_reason": self.cancellation_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Notification(db.Model):
    """Outbound email waiting in (or already drained from) the outbox."""

    __tablename__ = "notifications"

    notification_id = db.Column(db.String(32), primary_key=True, default=new_id)
    booking_id = db.Column(db.String(32), db.ForeignKey("bookings.booking_id"), nullable=True)
    business_id = db.Column(db.String(32), db.ForeignKey("users.user_id"), nullable=True)
    kind = db.Column(
        db.Enum(
            *NOTIFICATION_KINDS,
            name="notification_kind",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    recipient = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(200), nullable=False)
    body_text = db.Column(db.Text, nullable=False)
    body_html = db.Column(db.Text)
    status = db.Column(
        db.Enum(
            "pending",
            "sent",
            "failed",
            name="notification_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="pending",
    )
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text)
    next_attempt_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    sent_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    booking = db.relationship("Booking")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "booking_id": self.booking_id,
            "business_id": self.business_id,
            "kind": self.kind,
            "recipient": self.recipient,
            "subject": self.subject,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "next_attempt_at": _iso(self.next_attempt_at),
            "sent_at": _iso(self.sent_at),
            "created_at": _iso(self.created_at),
        }
