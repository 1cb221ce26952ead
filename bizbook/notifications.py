"""Transactional email: an outbox table drained by a retrying dispatcher.

Booking lifecycle events call ``NotificationOutbox.enqueue`` which writes a
``pending`` row rendered from the Jinja2 templates in ``templates/emails``.
The request that queued it hands the row straight to
``NotificationDispatcher.dispatch``; ``dispatch_pending`` (run by
``scripts/dispatch_notifications.py``) retries whatever failed, with
exponential backoff.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from collections.abc import Callable
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape
from sqlalchemy.exc import SQLAlchemyError

from .models import Booking, Notification, User, utc_now

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised by an ``EmailSender`` when a message could not be handed off."""


# Bodies live in templates/emails/<kind>.html and <kind>.txt.
SUBJECTS: dict[str, str] = {
    "booking_confirmation": "Booking Confirmation - Payment Required",
    "payment_confirmed": "Payment Confirmed - Your Appointment is Confirmed",
    "booking_cancelled": "Appointment Cancelled",
    "booking_rescheduled": "Appointment Rescheduled",
    "appointment_reminder": "Appointment Reminder",
    "new_booking_owner": "New Booking Received",
}

_email_env = Environment(
    loader=PackageLoader("bizbook", "templates/emails"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def _details(booking: Booking) -> list[tuple[str, str]]:
    rows = [
        ("Service", booking.service_name),
        ("Date", booking.date.strftime("%A, %B %d, %Y")),
        ("Time", booking.time.strftime("%H:%M")),
        ("Duration", f"{booking.duration_minutes} minutes"),
        ("Amount", f"{booking.total_amount:.2f}"),
        ("Booking ID", booking.booking_id),
    ]
    if booking.status == "cancelled" and booking.cancellation_reason:
        rows.append(("Reason", booking.cancellation_reason))
    return rows


def render(kind: str, booking: Booking) -> tuple[str, str, str]:
    """Return ``(subject, text_body, html_body)`` for a booking event."""
    subject = SUBJECTS[kind]
    details = _details(booking)
    if kind == "new_booking_owner":
        details = [("Client", booking.client_name), ("Email", booking.client_email),
                   ("Phone", booking.client_phone)] + details
    context = {"booking": booking, "details": details}
    text_body = _email_env.get_template(f"{kind}.txt").render(**context)
    html_body = _email_env.get_template(f"{kind}.html").render(**context)
    return subject, text_body, html_body


class NotificationOutbox:
    def __init__(self, session) -> None:
        self.session = session

    def enqueue(self, kind: str, booking: Booking, recipient: str | None = None) -> Notification | None:
        """Store a pending notification; failures are logged, never raised."""
        try:
            subject, text_body, html_body = render(kind, booking)
            notification = Notification(
                booking_id=booking.booking_id,
                business_id=booking.business_id,
                kind=kind,
                recipient=recipient or booking.client_email,
                subject=subject,
                body_text=text_body,
                body_html=html_body,
                status="pending",
                attempts=0,
                next_attempt_at=utc_now(),
            )
            self.session.add(notification)
            self.session.commit()
        except (SQLAlchemyError, TemplateError, KeyError, AttributeError, TypeError) as exc:
            self.session.rollback()
            logger.error("Could not queue %s notification for booking %s: %s", kind,
                         getattr(booking, "booking_id", None), exc)
            return None
        return notification

    def notify_owner(self, booking: Booking, owner: User) -> Notification | None:
        """Tell the business owner about a new booking, if they opted in."""
        preferences = (owner.settings or {}).get("notification_settings") or {}
        if not preferences.get("email_notifications", True):
            return None
        return self.enqueue("new_booking_owner", booking, recipient=owner.email)

    def pending(self, business_id: str | None = None) -> list[Notification]:
        query = self.session.query(Notification).filter(Notification.status == "pending")
        if business_id:
            query = query.filter(Notification.business_id == business_id)
        return query.order_by(Notification.created_at.asc()).all()


class EmailSender:
    """Hands messages to an SMTP relay."""

    def __init__(
        self,
        server: str | None,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        default_sender: str = "no-reply@bizbook.local",
        suppress: bool = False,
        timeout: int = 30,
    ) -> None:
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.default_sender = default_sender
        self.suppress = suppress
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "EmailSender":
        return cls(
            server=config.get("MAIL_SERVER"),
            port=config.get("MAIL_PORT", 587),
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=config.get("MAIL_USE_TLS", True),
            default_sender=config.get("MAIL_DEFAULT_SENDER", "no-reply@bizbook.local"),
            suppress=config.get("MAIL_SUPPRESS_SEND", False),
        )

    def build_message(self, recipient: str, subject: str, text_body: str, html_body: str | None) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.default_sender
        message["To"] = recipient
        message.attach(MIMEText(text_body, "plain"))
        if html_body:
            message.attach(MIMEText(html_body, "html"))
        return message

    def send(self, recipient: str, subject: str, text_body: str, html_body: str | None = None) -> None:
        if self.suppress:
            logger.info("Mail suppressed: %r to %s", subject, recipient)
            return
        if not self.server:
            raise DeliveryError("MAIL_SERVER is not configured")

        message = self.build_message(recipient, subject, text_body, html_body)
        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(str(exc)) from exc
        logger.info("Sent %r to %s via %s", subject, recipient, self.server)


class NotificationDispatcher:
    def __init__(
        self,
        session,
        sender: EmailSender,
        max_attempts: int = 5,
        retry_base_seconds: int = 60,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.sender = sender
        self.max_attempts = max_attempts
        self.retry_base_seconds = retry_base_seconds
        self.now = now

    @classmethod
    def from_config(cls, session, config) -> "NotificationDispatcher":
        return cls(
            session,
            EmailSender.from_config(config),
            max_attempts=config.get("NOTIFICATION_MAX_ATTEMPTS", 5),
            retry_base_seconds=config.get("NOTIFICATION_RETRY_BASE_SECONDS", 60),
        )

    def due(self, limit: int | None = None) -> list[Notification]:
        query = (
            self.session.query(Notification)
            .filter(Notification.status == "pending", Notification.next_attempt_at <= self.now())
            .order_by(Notification.next_attempt_at.asc(), Notification.created_at.asc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def _mark_sent(self, notification: Notification, now: datetime) -> None:
        notification.status = "sent"
        notification.sent_at = now
        notification.last_error = None
        booking = notification.booking
        if booking is None:
            return
        if notification.kind == "booking_confirmation":
            booking.confirmation_sent = True
        elif notification.kind == "appointment_reminder":
            booking.reminder_sent = True

    def _mark_failed(self, notification: Notification, now: datetime, error: str) -> str:
        notification.attempts = (notification.attempts or 0) + 1
        notification.last_error = error
        if notification.attempts >= self.max_attempts:
            notification.status = "failed"
            logger.error("Giving up on notification %s after %d attempts: %s",
                         notification.notification_id, notification.attempts, error)
            return "failed"
        delay = self.retry_base_seconds * 2 ** (notification.attempts - 1)
        notification.next_attempt_at = now + timedelta(seconds=delay)
        logger.warning("Notification %s failed (attempt %d), retrying in %ds: %s",
                       notification.notification_id, notification.attempts, delay, error)
        return "retrying"

    def dispatch(self, notifications) -> dict[str, int]:
        """Try each notification once, committing after every attempt."""
        summary = {"sent": 0, "retrying": 0, "failed": 0}
        for notification in notifications:
            now = self.now()
            try:
                self.sender.send(
                    notification.recipient,
                    notification.subject,
                    notification.body_text,
                    notification.body_html,
                )
            except DeliveryError as exc:
                summary[self._mark_failed(notification, now, str(exc))] += 1
            else:
                self._mark_sent(notification, now)
                summary["sent"] += 1
            self.session.commit()
        return summary

    def dispatch_pending(self, limit: int | None = None) -> dict[str, int]:
        return self.dispatch(self.due(limit))


def queue_due_reminders(ledger, outbox: NotificationOutbox) -> int:
    """Queue a reminder for every booking in the reminder window.

    Each booking is marked reminder-sent as soon as its reminder is queued,
    so running this again does not queue a duplicate.
    """
    queued = 0
    for booking in ledger.reminders_due():
        if outbox.enqueue("appointment_reminder", booking) is None:
            continue
        ledger.mark_reminder_sent(booking.booking_id)
        queued += 1
    return queued
