"""Dashboard aggregates for a single business."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from .errors import ValidationError
from .ledger import REVENUE_STATUSES, summarize
from .schemas import DateRange

EXPORT_FORMATS = ("json", "csv")

EXPORT_COLUMNS = (
    "id",
    "service_name",
    "client_name",
    "client_email",
    "client_phone",
    "date",
    "time",
    "duration",
    "total_amount",
    "status",
    "payment_verified",
    "notes",
    "created_at",
)


def _revenue(bookings) -> float:
    return sum(booking.total_amount for booking in bookings if booking.status in REVENUE_STATUSES)


def _as_utc(stamp: datetime, *, naive_is_utc: bool) -> datetime:
    if stamp.tzinfo is None and naive_is_utc:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp.astimezone(timezone.utc)


class Dashboard:
    def __init__(self, ledger, catalog, store) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.store = store

    def _today(self) -> date:
        return self.ledger.now().date()

    def _period(self, period_days: int) -> DateRange:
        if period_days < 1:
            raise ValidationError.for_field("period", "Period must be a positive number of days")
        today = self._today()
        return DateRange(today - timedelta(days=period_days), today)

    def overview(self, business_id: str, date_range: DateRange | None = None) -> dict[str, object]:
        return {
            "booking_stats": self.ledger.stats(business_id, date_range),
            "service_stats": self.catalog.stats(business_id),
            "user": self.store.get(business_id).to_dict(),
            "recent_bookings": [b.to_dict() for b in self.ledger.recent(business_id, limit=5)],
            "popular_services": [s.to_dict() for s in self.catalog.popular(business_id, limit=5)],
            "date_range": _range_dict(date_range),
        }

    def booking_analytics(self, business_id: str, period_days: int = 30) -> dict[str, object]:
        period = self._period(period_days)
        bookings = self.ledger.list_by_business(business_id)
        in_period = [b for b in bookings if period.contains(b.date)]

        by_day: dict[date, list] = {}
        for booking in in_period:
            by_day.setdefault(booking.date, []).append(booking)

        daily = []
        day = period.start
        while day <= period.end:
            day_bookings = by_day.get(day, [])
            daily.append({"date": day.isoformat(), "count": len(day_bookings), "revenue": _revenue(day_bookings)})
            day += timedelta(days=1)

        service_performance = []
        for service in self.catalog.list_by_business(business_id):
            service_bookings = [b for b in bookings if b.service_id == service.service_id]
            booked = [b for b in service_bookings if b.status in REVENUE_STATUSES]
            service_performance.append(
                {
                    "service_id": service.service_id,
                    "service_name": service.name,
                    "total_bookings": len(service_bookings),
                    "confirmed_bookings": len(booked),
                    "revenue": _revenue(booked),
                }
            )

        return {
            "period": period_days,
            "date_range": _range_dict(period),
            "booking_stats": summarize(in_period),
            "daily_bookings": daily,
            "service_performance": service_performance,
        }

    def revenue_analytics(self, business_id: str, period_days: int = 30) -> dict[str, object]:
        period = self._period(period_days)
        bookings = self.ledger.list_by_business(business_id)

        monthly = []
        first_of_month = self._today().replace(day=1)
        for offset in range(11, -1, -1):
            month_start = first_of_month - relativedelta(months=offset)
            month_end = month_start + relativedelta(months=1) - timedelta(days=1)
            month_bookings = [b for b in bookings if month_start <= b.date <= month_end]
            monthly.append(
                {
                    "month": month_start.strftime("%Y-%m"),
                    "month_name": month_start.strftime("%B %Y"),
                    "revenue": _revenue(month_bookings),
                    "bookings": sum(1 for b in month_bookings if b.status in REVENUE_STATUSES),
                }
            )

        services = self.catalog.list_by_business(business_id)
        by_category = []
        for category in sorted({service.category for service in services}):
            service_ids = {s.service_id for s in services if s.category == category}
            booked = [b for b in bookings if b.service_id in service_ids and b.status in REVENUE_STATUSES]
            by_category.append({"category": category, "revenue": _revenue(booked), "bookings": len(booked)})

        return {
            "period": period_days,
            "date_range": _range_dict(period),
            "total_revenue": _revenue(b for b in bookings if period.contains(b.date)),
            "monthly_revenue": monthly,
            "revenue_by_category": by_category,
        }

    def notification_feed(self, business_id: str) -> dict[str, object]:
        """Synthetic feed: unpaid or unverified bookings plus tomorrow's appointments."""
        bookings = self.ledger.list_by_business(business_id)
        now = self.ledger.now()
        tomorrow = now.date() + timedelta(days=1)
        # created_at is stored as UTC without an offset; the ledger clock is local time.
        now_utc = _as_utc(now, naive_is_utc=False)
        feed = []

        for booking in bookings:
            if booking.status in ("pending_payment", "pending_verification"):
                feed.append(
                    {
                        "id": f"booking-{booking.booking_id}",
                        "type": "new_booking",
                        "title": "New Booking",
                        "message": f"{booking.client_name} booked {booking.service_name} for "
                                   f"{booking.date.strftime('%b %d, %Y')} at {booking.time.strftime('%H:%M')}",
                        "data": booking.to_dict(),
                        "timestamp": _as_utc(booking.created_at, naive_is_utc=True),
                        "read": False,
                    }
                )

        for booking in bookings:
            if booking.date == tomorrow and booking.status != "cancelled":
                feed.append(
                    {
                        "id": f"upcoming-{booking.booking_id}",
                        "type": "upcoming_appointment",
                        "title": "Upcoming Appointment",
                        "message": f"{booking.client_name} has an appointment tomorrow at "
                                   f"{booking.time.strftime('%H:%M')}",
                        "data": booking.to_dict(),
                        "timestamp": now_utc,
                        "read": False,
                    }
                )

        feed.sort(key=lambda item: item["timestamp"], reverse=True)
        for item in feed:
            item["timestamp"] = item["timestamp"].isoformat()
        return {
            "notifications": feed,
            "count": len(feed),
            "unread_count": sum(1 for item in feed if not item["read"]),
        }

    def export_bookings(self, business_id: str, fmt: str = "json", date_range: DateRange | None = None):
        """Return the business's bookings as a list of dicts (json) or CSV text."""
        if fmt not in EXPORT_FORMATS:
            raise ValidationError.for_field("format", "Format must be one of: json, csv")
        bookings = self.ledger.list_by_business(business_id)
        if date_range:
            bookings = [b for b in bookings if date_range.contains(b.date)]
        rows = [booking.to_dict() for booking in bookings]
        if fmt == "json":
            return rows

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_COLUMNS)
        for row in rows:
            writer.writerow([row[column] for column in EXPORT_COLUMNS])
        csv_content = output.getvalue()
        output.close()
        return csv_content


def _range_dict(date_range: DateRange | None) -> dict[str, str] | None:
    if date_range is None:
        return None
    return {"start_date": date_range.start.isoformat(), "end_date": date_range.end.isoformat()}
