"""Request payload parsing.

Each payload type lists exactly the keys it accepts. Unknown keys are
rejected up front instead of being silently dropped, and every problem is
reported as a field-level message on a single ``ValidationError``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time

from .errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,14}$")
TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

MIN_PASSWORD_LENGTH = 8


class _Errors:
    """Collects field errors and raises them together."""

    def __init__(self) -> None:
        self.details: list[dict[str, str]] = []

    def add(self, field_name: str, message: str) -> None:
        self.details.append({"field": field_name, "message": message})

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.details:
            raise ValidationError(message, details=self.details)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_RE.match(re.sub(r"\s", "", value or "")))


def parse_date(value: object, field_name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError.for_field(field_name, "Please provide a valid date (YYYY-MM-DD)") from None


def parse_time(value: object, field_name: str = "time") -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = TIME_RE.match(str(value or "").strip())
    if not match:
        raise ValidationError.for_field(field_name, "Please provide a valid time in HH:MM format")
    return time(int(match.group(1)), int(match.group(2)))


def text_field(payload: dict, key: str, *, strip: bool = True) -> str:
    """Read an optional string field; any other JSON type is a validation error."""
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError.for_field(key, f"{key} must be a string")
    return value.strip() if strip else value


def parse_bool(value: object, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    raise ValidationError.for_field(field_name, f"{field_name} must be a boolean")


def _reject_unknown(payload: dict, allowed: set[str]) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(
            "Unknown fields: " + ", ".join(unknown),
            details=[{"field": key, "message": "Field cannot be set"} for key in unknown],
        )


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _check_length(errors: _Errors, key: str, value: str, minimum: int, maximum: int, label: str) -> None:
    if not minimum <= len(value) <= maximum:
        errors.add(key, f"{label} must be between {minimum} and {maximum} characters")


def _number(errors: _Errors, key: str, value: object, *, integer: bool = False) -> float | int | None:
    if isinstance(value, bool) or value is None:
        errors.add(key, f"{key} must be a number")
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.add(key, f"{key} must be a number")
        return None
    if integer:
        if not number.is_integer():
            errors.add(key, f"{key} must be a whole number")
            return None
        return int(number)
    return number


# --- Accounts ---------------------------------------------------------------


@dataclass
class Registration:
    email: str
    password: str
    business_name: str
    owner_name: str
    phone: str
    business_type: str | None = None
    address: str | None = None

    ALLOWED = {"email", "password", "business_name", "owner_name", "phone", "business_type", "address"}

    @classmethod
    def from_payload(cls, payload: dict) -> "Registration":
        _reject_unknown(payload, cls.ALLOWED)
        errors = _Errors()
        email = _text(payload, "email").lower()
        password = payload.get("password") if isinstance(payload.get("password"), str) else ""
        business_name = _text(payload, "business_name")
        owner_name = _text(payload, "owner_name")
        phone = _text(payload, "phone")

        if not is_valid_email(email):
            errors.add("email", "Please provide a valid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            errors.add("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        _check_length(errors, "business_name", business_name, 2, 100, "Business name")
        _check_length(errors, "owner_name", owner_name, 2, 100, "Owner name")
        if not is_valid_phone(phone):
            errors.add("phone", "Please provide a valid phone number")
        address = _text(payload, "address") or None
        if address and len(address) > 200:
            errors.add("address", "Address cannot exceed 200 characters")
        errors.raise_if_any()

        return cls(
            email=email,
            password=password,
            business_name=business_name,
            owner_name=owner_name,
            phone=phone,
            business_type=_text(payload, "business_type") or None,
            address=address,
        )


@dataclass
class ProfileUpdate:
    business_name: str | None = None
    owner_name: str | None = None
    phone: str | None = None
    business_type: str | None = None
    address: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ProfileUpdate":
        _reject_unknown(payload, {f.name for f in fields(cls)})
        errors = _Errors()
        update = cls()
        for key in ("business_name", "owner_name"):
            if key in payload:
                value = _text(payload, key)
                _check_length(errors, key, value, 2, 100, key.replace("_", " ").capitalize())
                setattr(update, key, value)
        if "phone" in payload:
            update.phone = _text(payload, "phone")
            if not is_valid_phone(update.phone):
                errors.add("phone", "Please provide a valid phone number")
        if "business_type" in payload:
            update.business_type = _text(payload, "business_type")
        if "address" in payload:
            update.address = _text(payload, "address")
            if len(update.address) > 200:
                errors.add("address", "Address cannot exceed 200 characters")
        errors.raise_if_any()
        return update

    def changes(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass
class SettingsUpdate:
    working_hours: dict | None = None
    notification_settings: dict | None = None
    branding: dict | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "SettingsUpdate":
        _reject_unknown(payload, {f.name for f in fields(cls)})
        errors = _Errors()
        for key, value in payload.items():
            if not isinstance(value, dict):
                errors.add(key, f"{key} must be an object")
        errors.raise_if_any()
        return cls(**payload)

    def changes(self) -> dict[str, dict]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


# --- Services ---------------------------------------------------------------

SERVICE_FIELDS = ("name", "description", "duration", "price", "category")


def _validate_service_fields(payload: dict, errors: _Errors) -> dict[str, object]:
    values: dict[str, object] = {}
    if "name" in payload:
        name = _text(payload, "name")
        if len(name) < 2:
            errors.add("name", "Service name must be at least 2 characters long")
        elif len(name) > 100:
            errors.add("name", "Service name cannot exceed 100 characters")
        values["name"] = name
    if "description" in payload:
        description = _text(payload, "description")
        if len(description) > 500:
            errors.add("description", "Description cannot exceed 500 characters")
        values["description"] = description
    if "duration" in payload:
        duration = _number(errors, "duration", payload.get("duration"), integer=True)
        if duration is not None:
            if not 15 <= duration <= 480:
                errors.add("duration", "Duration must be between 15 and 480 minutes")
            values["duration"] = duration
    if "price" in payload:
        price = _number(errors, "price", payload.get("price"))
        if price is not None:
            if not 0 <= price <= 10000:
                errors.add("price", "Price must be between 0 and 10,000")
            values["price"] = price
    if "category" in payload and payload.get("category") is not None:
        category = _text(payload, "category")
        if category:
            _check_length(errors, "category", category, 2, 50, "Category")
            values["category"] = category
    return values


@dataclass
class ServiceCreate:
    name: str
    duration: int
    price: float
    description: str = ""
    category: str = "General"

    @classmethod
    def from_payload(cls, payload: dict) -> "ServiceCreate":
        _reject_unknown(payload, set(SERVICE_FIELDS))
        errors = _Errors()
        for key in ("name", "duration", "price"):
            if payload.get(key) in (None, ""):
                errors.add(key, f"{key} is required")
        errors.raise_if_any("name, duration, and price are required")
        values = _validate_service_fields(payload, errors)
        errors.raise_if_any()
        return cls(**values)


@dataclass
class ServiceUpdate:
    name: str | None = None
    description: str | None = None
    duration: int | None = None
    price: float | None = None
    category: str | None = None
    is_active: bool | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ServiceUpdate":
        if not isinstance(payload, dict):
            raise ValidationError("Update data must be an object")
        _reject_unknown(payload, {f.name for f in fields(cls)})
        errors = _Errors()
        values = _validate_service_fields(payload, errors)
        if "is_active" in payload:
            try:
                values["is_active"] = parse_bool(payload["is_active"], "is_active")
            except ValidationError as exc:
                errors.details.extend(exc.details)
        errors.raise_if_any()
        return cls(**values)

    def changes(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


# --- Bookings ---------------------------------------------------------------


@dataclass
class BookingRequest:
    """Public booking form; the service decides duration, price and business."""

    client_name: str
    client_email: str
    client_phone: str
    service_id: str
    date: str
    time: str
    notes: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "BookingRequest":
        _reject_unknown(payload, {f.name for f in fields(cls)})
        errors = _Errors()
        values = {}
        for key in ("client_name", "client_email", "client_phone", "service_id", "date", "time"):
            values[key] = _text(payload, key)
            if not values[key]:
                errors.add(key, f"{key} is required")
        if values["client_name"]:
            _check_length(errors, "client_name", values["client_name"], 2, 100, "Client name")
        notes = _text(payload, "notes")
        if len(notes) > 500:
            errors.add("notes", "Notes cannot exceed 500 characters")
        errors.raise_if_any()
        return cls(notes=notes, **values)


@dataclass
class BookingDraft:
    """Everything the ledger needs to create a booking."""

    business_id: str
    client_name: str
    client_email: str
    client_phone: str
    service_id: str
    service_name: str
    date: object
    time: object
    duration: int
    total_amount: float
    notes: str = ""


@dataclass
class BookingFilters:
    status: str | None = None
    date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    service_id: str | None = None

    @classmethod
    def from_args(cls, args) -> "BookingFilters":
        filters = cls(status=args.get("status") or None, service_id=args.get("service_id") or None)
        if args.get("date"):
            filters.date = parse_date(args["date"], "date")
        date_range = DateRange.from_args(args)
        if date_range:
            filters.start_date, filters.end_date = date_range.start, date_range.end
        return filters


@dataclass
class DateRange:
    start: date
    end: date

    @classmethod
    def from_args(cls, args) -> "DateRange | None":
        start, end = args.get("start_date"), args.get("end_date")
        if not (start or end):
            return None
        if not (start and end):
            raise ValidationError.for_field("start_date", "start_date and end_date must be provided together")
        return cls(parse_date(start, "start_date"), parse_date(end, "end_date"))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class BulkServiceUpdate:
    updates: list[dict] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "BulkServiceUpdate":
        _reject_unknown(payload, {"updates"})
        updates = payload.get("updates")
        if not isinstance(updates, list):
            raise ValidationError.for_field("updates", "Updates must be an array")
        if not updates:
            raise ValidationError.for_field("updates", "Updates array cannot be empty")
        return cls(updates=updates)
