"""Dashboard routes: analytics, settings and exports for the signed-in business."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .analytics import Dashboard
from .auth import business_owner_required, current_business_id, user_store
from .errors import ValidationError
from .routes import booking_ledger, database_error, json_payload, service_catalog
from .schemas import DateRange, SettingsUpdate

bp_dashboard = Blueprint("dashboard", __name__)


def _dashboard() -> Dashboard:
    return Dashboard(booking_ledger(), service_catalog(), user_store())


def _period_days() -> int:
    try:
        return int(request.args.get("period", 30))
    except ValueError:
        raise ValidationError.for_field("period", "Period must be a whole number of days") from None


@bp_dashboard.get("/overview")
@business_owner_required
def overview() -> tuple[dict[str, object], int]:
    """Stats, profile, recent bookings and popular services in one call.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
    responses:
      200:
        description: Dashboard overview
      401:
        description: Missing or invalid token
    """
    date_range = DateRange.from_args(request.args)
    return jsonify({"overview": _dashboard().overview(current_business_id(), date_range)}), 200


@bp_dashboard.get("/analytics/bookings")
@business_owner_required
def booking_analytics() -> tuple[dict[str, object], int]:
    """Daily booking counts and per-service performance over ``period`` days.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - name: period
        in: query
        type: integer
        default: 30
    responses:
      200:
        description: Booking analytics
      400:
        description: Invalid period
    """
    return jsonify({"analytics": _dashboard().booking_analytics(current_business_id(), _period_days())}), 200


@bp_dashboard.get("/analytics/revenue")
@business_owner_required
def revenue_analytics() -> tuple[dict[str, object], int]:
    """Revenue over ``period`` days, per month for the last year, and per category.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - name: period
        in: query
        type: integer
        default: 30
    responses:
      200:
        description: Revenue analytics
    """
    analytics = _dashboard().revenue_analytics(current_business_id(), _period_days())
    return jsonify({"revenue_analytics": analytics}), 200


@bp_dashboard.get("/notifications")
@business_owner_required
def notifications() -> tuple[dict[str, object], int]:
    """Bookings awaiting payment or verification, and tomorrow's appointments.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: Notification feed, newest first
    """
    return jsonify(_dashboard().notification_feed(current_business_id())), 200


@bp_dashboard.get("/settings")
@business_owner_required
def get_settings() -> tuple[dict[str, object], int]:
    """Working hours, notification preferences and branding of the business.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: Current settings
      401:
        description: Missing or invalid token
    """
    return jsonify({"settings": g.current_user.settings or {}}), 200


@bp_dashboard.put("/settings")
@business_owner_required
def update_settings() -> tuple[dict[str, object], int]:
    """Merge working_hours, notification_settings and branding into the stored settings.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            working_hours:
              type: object
            notification_settings:
              type: object
            branding:
              type: object
    responses:
      200:
        description: Settings updated
      400:
        description: Unknown section or section is not an object
    """
    update = SettingsUpdate.from_payload(json_payload())
    try:
        user = user_store().update_settings(current_business_id(), update)
    except SQLAlchemyError as exc:
        return database_error("Failed to update settings", exc)

    return jsonify({"message": "Settings updated successfully", "settings": user.settings}), 200


@bp_dashboard.get("/profile")
@business_owner_required
def profile() -> tuple[dict[str, object], int]:
    """Profile of the signed-in business owner.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: Account profile
      401:
        description: Missing or invalid token
    """
    return jsonify({"profile": g.current_user.to_dict()}), 200


@bp_dashboard.get("/export/bookings")
@business_owner_required
def export_bookings():
    """Download the business's bookings as JSON or CSV.
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - name: format
        in: query
        type: string
        enum: [json, csv]
        default: json
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
    responses:
      200:
        description: Bookings export
      400:
        description: Unsupported format
    """
    output_format = (request.args.get("format") or "json").lower()
    exported = _dashboard().export_bookings(current_business_id(), output_format, DateRange.from_args(request.args))

    if output_format == "csv":
        return Response(
            exported,
            mimetype="text/csv",
            headers={"Content-Disposition": 'attachment; filename="bookings.csv"'},
        )

    return jsonify({
        "bookings": exported,
        "count": len(exported),
        "export_date": datetime.now(timezone.utc).isoformat(),
    }), 200
