"""HTTP routes for the bizbook backend: accounts, services and bookings."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth import authenticate_request, business_owner_required, current_business_id, user_store
from .catalog import ServiceCatalog
from .errors import Forbidden, ValidationError
from .extensions import db
from .ledger import BookingLedger
from .models import User
from .notifications import NotificationDispatcher, NotificationOutbox
from .schemas import (BookingDraft, BookingFilters, BookingRequest, BulkServiceUpdate, DateRange, ProfileUpdate,
                      Registration, ServiceCreate, ServiceUpdate, parse_bool, text_field)

bp = Blueprint("api", __name__)


def register_routes(app: Flask) -> None:
    from .routes_dashboard import bp_dashboard

    app.register_blueprint(bp, url_prefix="/api")
    app.register_blueprint(bp_dashboard, url_prefix="/api/dashboard")


# --- per-request stores -------------------------------------------------


def service_catalog() -> ServiceCatalog:
    return ServiceCatalog(
        db.session,
        day_start=current_app.config.get("AVAILABILITY_DAY_START", "09:00"),
        day_end=current_app.config.get("AVAILABILITY_DAY_END", "17:00"),
    )


def booking_ledger() -> BookingLedger:
    return BookingLedger(
        db.session,
        reminder_window_minutes=current_app.config.get("REMINDER_WINDOW_MINUTES", 60),
    )


def notification_outbox() -> NotificationOutbox:
    return NotificationOutbox(db.session)


def deliver(*notifications) -> None:
    """Send freshly queued notifications now; failures stay queued for retry."""
    queued = [notification for notification in notifications if notification is not None]
    if not queued or not current_app.config.get("NOTIFICATION_DISPATCH_INLINE", True):
        return
    try:
        NotificationDispatcher.from_config(db.session, current_app.config).dispatch(queued)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to record notification delivery", exc_info=exc)


def json_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def database_error(message: str, exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
    """
    return jsonify({"status": "ok", "version": current_app.config.get("API_VERSION", "1.0.0")}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- BEGIN: Accounts ------------------------------------------------------


@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new business owner account.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
              minLength: 8
            business_name:
              type: string
            owner_name:
              type: string
            phone:
              type: string
            business_type:
              type: string
            address:
              type: string
          required:
            - email
            - password
            - business_name
            - owner_name
            - phone
    responses:
      201:
        description: User registered successfully, returns access token
      400:
        description: Invalid payload
      409:
        description: Email already in use
      500:
        description: Server error
    """
    registration = Registration.from_payload(json_payload())
    store = user_store()

    try:
        user = store.register(registration)
    except SQLAlchemyError as exc:
        return database_error("Failed to register new user", exc)

    token = store.issue_token(user)
    return jsonify({"message": "User registered successfully", "token": token, "user": user.to_dict()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a business owner by email/password and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
          required:
            - email
            - password
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid email or password
      500:
        description: Server error
    """
    payload = json_payload()
    email = text_field(payload, "email").lower()
    password = text_field(payload, "password", strip=False)

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    store = user_store()
    try:
        user = store.authenticate(email, password)
    except SQLAlchemyError as exc:
        return database_error("Failed to update last login timestamp", exc)

    return jsonify({"message": "Login successful", "token": store.issue_token(user), "user": user.to_dict()}), 200


@bp.get("/auth/profile")
@business_owner_required
def get_profile() -> tuple[dict[str, object], int]:
    """Return the signed-in account.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Current user profile
      401:
        description: Missing or invalid token
    """
    return jsonify({"user": g.current_user.to_dict()}), 200


@bp.put("/auth/profile")
@business_owner_required
def update_profile() -> tuple[dict[str, object], int]:
    """Update business_name, owner_name, phone, business_type or address.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Profile updated
      400:
        description: Invalid or unknown fields
    """
    update = ProfileUpdate.from_payload(json_payload())
    try:
        user = user_store().update_profile(current_business_id(), update)
    except SQLAlchemyError as exc:
        return database_error("Failed to update profile", exc)

    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()}), 200


@bp.put("/auth/change-password")
@business_owner_required
def change_password() -> tuple[dict[str, str], int]:
    """Change the password after checking the current one.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            current_password:
              type: string
            new_password:
              type: string
              minLength: 8
    responses:
      200:
        description: Password changed
      400:
        description: Current password incorrect or new password too short
    """
    payload = json_payload()
    current_password = text_field(payload, "current_password", strip=False)
    new_password = text_field(payload, "new_password", strip=False)
    if not current_password or not new_password:
        return (
            jsonify({"error": "invalid_payload", "message": "current_password and new_password are required"}),
            400,
        )

    try:
        user_store().change_password(current_business_id(), current_password, new_password)
    except SQLAlchemyError as exc:
        return database_error("Failed to change password", exc)

    return jsonify({"message": "Password changed successfully"}), 200


@bp.delete("/auth/account")
@business_owner_required
def delete_account() -> tuple[dict[str, str], int]:
    """Deactivate the signed-in account. Existing tokens stop working.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Account deactivated
    """
    try:
        user_store().deactivate(current_business_id())
    except SQLAlchemyError as exc:
        return database_error("Failed to deactivate account", exc)

    return jsonify({"message": "Account deleted successfully"}), 200


@bp.post("/auth/logout")
@business_owner_required
def logout() -> tuple[dict[str, str], int]:
    """Log out. Tokens are stateless, so the client discards its copy.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Missing or invalid token
    """
    return jsonify({"message": "Logged out successfully"}), 200


# --- END: Accounts --------------------------------------------------------

# --- BEGIN: Services ------------------------------------------------------


def _required_business_id() -> str:
    business_id = (request.args.get("business_id") or "").strip()
    if not business_id:
        raise ValidationError.for_field("business_id", "business_id query parameter is required")
    return business_id


@bp.get("/services")
def list_services() -> tuple[dict[str, object], int]:
    """List a business's services sorted by name.
    ---
    tags:
      - Services
    parameters:
      - name: business_id
        in: query
        type: string
        required: true
      - name: include_inactive
        in: query
        type: boolean
        default: false
        description: Owner only; requires a bearer token for the same business.
    responses:
      200:
        description: Services of the business
      400:
        description: business_id missing
      403:
        description: include_inactive requested for another business
    """
    business_id = _required_business_id()
    include_inactive = parse_bool(request.args.get("include_inactive", "false"), "include_inactive")
    if include_inactive:
        authenticate_request()
        if g.current_user.user_id != business_id:
            raise Forbidden("Inactive services are only visible to their owner")

    services = service_catalog().list_by_business(business_id, include_inactive=include_inactive)
    return jsonify({"services": [service.to_dict() for service in services], "count": len(services)}), 200


@bp.get("/services/categories")
def list_service_categories() -> tuple[dict[str, list[str]], int]:
    """Distinct categories of a business's active services.
    ---
    tags:
      - Services
    parameters:
      - name: business_id
        in: query
        type: string
        required: true
    responses:
      200:
        description: Sorted category names
    """
    return jsonify({"categories": service_catalog().categories(_required_business_id())}), 200


@bp.get("/services/category/<category>")
def list_services_by_category(category: str) -> tuple[dict[str, object], int]:
    """Active services of one category.
    ---
    tags:
      - Services
    parameters:
      - name: category
        in: path
        type: string
        required: true
      - name: business_id
        in: query
        type: string
        required: true
    responses:
      200:
        description: Services in the category
    """
    services = service_catalog().by_category(_required_business_id(), category)
    return jsonify({"category": category, "services": [service.to_dict() for service in services]}), 200


@bp.get("/services/search")
def search_services() -> tuple[dict[str, object], int]:
    """Case-insensitive search over name, description and category.
    ---
    tags:
      - Services
    parameters:
      - name: business_id
        in: query
        type: string
        required: true
      - name: q
        in: query
        type: string
        required: true
    responses:
      200:
        description: Matching active services
      400:
        description: Missing search term
    """
    business_id = _required_business_id()
    term = (request.args.get("q") or "").strip()
    if not term:
        return jsonify({"error": "invalid_payload", "message": "Search query is required"}), 400

    services = service_catalog().search(business_id, term)
    return jsonify({"query": term, "services": [service.to_dict() for service in services],
                    "count": len(services)}), 200


@bp.get("/services/stats")
@business_owner_required
def service_stats() -> tuple[dict[str, object], int]:
    """Counts and averages over all of the owner's services.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    responses:
      200:
        description: Service statistics
    """
    return jsonify({"stats": service_catalog().stats(current_business_id())}), 200


@bp.get("/services/popular")
@business_owner_required
def popular_services() -> tuple[dict[str, object], int]:
    """Most recently added active services.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: limit
        in: query
        type: integer
        default: 5
    responses:
      200:
        description: Popular services
    """
    try:
        limit = int(request.args.get("limit", 5))
    except ValueError:
        return jsonify({"error": "invalid_payload", "message": "limit must be an integer"}), 400
    if limit < 1:
        return jsonify({"error": "invalid_payload", "message": "limit must be positive"}), 400

    services = service_catalog().popular(current_business_id(), limit=limit)
    return jsonify({"services": [service.to_dict() for service in services]}), 200


@bp.put("/services/bulk")
@business_owner_required
def bulk_update_services() -> tuple[dict[str, object], int]:
    """Apply several service updates and report each outcome.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            updates:
              type: array
              items:
                type: object
                properties:
                  id:
                    type: string
                  data:
                    type: object
    responses:
      200:
        description: Per-item results
      400:
        description: updates missing or empty
    """
    bulk = BulkServiceUpdate.from_payload(json_payload())
    try:
        results = service_catalog().bulk_update(current_business_id(), bulk.updates)
    except SQLAlchemyError as exc:
        return database_error("Failed to bulk update services", exc)

    succeeded = sum(1 for result in results if result["success"])
    return jsonify({"message": f"{succeeded} of {len(results)} services updated", "results": results}), 200


@bp.get("/services/<service_id>")
def get_service(service_id: str) -> tuple[dict[str, object], int]:
    """Fetch a single service.
    ---
    tags:
      - Services
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: The service
      404:
        description: Service not found
    """
    return jsonify({"service": service_catalog().get(service_id).to_dict()}), 200


@bp.post("/services")
@business_owner_required
def create_service() -> tuple[dict[str, object], int]:
    """Create a new service for the signed-in business.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            name:
              type: string
            description:
              type: string
            duration:
              type: integer
              minimum: 15
              maximum: 480
            price:
              type: number
              minimum: 0
              maximum: 10000
            category:
              type: string
    responses:
      201:
        description: Service created successfully
      400:
        description: Invalid input
      409:
        description: An active service with this name already exists
      500:
        description: Database error
    """
    data = ServiceCreate.from_payload(json_payload())
    try:
        service = service_catalog().create(current_business_id(), data)
    except SQLAlchemyError as exc:
        return database_error("Failed to create service", exc)

    return jsonify({"message": "Service created successfully", "service": service.to_dict()}), 201


@bp.put("/services/<service_id>")
@business_owner_required
def update_service(service_id: str) -> tuple[dict[str, object], int]:
    """Partially update one of the owner's services.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Service updated
      400:
        description: Invalid or unknown fields
      404:
        description: Service not found
      409:
        description: Name clashes with another active service
    """
    update = ServiceUpdate.from_payload(json_payload())
    try:
        service = service_catalog().update(service_id, current_business_id(), update)
    except SQLAlchemyError as exc:
        return database_error("Failed to update service", exc)

    return jsonify({"message": "Service updated successfully", "service": service.to_dict()}), 200


@bp.delete("/services/<service_id>")
@business_owner_required
def delete_service(service_id: str) -> tuple[dict[str, str], int]:
    """Deactivate a service; its bookings are kept.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    responses:
      200:
        description: Service deleted
      404:
        description: Service not found
    """
    try:
        service_catalog().soft_delete(service_id, current_business_id())
    except SQLAlchemyError as exc:
        return database_error("Failed to delete service", exc)

    return jsonify({"message": "Service deleted successfully"}), 200


@bp.get("/services/<service_id>/availability")
def service_availability(service_id: str) -> tuple[dict[str, object], int]:
    """Candidate start times for a service on a date.
    ---
    tags:
      - Services
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
    responses:
      200:
        description: Candidate slots
      400:
        description: Missing or invalid date
      404:
        description: Service not found or inactive
    """
    day = request.args.get("date")
    if not day:
        return jsonify({"error": "invalid_payload", "message": "Date parameter is required"}), 400
    return jsonify({"availability": service_catalog().availability(None, service_id, day)}), 200


# --- END: Services --------------------------------------------------------

# --- BEGIN: Bookings ------------------------------------------------------


@bp.post("/bookings")
def create_booking() -> tuple[dict[str, object], int]:
    """Book an appointment for a client (public).
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            client_name:
              type: string
            client_email:
              type: string
            client_phone:
              type: string
            service_id:
              type: string
            date:
              type: string
              format: date
            time:
              type: string
              example: "10:00"
            notes:
              type: string
    responses:
      201:
        description: Booking created with status pending_payment
      400:
        description: Invalid payload or date in the past
      404:
        description: Service not found or inactive
      409:
        description: Selected time slot is not available
    """
    booking_request = BookingRequest.from_payload(json_payload())
    service = service_catalog().get_active(booking_request.service_id)

    draft = BookingDraft(
        business_id=service.business_id,
        client_name=booking_request.client_name,
        client_email=booking_request.client_email,
        client_phone=booking_request.client_phone,
        service_id=service.service_id,
        service_name=service.name,
        date=booking_request.date,
        time=booking_request.time,
        duration=service.duration_minutes,
        total_amount=service.price,
        notes=booking_request.notes,
    )
    try:
        booking = booking_ledger().create(draft)
    except SQLAlchemyError as exc:
        return database_error("Failed to create booking", exc)

    outbox = notification_outbox()
    queued = [outbox.enqueue("booking_confirmation", booking)]
    owner = db.session.get(User, booking.business_id)
    if owner is not None:
        queued.append(outbox.notify_owner(booking, owner))
    deliver(*queued)

    return jsonify({"message": "Booking created successfully", "booking": booking.to_dict()}), 201


@bp.get("/bookings")
@business_owner_required
def list_bookings() -> tuple[dict[str, object], int]:
    """List the owner's bookings ordered by date and time.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [pending_payment, pending_verification, confirmed, completed, cancelled]
      - name: date
        in: query
        type: string
        format: date
      - name: start_date
        in: query
        type: string
        format: date
      - name: end_date
        in: query
        type: string
        format: date
      - name: service_id
        in: query
        type: string
    responses:
      200:
        description: Matching bookings
      400:
        description: Invalid filter
    """
    filters = BookingFilters.from_args(request.args)
    bookings = booking_ledger().list_by_business(current_business_id(), filters)
    return jsonify({"bookings": [booking.to_dict() for booking in bookings], "count": len(bookings)}), 200


@bp.get("/bookings/stats")
@business_owner_required
def booking_stats() -> tuple[dict[str, object], int]:
    """Per-status counts and revenue, optionally within start_date..end_date.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    responses:
      200:
        description: Booking statistics
    """
    stats = booking_ledger().stats(current_business_id(), DateRange.from_args(request.args))
    return jsonify({"stats": stats}), 200


@bp.get("/bookings/availability/<service_id>")
def booking_availability(service_id: str) -> tuple[dict[str, object], int]:
    """Same grid as ``/services/<id>/availability``, kept for the booking form.
    ---
    tags:
      - Bookings
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
    responses:
      200:
        description: Candidate slots
      400:
        description: Missing or invalid date
      404:
        description: Service not found or inactive
    """
    day = request.args.get("date")
    if not day:
        return jsonify({"error": "invalid_payload", "message": "Date parameter is required"}), 400
    return jsonify({"availability": service_catalog().availability(None, service_id, day)}), 200


@bp.get("/bookings/reminders/pending")
@business_owner_required
def pending_reminders() -> tuple[dict[str, object], int]:
    """Confirmed bookings of this business starting within the reminder window.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    responses:
      200:
        description: Bookings needing a reminder
    """
    bookings = booking_ledger().reminders_due(current_business_id())
    return jsonify({"bookings": [booking.to_dict() for booking in bookings], "count": len(bookings)}), 200


@bp.get("/bookings/<booking_id>")
@business_owner_required
def get_booking(booking_id: str) -> tuple[dict[str, object], int]:
    """Fetch one of the owner's bookings.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    responses:
      200:
        description: The booking
      404:
        description: Booking not found
    """
    return jsonify({"booking": booking_ledger().get_owned(booking_id, current_business_id()).to_dict()}), 200


@bp.put("/bookings/<booking_id>/status")
@business_owner_required
def update_booking_status(booking_id: str) -> tuple[dict[str, object], int]:
    """Move a booking along its lifecycle.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [pending_payment, pending_verification, confirmed, completed, cancelled]
    responses:
      200:
        description: Status updated
      400:
        description: Unknown status or transition not allowed
      404:
        description: Booking not found
    """
    status = text_field(json_payload(), "status")
    if not status:
        return jsonify({"error": "invalid_payload", "message": "status is required"}), 400

    try:
        booking = booking_ledger().update_status(booking_id, status, current_business_id())
    except SQLAlchemyError as exc:
        return database_error("Failed to update booking status", exc)

    return jsonify({"message": "Booking status updated successfully", "booking": booking.to_dict()}), 200


@bp.post("/bookings/<booking_id>/payment-proof")
def upload_payment_proof(booking_id: str) -> tuple[dict[str, object], int]:
    """Attach a payment proof reference; the booking awaits verification.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            proof_reference:
              type: string
    responses:
      200:
        description: Proof stored, status pending_verification
      400:
        description: Missing proof or booking already closed
      404:
        description: Booking not found
    """
    proof = text_field(json_payload(), "proof_reference")
    try:
        booking = booking_ledger().upload_payment_proof(booking_id, proof)
    except SQLAlchemyError as exc:
        return database_error("Failed to store payment proof", exc)

    return jsonify({"message": "Payment proof uploaded successfully", "booking": booking.to_dict()}), 200


@bp.put("/bookings/<booking_id>/verify-payment")
@business_owner_required
def verify_payment(booking_id: str) -> tuple[dict[str, object], int]:
    """Accept or reject a payment.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            is_verified:
              type: boolean
    responses:
      200:
        description: Booking confirmed, or returned to pending_payment
      400:
        description: is_verified missing or booking already closed
      404:
        description: Booking not found
    """
    payload = json_payload()
    if "is_verified" not in payload:
        return jsonify({"error": "invalid_payload", "message": "is_verified is required"}), 400
    is_verified = parse_bool(payload["is_verified"], "is_verified")

    try:
        booking = booking_ledger().verify_payment(booking_id, current_business_id(), is_verified)
    except SQLAlchemyError as exc:
        return database_error("Failed to verify payment", exc)

    if is_verified:
        deliver(notification_outbox().enqueue("payment_confirmed", booking))
    outcome = "verified" if is_verified else "rejected"
    return jsonify({"message": f"Payment {outcome} successfully", "booking": booking.to_dict()}), 200


@bp.post("/bookings/<booking_id>/cancel")
def cancel_booking(booking_id: str) -> tuple[dict[str, object], int]:
    """Cancel a booking that has not been completed.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        schema:
          type: object
          properties:
            reason:
              type: string
    responses:
      200:
        description: Booking cancelled
      400:
        description: Booking already completed
      404:
        description: Booking not found
    """
    reason = text_field(json_payload(), "reason")
    try:
        booking = booking_ledger().cancel(booking_id, reason)
    except SQLAlchemyError as exc:
        return database_error("Failed to cancel booking", exc)

    deliver(notification_outbox().enqueue("booking_cancelled", booking))
    return jsonify({"message": "Booking cancelled successfully", "booking": booking.to_dict()}), 200


@bp.put("/bookings/<booking_id>/reschedule")
def reschedule_booking(booking_id: str) -> tuple[dict[str, object], int]:
    """Move a booking to a new date and time.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            new_date:
              type: string
              format: date
            new_time:
              type: string
              example: "14:30"
    responses:
      200:
        description: Booking rescheduled
      400:
        description: Invalid date/time or booking already closed
      404:
        description: Booking not found
      409:
        description: Selected time slot is not available
    """
    payload = json_payload()
    new_date = payload.get("new_date")
    new_time = payload.get("new_time")
    if not new_date or not new_time:
        return jsonify({"error": "invalid_payload", "message": "new_date and new_time are required"}), 400

    try:
        booking = booking_ledger().reschedule(booking_id, new_date, new_time)
    except SQLAlchemyError as exc:
        return database_error("Failed to reschedule booking", exc)

    deliver(notification_outbox().enqueue("booking_rescheduled", booking))
    return jsonify({"message": "Booking rescheduled successfully", "booking": booking.to_dict()}), 200


@bp.put("/bookings/<booking_id>/mark-reminder-sent")
@business_owner_required
def mark_reminder_sent(booking_id: str) -> tuple[dict[str, object], int]:
    """Flag a booking's reminder as sent. Repeating the call changes nothing.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    responses:
      200:
        description: Reminder marked as sent
      404:
        description: Booking not found
    """
    ledger = booking_ledger()
    ledger.get_owned(booking_id, current_business_id())
    try:
        booking = ledger.mark_reminder_sent(booking_id)
    except SQLAlchemyError as exc:
        return database_error("Failed to mark reminder as sent", exc)

    return jsonify({"message": "Reminder marked as sent", "booking": booking.to_dict()}), 200


# --- END: Bookings --------------------------------------------------------
