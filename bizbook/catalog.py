"""Service catalog: the offerings each business can be booked for."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func

from .errors import BizbookError, DuplicateService, NotFound
from .models import Service
from .schemas import ServiceCreate, ServiceUpdate, parse_date, parse_time

logger = logging.getLogger(__name__)


class ServiceCatalog:
    def __init__(self, session, day_start: str = "09:00", day_end: str = "17:00") -> None:
        self.session = session
        self.day_start = parse_time(day_start, "day_start")
        self.day_end = parse_time(day_end, "day_end")

    def _query(self, business_id: str):
        return self.session.query(Service).filter(Service.business_id == business_id)

    def _name_taken(self, business_id: str, name: str, exclude_id: str | None = None) -> bool:
        query = self._query(business_id).filter(
            func.lower(Service.name) == name.lower(),
            Service.is_active.is_(True),
        )
        if exclude_id:
            query = query.filter(Service.service_id != exclude_id)
        return self.session.query(query.exists()).scalar()

    def get(self, service_id: str) -> Service:
        service = self.session.get(Service, service_id)
        if service is None:
            raise NotFound("Service not found")
        return service

    def get_active(self, service_id: str) -> Service:
        service = self.session.get(Service, service_id)
        if service is None or not service.is_active:
            raise NotFound("Service not found or inactive")
        return service

    def get_owned(self, service_id: str, business_id: str) -> Service:
        """Fetch a service, treating a business mismatch exactly like a missing id."""
        service = self.session.get(Service, service_id)
        if service is None or service.business_id != business_id:
            raise NotFound("Service not found")
        return service

    def create(self, business_id: str, data: ServiceCreate) -> Service:
        if self._name_taken(business_id, data.name):
            raise DuplicateService()

        service = Service(
            business_id=business_id,
            name=data.name,
            description=data.description or "",
            duration_minutes=data.duration,
            price=data.price,
            category=data.category or "General",
            is_active=True,
        )
        self.session.add(service)
        self.session.commit()
        logger.info("Created service %s for business %s", service.service_id, business_id)
        return service

    def update(self, service_id: str, business_id: str, update: ServiceUpdate) -> Service:
        service = self.get_owned(service_id, business_id)
        changes = update.changes()

        name = changes.get("name", service.name)
        becomes_active = changes.get("is_active", service.is_active)
        if ("name" in changes or changes.get("is_active")) and becomes_active:
            if self._name_taken(business_id, name, exclude_id=service_id):
                raise DuplicateService()

        columns = {"duration": "duration_minutes"}
        for key, value in changes.items():
            setattr(service, columns.get(key, key), value)
        service.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        return service

    def soft_delete(self, service_id: str, business_id: str) -> Service:
        service = self.get_owned(service_id, business_id)
        service.is_active = False
        service.updated_at = datetime.now(timezone.utc)
        self.session.commit()
        logger.info("Deactivated service %s for business %s", service_id, business_id)
        return service

    def bulk_update(self, business_id: str, updates: list[dict]) -> list[dict[str, object]]:
        """Apply several updates, reporting success or failure per item."""
        results: list[dict[str, object]] = []
        for item in updates:
            item = item if isinstance(item, dict) else {}
            service_id = item.get("id")
            try:
                service = self.update(service_id, business_id, ServiceUpdate.from_payload(item.get("data") or {}))
            except BizbookError as exc:
                self.session.rollback()
                results.append({"id": service_id, "success": False, "error": exc.message})
            else:
                results.append({"id": service_id, "success": True, "data": service.to_dict()})
        return results

    # --- queries ---------------------------------------------------------

    def list_by_business(self, business_id: str, include_inactive: bool = False) -> list[Service]:
        query = self._query(business_id)
        if not include_inactive:
            query = query.filter(Service.is_active.is_(True))
        return sorted(query.all(), key=lambda service: service.name.lower())

    def by_category(self, business_id: str, category: str) -> list[Service]:
        return (
            self._query(business_id)
            .filter(Service.category == category, Service.is_active.is_(True))
            .order_by(Service.name)
            .all()
        )

    def categories(self, business_id: str) -> list[str]:
        return sorted({service.category for service in self.list_by_business(business_id)})

    def search(self, business_id: str, term: str) -> list[Service]:
        needle = (term or "").lower()
        return [
            service
            for service in self.list_by_business(business_id)
            if needle in service.name.lower()
            or needle in (service.description or "").lower()
            or needle in service.category.lower()
        ]

    def popular(self, business_id: str, limit: int = 5) -> list[Service]:
        # No booking-based ranking yet: newest active services first.
        return (
            self._query(business_id)
            .filter(Service.is_active.is_(True))
            .order_by(Service.created_at.desc())
            .limit(limit)
            .all()
        )

    def stats(self, business_id: str) -> dict[str, object]:
        services = self._query(business_id).all()
        total = len(services)
        active = sum(1 for service in services if service.is_active)
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "categories": len(self.categories(business_id)),
            "average_price": sum(s.price for s in services) / total if total else 0,
            "average_duration": sum(s.duration_minutes for s in services) / total if total else 0,
        }

    def availability(self, business_id: str | None, service_id: str, day: date | str) -> dict[str, object]:
        """Candidate start times across the working window, stepped by the service duration.

        Existing bookings are not subtracted here; the ledger still rejects
        overlapping requests when a slot is actually booked.
        """
        service = self.get_active(service_id)
        if business_id is not None and service.business_id != business_id:
            raise NotFound("Service not found or inactive")

        day = parse_date(day)
        current = datetime.combine(day, self.day_start)
        end = datetime.combine(day, self.day_end)
        step = timedelta(minutes=service.duration_minutes)
        slots = []
        while current < end:
            slots.append({"time": current.strftime("%H:%M"), "available": True})
            current += step

        return {
            "service_id": service.service_id,
            "date": day.isoformat(),
            "duration": service.duration_minutes,
            "available_slots": slots,
        }
