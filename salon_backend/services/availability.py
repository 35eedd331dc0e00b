"""
Availability calculation.

One slot grid is shared by every service in a request: the request's own
start/end/duration win, then the first requested service's configuration,
then the system defaults. Booking counts and overrides for the whole day are
fetched in one query each, never per slot.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from salon_backend.core.errors import NotFoundError, ValidationError
from salon_backend.models.service import Service
from salon_backend.services.booking_store import BookingStore
from salon_backend.services.capacity_store import CapacityConfigStore, SlotParameters, default_capacity
from salon_backend.services.slots import generate_slots, normalize_time, validate_date

logger = logging.getLogger(__name__)


@dataclass
class TimeSlotAvailability:
    time: str
    max_capacity: int
    current_bookings: int
    available_slots: int
    is_available: bool


@dataclass
class ServiceAvailability:
    service_id: int
    service_name: str
    time_slots: list[TimeSlotAvailability] = field(default_factory=list)


@dataclass
class AvailabilityResult:
    date: str
    services: list[ServiceAvailability]
    last_updated: str


@dataclass
class CanBookResult:
    can_book: bool
    conflicts: list[str]


def build_slot(time_label: str, max_capacity: int, current_bookings: int) -> TimeSlotAvailability:
    # Bookings can exceed capacity after a lost race; remaining never goes negative.
    remaining = max(0, max_capacity - current_bookings)
    return TimeSlotAvailability(
        time=time_label,
        max_capacity=max_capacity,
        current_bookings=current_bookings,
        available_slots=remaining,
        is_available=remaining > 0,
    )


def requested_quantities(service_ids: Sequence[int], quantities: Sequence[int] | None) -> dict[int, int]:
    """Capacity units requested per service; missing or non-positive entries count as 1."""
    quantities = list(quantities or [])
    requested: dict[int, int] = {}
    for index, service_id in enumerate(service_ids):
        quantity = quantities[index] if index < len(quantities) else None
        if quantity is None or quantity < 1:
            quantity = 1
        requested[service_id] = requested.get(service_id, 0) + quantity
    return requested


class AvailabilityCalculator:
    def __init__(
        self,
        db: Session,
        booking_store: BookingStore | None = None,
        capacity_store: CapacityConfigStore | None = None,
    ):
        self.booking_store = booking_store or BookingStore(db)
        self.capacity_store = capacity_store or CapacityConfigStore(db)

    def resolve_services(self, service_ids: Sequence[int]) -> list[Service]:
        if not service_ids:
            raise ValidationError('At least one service ID is required')

        services = self.capacity_store.get_active_services(service_ids)
        if not services:
            raise NotFoundError('No active services found')

        found_ids = {service.id for service in services}
        missing = [str(service_id) for service_id in dict.fromkeys(service_ids) if service_id not in found_ids]
        if missing:
            raise NotFoundError(f'No active service found for id(s): {", ".join(missing)}')

        return services

    def resolve_grid(
        self,
        services: list[Service],
        start_time: str | None = None,
        end_time: str | None = None,
        slot_duration: int | None = None,
    ) -> list[str]:
        configured = self.capacity_store.slot_parameters_for(services[0] if services else None)
        parameters = SlotParameters(
            start_time=normalize_time(start_time) if start_time else configured.start_time,
            end_time=normalize_time(end_time) if end_time else configured.end_time,
            slot_duration=slot_duration if slot_duration is not None else configured.slot_duration,
        )
        return generate_slots(parameters.start_time, parameters.end_time, parameters.slot_duration)

    def get_availability(
        self,
        date: str,
        service_ids: Sequence[int],
        start_time: str | None = None,
        end_time: str | None = None,
        slot_duration: int | None = None,
    ) -> AvailabilityResult:
        validate_date(date)
        services = self.resolve_services(service_ids)
        grid = self.resolve_grid(services, start_time, end_time, slot_duration)

        ids = [service.id for service in services]
        booked = self.booking_store.count_bookings_batch(ids, date)
        overrides = self.capacity_store.override_capacities(ids, date)

        service_availability = []
        for service in services:
            base_capacity = default_capacity(service)
            service_overrides = overrides.get(service.id, {})
            service_booked = booked.get(service.id, {})
            service_availability.append(
                ServiceAvailability(
                    service_id=service.id,
                    service_name=service.name,
                    time_slots=[
                        build_slot(
                            time_label,
                            service_overrides.get(time_label, base_capacity),
                            service_booked.get(time_label, 0),
                        )
                        for time_label in grid
                    ],
                )
            )

        logger.info('Computed %s slots for %s services on %s', len(grid), len(services), date)
        return AvailabilityResult(
            date=date,
            services=service_availability,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )

    def can_book(
        self,
        service_ids: Sequence[int],
        date: str,
        time: str,
        quantities: Sequence[int] | None = None,
    ) -> CanBookResult:
        """Check one exact date and time without building the full-day grid."""
        validate_date(date)
        time = normalize_time(time)
        services = self.resolve_services(service_ids)

        ids = [service.id for service in services]
        booked = self.booking_store.count_bookings_at(ids, date, time)
        overrides = self.capacity_store.override_capacities(ids, date)
        requested = requested_quantities(service_ids, quantities)

        conflicts = []
        for service in services:
            capacity = overrides.get(service.id, {}).get(time, default_capacity(service))
            if booked.get(service.id, 0) + requested.get(service.id, 1) > capacity:
                conflicts.append(service.name)

        return CanBookResult(can_book=not conflicts, conflicts=conflicts)
