"""
Narrowing per-service availability to slots every service can take.

A time label missing from a service's grid counts as unavailable for that
service.
"""

from dataclasses import dataclass

from salon_backend.core import config
from salon_backend.services.availability import AvailabilityResult
from salon_backend.services.slots import format_time_for_display, time_str_to_minutes


@dataclass
class ServiceSlotDetail:
    service_id: int
    service_name: str
    remaining_slots: int
    is_available: bool


@dataclass
class BookingGridSlot:
    time: str
    label: str
    is_available: bool
    availability_details: list[ServiceSlotDetail]


def _all_times(availability: AvailabilityResult) -> list[str]:
    times = {slot.time for service in availability.services for slot in service.time_slots}
    return sorted(times)


def _slot_lookup(availability: AvailabilityResult) -> list[dict]:
    return [{slot.time: slot for slot in service.time_slots} for service in availability.services]


def common_available_slots(availability: AvailabilityResult) -> list[str]:
    if not availability.services:
        return []

    lookups = _slot_lookup(availability)
    return [
        time_label
        for time_label in _all_times(availability)
        if all(time_label in lookup and lookup[time_label].is_available for lookup in lookups)
    ]


def suggest_alternatives(
    availability: AvailabilityResult,
    preferred_time: str,
    limit: int | None = None,
) -> list[str]:
    """
    Common slots other than the preferred one, closest first.

    Distance is in minutes from the preferred time; ties go to the earlier
    slot. The preferred time does not need to be on the grid.
    """
    limit = config.SUGGESTION_LIMIT if limit is None else limit
    preferred_minutes = time_str_to_minutes(preferred_time)

    candidates = [time_label for time_label in common_available_slots(availability) if time_label != preferred_time]
    candidates.sort(
        key=lambda time_label: (abs(time_str_to_minutes(time_label) - preferred_minutes), time_label)
    )
    return candidates[:limit]


def booking_grid(availability: AvailabilityResult) -> list[BookingGridSlot]:
    """Per-time view for the booking form: display label plus each service's remaining room."""
    lookups = _slot_lookup(availability)
    grid = []

    for time_label in _all_times(availability):
        details = []
        for service, lookup in zip(availability.services, lookups):
            slot = lookup.get(time_label)
            details.append(
                ServiceSlotDetail(
                    service_id=service.service_id,
                    service_name=service.service_name,
                    remaining_slots=slot.available_slots if slot else 0,
                    is_available=bool(slot and slot.is_available),
                )
            )

        grid.append(
            BookingGridSlot(
                time=time_label,
                label=format_time_for_display(time_label),
                is_available=bool(details) and all(detail.is_available for detail in details),
                availability_details=details,
            )
        )

    return grid
