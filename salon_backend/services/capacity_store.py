"""
Per-service capacity configuration and date/time overrides.

Effective capacity for a (service, date, time) is resolved as:
active override for that exact slot, else the service's
max_bookings_per_slot, else the system default.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.core import config
from salon_backend.core.errors import NotFoundError, StorageError, ValidationError
from salon_backend.models.capacity_override import CapacityOverride
from salon_backend.models.service import Service
from salon_backend.services.slots import normalize_time, time_str_to_minutes, validate_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotParameters:
    start_time: str
    end_time: str
    slot_duration: int


def default_slot_parameters() -> SlotParameters:
    return SlotParameters(
        start_time=config.DEFAULT_START_TIME,
        end_time=config.DEFAULT_END_TIME,
        slot_duration=config.DEFAULT_SLOT_DURATION_MINUTES,
    )


def default_capacity(service: Service) -> int:
    if service.max_bookings_per_slot is None:
        return config.DEFAULT_MAX_BOOKINGS_PER_SLOT
    return max(0, service.max_bookings_per_slot)


class CapacityConfigStore:
    def __init__(self, db: Session):
        self.db = db

    def _storage_error(self, exc: SQLAlchemyError, message: str) -> StorageError:
        self.db.rollback()
        logger.exception(message)
        return StorageError(message)

    def get_service(self, service_id: int) -> Service:
        try:
            service = self.db.get(Service, service_id)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to fetch service information') from exc

        if service is None:
            raise NotFoundError('Service not found')
        return service

    def get_active_services(self, service_ids: Sequence[int]) -> list[Service]:
        """Active services among the ids, in request order, without duplicates."""
        unique_ids = list(dict.fromkeys(service_ids))
        if not unique_ids:
            return []

        try:
            services = self.db.query(Service).filter(
                Service.id.in_(unique_ids),
                Service.is_active.is_(True),
            ).all()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to fetch service information') from exc

        by_id = {service.id: service for service in services}
        return [by_id[service_id] for service_id in unique_ids if service_id in by_id]

    def slot_parameters(self, service_id: int) -> SlotParameters:
        return self.slot_parameters_for(self.get_service(service_id))

    @staticmethod
    def slot_parameters_for(service: Service | None) -> SlotParameters:
        defaults = default_slot_parameters()
        if service is None:
            return defaults

        return SlotParameters(
            start_time=service.default_start_time or defaults.start_time,
            end_time=service.default_end_time or defaults.end_time,
            slot_duration=service.slot_duration or defaults.slot_duration,
        )

    def override_capacities(
        self,
        service_ids: Sequence[int],
        override_date: str,
    ) -> dict[int, dict[str, int]]:
        """Active override capacities for a whole day, keyed by service then time."""
        overrides: dict[int, dict[str, int]] = {service_id: {} for service_id in service_ids}
        if not overrides:
            return overrides

        try:
            rows = self.db.query(
                CapacityOverride.service_id,
                CapacityOverride.override_time,
                CapacityOverride.max_bookings,
            ).filter(
                CapacityOverride.service_id.in_(list(service_ids)),
                CapacityOverride.override_date == override_date,
                CapacityOverride.is_active.is_(True),
            ).all()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to fetch capacity overrides') from exc

        for service_id, override_time, max_bookings in rows:
            overrides[service_id][override_time] = max(0, max_bookings)
        return overrides

    def effective_capacity(self, service_id: int, override_date: str, override_time: str) -> int:
        service = self.get_service(service_id)
        overrides = self.override_capacities([service_id], override_date)[service_id]
        return overrides.get(override_time, default_capacity(service))

    def update_service_capacity(
        self,
        service_id: int,
        max_bookings_per_slot: int,
        start_time: str | None = None,
        end_time: str | None = None,
        slot_duration: int | None = None,
        buffer_time: int | None = None,
    ) -> Service:
        if max_bookings_per_slot is None or max_bookings_per_slot < 1:
            raise ValidationError('maxBookingsPerSlot must be at least 1')
        if slot_duration is not None and slot_duration <= 0:
            raise ValidationError('slotDuration must be a positive number of minutes')
        if buffer_time is not None and buffer_time < 0:
            raise ValidationError('bufferTime cannot be negative')

        start_time = normalize_time(start_time) if start_time else None
        end_time = normalize_time(end_time) if end_time else None

        service = self.get_service(service_id)

        # A bound left out of the update keeps its stored (or default) value.
        current = self.slot_parameters_for(service)
        window_start = start_time or current.start_time
        window_end = end_time or current.end_time
        if time_str_to_minutes(window_start) > time_str_to_minutes(window_end):
            raise ValidationError('startTime must not be after endTime')

        try:
            service.max_bookings_per_slot = max_bookings_per_slot
            if start_time:
                service.default_start_time = start_time
            if end_time:
                service.default_end_time = end_time
            if slot_duration:
                service.slot_duration = slot_duration
            if buffer_time is not None:
                service.buffer_time = buffer_time
            self.db.commit()
            self.db.refresh(service)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to update service capacity') from exc

        logger.info('Service %s capacity set to %s per slot', service_id, max_bookings_per_slot)
        return service

    def set_override(
        self,
        service_id: int,
        override_date: str,
        override_time: str,
        max_bookings: int,
        reason: str | None = None,
    ) -> CapacityOverride:
        """Create or replace the active override for one service slot."""
        validate_date(override_date)
        override_time = normalize_time(override_time)
        if max_bookings is None or max_bookings < 0:
            raise ValidationError('maxBookings cannot be negative')

        self.get_service(service_id)

        try:
            override = self.db.query(CapacityOverride).filter(
                CapacityOverride.service_id == service_id,
                CapacityOverride.override_date == override_date,
                CapacityOverride.override_time == override_time,
            ).first()

            if override is None:
                override = CapacityOverride(
                    service_id=service_id,
                    override_date=override_date,
                    override_time=override_time,
                )
                self.db.add(override)

            override.max_bookings = max_bookings
            override.reason = reason or None
            override.is_active = True
            self.db.commit()
            self.db.refresh(override)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to set capacity override') from exc

        logger.info(
            'Capacity override for service %s at %s %s set to %s',
            service_id, override_date, override_time, max_bookings,
        )
        return override

    def deactivate_override(self, override_id: int) -> CapacityOverride:
        try:
            override = self.db.get(CapacityOverride, override_id)
            if override is None:
                raise NotFoundError('Capacity override not found')

            override.is_active = False
            self.db.commit()
            self.db.refresh(override)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to remove capacity override') from exc

        return override

    def list_overrides(
        self,
        service_id: int | None = None,
        from_date: str | None = None,
    ) -> list[CapacityOverride]:
        from_date = from_date or date.today().isoformat()

        try:
            query = self.db.query(CapacityOverride).filter(
                CapacityOverride.is_active.is_(True),
                CapacityOverride.override_date >= from_date,
            )
            if service_id is not None:
                query = query.filter(CapacityOverride.service_id == service_id)

            return query.order_by(
                CapacityOverride.override_date.asc(),
                CapacityOverride.override_time.asc(),
            ).all()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to fetch capacity overrides') from exc
