"""Waitlist entries for customers who could not get their preferred slot."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.core.errors import NotFoundError, StorageError
from salon_backend.models.customer import Customer
from salon_backend.models.service import Service
from salon_backend.models.waitlist import WaitlistEntry
from salon_backend.services.slots import normalize_time, validate_date

logger = logging.getLogger(__name__)

ACTIVE_STATUS = 'active'


class WaitlistStore:
    def __init__(self, db: Session):
        self.db = db

    def add_to_waitlist(
        self,
        customer_id: int,
        service_id: int,
        preferred_date: str,
        preferred_time: str,
        alternative_dates: list[str] | None = None,
        alternative_times: list[str] | None = None,
    ) -> WaitlistEntry:
        validate_date(preferred_date)
        preferred_time = normalize_time(preferred_time)
        alternative_dates = [validate_date(value) for value in alternative_dates or []]
        alternative_times = [normalize_time(value) for value in alternative_times or []]

        try:
            if self.db.get(Customer, customer_id) is None:
                raise NotFoundError('Customer not found')
            if self.db.get(Service, service_id) is None:
                raise NotFoundError('Service not found')

            entry = WaitlistEntry(
                customer_id=customer_id,
                service_id=service_id,
                preferred_date=preferred_date,
                preferred_time=preferred_time,
                alternative_dates=alternative_dates,
                alternative_times=alternative_times,
                status=ACTIVE_STATUS,
            )
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to add customer %s to waitlist', customer_id)
            raise StorageError('Failed to add to waitlist') from exc

        logger.info('Customer %s waitlisted for service %s on %s', customer_id, service_id, preferred_date)
        return entry

    def list_entries(self, service_id: int, preferred_date: str | None = None) -> list[WaitlistEntry]:
        try:
            query = self.db.query(WaitlistEntry).filter(
                WaitlistEntry.service_id == service_id,
                WaitlistEntry.status == ACTIVE_STATUS,
            )
            if preferred_date:
                query = query.filter(WaitlistEntry.preferred_date == preferred_date)

            return query.order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc()).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Failed to fetch waitlist entries for service %s', service_id)
            raise StorageError('Failed to fetch waitlist entries') from exc
