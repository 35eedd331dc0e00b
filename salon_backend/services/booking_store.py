"""Persistence for appointments, their service links and customers."""

import logging
from collections.abc import Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.core.errors import NotFoundError, StorageError, ValidationError
from salon_backend.models.appointment import (
    APPOINTMENT_STATUSES,
    CANCELLED_STATUS,
    Appointment,
    AppointmentService,
)
from salon_backend.models.customer import Customer

logger = logging.getLogger(__name__)


class BookingStore:
    """
    Appointment storage used by the capacity engine.

    Counts are sums of join-row quantities over appointments that are not
    cancelled. Every SQLAlchemy failure is rolled back and re-raised as
    StorageError without retrying.
    """

    def __init__(self, db: Session):
        self.db = db

    def _storage_error(self, exc: SQLAlchemyError, message: str) -> StorageError:
        self.db.rollback()
        logger.exception(message)
        return StorageError(message)

    def _booked_units_query(self, service_ids: Sequence[int], appointment_date: str):
        return (
            self.db.query(
                AppointmentService.service_id,
                Appointment.appointment_time,
                func.coalesce(func.sum(AppointmentService.quantity), 0),
            )
            .join(Appointment, Appointment.id == AppointmentService.appointment_id)
            .filter(
                AppointmentService.service_id.in_(list(service_ids)),
                Appointment.appointment_date == appointment_date,
                Appointment.status != CANCELLED_STATUS,
            )
            .group_by(AppointmentService.service_id, Appointment.appointment_time)
        )

    def count_bookings(self, service_id: int, appointment_date: str, appointment_time: str) -> int:
        return self.count_bookings_at(
            [service_id], appointment_date, appointment_time
        ).get(service_id, 0)

    def count_bookings_at(
        self,
        service_ids: Sequence[int],
        appointment_date: str,
        appointment_time: str,
    ) -> dict[int, int]:
        """Booked units per service at one exact date and time."""
        counts = {service_id: 0 for service_id in service_ids}
        if not counts:
            return counts

        try:
            rows = self._booked_units_query(service_ids, appointment_date).filter(
                Appointment.appointment_time == appointment_time,
            ).all()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to check booking availability') from exc

        for service_id, _, booked in rows:
            counts[service_id] = int(booked)
        return counts

    def count_bookings_batch(
        self,
        service_ids: Sequence[int],
        appointment_date: str,
    ) -> dict[int, dict[str, int]]:
        """Booked units per service per time label for a whole day, in one query."""
        counts: dict[int, dict[str, int]] = {service_id: {} for service_id in service_ids}
        if not counts:
            return counts

        try:
            rows = self._booked_units_query(service_ids, appointment_date).all()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to fetch existing bookings') from exc

        for service_id, appointment_time, booked in rows:
            counts[service_id][appointment_time] = int(booked)
        return counts

    def get_or_create_customer(
        self,
        email: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
    ) -> Customer:
        """
        Return the customer with this email, creating it when absent.

        When two requests race to create the same customer the unique email
        constraint lets the first insert win and the loser re-reads it.
        """
        try:
            customer = self.db.query(Customer).filter(Customer.email == email).first()
            if customer is not None:
                return customer

            customer = Customer(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone or None,
            )
            self.db.add(customer)
            self.db.commit()
            self.db.refresh(customer)
            logger.info('Created customer %s for %s', customer.id, email)
            return customer
        except IntegrityError as exc:
            self.db.rollback()
            try:
                existing = self.db.query(Customer).filter(Customer.email == email).first()
            except SQLAlchemyError as lookup_exc:
                raise self._storage_error(lookup_exc, 'Failed to process customer record.') from lookup_exc
            if existing is None:
                logger.exception('Customer creation failed for %s', email)
                raise StorageError('Failed to create customer record.') from exc
            logger.info('Customer %s was created concurrently; reusing it', email)
            return existing
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to process customer record.') from exc

    def create_appointment(
        self,
        customer_id: int,
        appointment_date: str,
        appointment_time: str,
        notes: str | None = None,
    ) -> int:
        try:
            appointment = Appointment(
                customer_id=customer_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                notes=notes or None,
                status='pending',
            )
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to book appointment.') from exc

        return appointment.id

    def link_services(
        self,
        appointment_id: int,
        service_ids: Sequence[int],
        quantities: Sequence[int] | None = None,
        prices: dict[int, float] | None = None,
    ) -> None:
        """Insert one join row per service. Rows committed before a failure stay."""
        quantities = list(quantities or [])
        prices = prices or {}

        try:
            for index, service_id in enumerate(service_ids):
                quantity = quantities[index] if index < len(quantities) else 1
                self.db.add(
                    AppointmentService(
                        appointment_id=appointment_id,
                        service_id=service_id,
                        quantity=quantity if quantity and quantity > 0 else 1,
                        price_at_booking=prices.get(service_id, 0),
                    )
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to link services to appointment.') from exc

    def update_appointment_status(self, appointment_id: int, status: str) -> Appointment:
        normalized = (status or '').strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValidationError(f'Invalid status. Use one of: {", ".join(APPOINTMENT_STATUSES)}')

        try:
            appointment = self.db.get(Appointment, appointment_id)
            if appointment is None:
                raise NotFoundError('Appointment not found.')

            appointment.status = normalized
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as exc:
            raise self._storage_error(exc, 'Failed to update appointment status.') from exc

        logger.info('Appointment %s moved to %s', appointment_id, normalized)
        return appointment
