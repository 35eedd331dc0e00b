"""
Booking with a two-phase capacity check.

The storage layer offers no atomic check-and-increment, so capacity is
checked once before any write and again right before the appointment is
inserted. That narrows the window in which two requests can both take the
last unit of a slot; it does not close it.

Appointment and service links are committed separately. If linking fails the
appointment row stays behind and the booking is reported as failed.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from salon_backend.core import config
from salon_backend.core.errors import (
    BookingError,
    CapacityConflict,
    NotFoundError,
    StorageError,
    ValidationError,
)
from salon_backend.models.service import Service
from salon_backend.services.availability import AvailabilityCalculator
from salon_backend.services.booking_store import BookingStore
from salon_backend.services.intersection import suggest_alternatives
from salon_backend.services.notifications import BookingConfirmation, NotificationDispatcher
from salon_backend.services.slots import normalize_time, validate_date

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

STATUS_SUCCESS = 'success'
STATUS_VALIDATION_FAILURE = 'validation_failure'
STATUS_CAPACITY_CONFLICT = 'capacity_conflict'
STATUS_STORAGE_FAILURE = 'storage_failure'

RACE_LOST_MESSAGE = (
    'Sorry, this time slot was just booked by another customer. '
    'Please refresh and try a different time.'
)


@dataclass
class BookingRequest:
    first_name: str
    last_name: str
    email: str
    service_ids: list[int]
    date: str
    time: str
    phone: str | None = None
    notes: str | None = None
    quantities: list[int] | None = None


@dataclass
class BookingResult:
    status: str
    message: str
    appointment_id: int | None = None
    booked_services: list[str] = field(default_factory=list)
    conflicting_service_names: list[str] = field(default_factory=list)
    suggestions: list[str] | None = None

    @property
    def success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @classmethod
    def from_error(cls, error: BookingError) -> 'BookingResult':
        if isinstance(error, CapacityConflict):
            return cls(
                status=STATUS_CAPACITY_CONFLICT,
                message=error.message,
                conflicting_service_names=error.conflicting_service_names,
                suggestions=error.suggestions,
            )
        if isinstance(error, StorageError):
            return cls(status=STATUS_STORAGE_FAILURE, message=error.message)
        return cls(status=STATUS_VALIDATION_FAILURE, message=error.message)


def fully_booked_message(names: Sequence[str], date: str, time: str) -> str:
    return (
        f'Sorry, the following services are fully booked at {time} on {date}: '
        f'{", ".join(names)}. Please choose a different time or service.'
    )


class BookingCoordinator:
    def __init__(
        self,
        db: Session,
        calculator: AvailabilityCalculator | None = None,
        booking_store: BookingStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.booking_store = booking_store or BookingStore(db)
        self.calculator = calculator or AvailabilityCalculator(db, booking_store=self.booking_store)
        self.dispatcher = dispatcher or NotificationDispatcher()

    def validate(self, request: BookingRequest) -> BookingRequest:
        first_name = (request.first_name or '').strip()
        last_name = (request.last_name or '').strip()
        email = (request.email or '').strip().lower()

        if not first_name or not last_name or not email or not request.service_ids or not request.date or not request.time:
            raise ValidationError('Please fill in all required fields.')
        if not EMAIL_PATTERN.match(email):
            raise ValidationError('Please enter a valid email address.')

        notes = (request.notes or '').strip() or None
        if notes and len(notes) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValidationError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        if request.quantities and any(quantity is not None and quantity < 1 for quantity in request.quantities):
            raise ValidationError('Quantities must be at least 1.')

        return BookingRequest(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=(request.phone or '').strip() or None,
            service_ids=list(request.service_ids),
            date=validate_date(request.date.strip()),
            time=normalize_time(request.time),
            notes=notes,
            quantities=list(request.quantities) if request.quantities else None,
        )

    def ensure_capacity(self, request: BookingRequest, message: str | None = None) -> None:
        check = self.calculator.can_book(request.service_ids, request.date, request.time, request.quantities)
        if not check.can_book:
            raise CapacityConflict(
                message or fully_booked_message(check.conflicts, request.date, request.time),
                check.conflicts,
            )

    def suggestions_for(self, request: BookingRequest) -> list[str] | None:
        try:
            availability = self.calculator.get_availability(request.date, request.service_ids)
        except BookingError:
            logger.exception('Could not compute alternatives for %s on %s', request.service_ids, request.date)
            return None
        return suggest_alternatives(availability, request.time)

    def book_with_capacity_check(self, request: BookingRequest) -> BookingResult:
        try:
            request = self.validate(request)
            services = self.calculator.resolve_services(request.service_ids)

            logger.info('Checking capacity for %s on %s at %s', request.service_ids, request.date, request.time)
            self.ensure_capacity(request)

            customer = self.booking_store.get_or_create_customer(
                email=request.email,
                first_name=request.first_name,
                last_name=request.last_name,
                phone=request.phone,
            )

            try:
                self.ensure_capacity(request, message=RACE_LOST_MESSAGE)
            except CapacityConflict as conflict:
                conflict.suggestions = self.suggestions_for(request)
                raise

            return self.commit(request, services, customer)
        except CapacityConflict as conflict:
            logger.warning('Capacity conflict: %s', conflict.message)
            return BookingResult.from_error(conflict)
        except (ValidationError, NotFoundError, StorageError) as error:
            return BookingResult.from_error(error)

    def commit(self, request: BookingRequest, services: list[Service], customer) -> BookingResult:
        appointment_id = self.booking_store.create_appointment(
            customer_id=customer.id,
            appointment_date=request.date,
            appointment_time=request.time,
            notes=request.notes,
        )

        try:
            self.booking_store.link_services(
                appointment_id,
                request.service_ids,
                quantities=request.quantities,
                prices={service.id: service.price or 0 for service in services},
            )
        except StorageError:
            # TODO: wrap appointment and link inserts in one transaction so this row cannot be orphaned.
            logger.error('Appointment %s left without service links', appointment_id)
            raise

        service_names = [service.name for service in services]
        self.dispatcher.dispatch(
            BookingConfirmation(
                appointment_id=appointment_id,
                customer_name=f'{request.first_name} {request.last_name}',
                customer_email=request.email,
                customer_phone=request.phone,
                service_names=service_names,
                appointment_date=request.date,
                appointment_time=request.time,
                notes=request.notes,
            )
        )

        logger.info('Appointment %s booked', appointment_id)
        return BookingResult(
            status=STATUS_SUCCESS,
            message="Appointment booked successfully! We'll confirm your booking soon.",
            appointment_id=appointment_id,
            booked_services=service_names,
        )
