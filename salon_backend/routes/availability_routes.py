import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.orm import Session

from salon_backend.core.errors import BookingError
from salon_backend.database import get_db
from salon_backend.routes.common import CamelModel, ensure_database_ready, http_error_for, parse_service_ids
from salon_backend.services.availability import AvailabilityCalculator, AvailabilityResult
from salon_backend.services.intersection import booking_grid, common_available_slots

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

SUPPORTED_ACTIONS = ('check_booking', 'get_available_slots', 'get_booking_availability')


class TimeSlotResponse(CamelModel):
    time: str
    max_capacity: int
    current_bookings: int
    available_slots: int
    is_available: bool


class ServiceAvailabilityResponse(CamelModel):
    service_id: int
    service_name: str
    time_slots: list[TimeSlotResponse]


class AvailabilityResponse(CamelModel):
    date: str
    services: list[ServiceAvailabilityResponse]
    last_updated: str


class AvailabilityActionRequest(CamelModel):
    action: str
    service_ids: list[int] = []
    date: str | None = None
    time: str | None = None
    quantities: list[int] | None = None

    @field_validator('action')
    @classmethod
    def validate_action(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SUPPORTED_ACTIONS:
            raise ValueError(f'Invalid action. Supported actions: {", ".join(SUPPORTED_ACTIONS)}')
        return normalized


class CanBookResponse(CamelModel):
    can_book: bool
    conflicts: list[str]


class AvailableSlotsResponse(CamelModel):
    available_slots: list[str]


class ServiceSlotDetailResponse(CamelModel):
    service_id: int
    service_name: str
    remaining_slots: int
    is_available: bool


class BookingGridSlotResponse(CamelModel):
    time: str
    label: str
    is_available: bool
    availability_details: list[ServiceSlotDetailResponse]


class BookingAvailabilityResponse(CamelModel):
    time_slots: list[BookingGridSlotResponse]
    error: str | None = None


def to_availability_response(result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        date=result.date,
        last_updated=result.last_updated,
        services=[
            ServiceAvailabilityResponse(
                service_id=service.service_id,
                service_name=service.service_name,
                time_slots=[TimeSlotResponse.model_validate(asdict(slot)) for slot in service.time_slots],
            )
            for service in result.services
        ],
    )


@router.get('', response_model=AvailabilityResponse)
def get_availability(
    date: str | None = Query(default=None),
    services: str | None = Query(default=None),
    start_time: str | None = Query(default=None, alias='startTime'),
    end_time: str | None = Query(default=None, alias='endTime'),
    slot_duration: int | None = Query(default=None, alias='slotDuration', gt=0),
    db: Session = Depends(get_db),
):
    if not date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Date parameter is required (YYYY-MM-DD format)',
        )

    service_ids = parse_service_ids(services)
    if not service_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='At least one service ID is required',
        )

    ensure_database_ready()

    try:
        result = AvailabilityCalculator(db).get_availability(
            date,
            service_ids,
            start_time=start_time,
            end_time=end_time,
            slot_duration=slot_duration,
        )
    except BookingError as error:
        raise http_error_for(error) from error

    return to_availability_response(result)


@router.post('')
def availability_action(data: AvailabilityActionRequest, db: Session = Depends(get_db)):
    if not data.service_ids or not data.date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='serviceIds and date are required',
        )
    if data.action == 'check_booking' and not data.time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='time is required for check_booking',
        )

    ensure_database_ready()
    calculator = AvailabilityCalculator(db)

    try:
        if data.action == 'check_booking':
            check = calculator.can_book(data.service_ids, data.date, data.time, data.quantities)
            return CanBookResponse(can_book=check.can_book, conflicts=check.conflicts)

        availability = calculator.get_availability(data.date, data.service_ids)
        if data.action == 'get_available_slots':
            return AvailableSlotsResponse(available_slots=common_available_slots(availability))

        return BookingAvailabilityResponse(
            time_slots=[BookingGridSlotResponse.model_validate(asdict(slot)) for slot in booking_grid(availability)],
        )
    except BookingError as error:
        logger.warning('Availability action %s failed: %s', data.action, error.message)
        raise http_error_for(error) from error
