from fastapi import APIRouter, Depends, Response, status
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from salon_backend.auth.dependencies import require_admin
from salon_backend.core import config
from salon_backend.core.errors import BookingError
from salon_backend.database import get_db
from salon_backend.models.admin_user import AdminUser
from salon_backend.routes.common import CamelModel, ensure_database_ready, http_error_for
from salon_backend.services.booking_coordinator import (
    STATUS_CAPACITY_CONFLICT,
    STATUS_STORAGE_FAILURE,
    STATUS_SUCCESS,
    BookingCoordinator,
    BookingRequest,
)
from salon_backend.services.booking_store import BookingStore

router = APIRouter(tags=['booking'])

RESULT_STATUS_CODES = {
    STATUS_SUCCESS: status.HTTP_201_CREATED,
    STATUS_CAPACITY_CONFLICT: status.HTTP_409_CONFLICT,
    STATUS_STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class CreateBookingRequest(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    service_ids: list[int] = Field(min_length=1)
    date: str
    time: str
    notes: str | None = None
    quantities: list[int] | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class BookingResultResponse(CamelModel):
    success: bool
    status: str
    message: str
    appointment_id: int | None = None
    booked_services: list[str] = []
    conflicts: list[str] = []
    suggestions: list[str] | None = None


class UpdateStatusRequest(CamelModel):
    status: str


class AppointmentStatusResponse(CamelModel):
    id: int
    appointment_date: str
    appointment_time: str
    status: str


@router.post('', response_model=BookingResultResponse)
def create_booking(data: CreateBookingRequest, response: Response, db: Session = Depends(get_db)):
    """
    Book an appointment after checking capacity for every requested service.

    The body always carries the booking result. Status codes:
    - 201 `success`
    - 409 `capacity_conflict`, with the full services and suggested times
    - 503 `storage_failure`
    - 400 `validation_failure`, which also covers unknown or inactive
      services (there is no 404 from this endpoint)
    """
    ensure_database_ready()

    result = BookingCoordinator(db).book_with_capacity_check(
        BookingRequest(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            service_ids=data.service_ids,
            date=data.date,
            time=data.time,
            notes=data.notes,
            quantities=data.quantities,
        )
    )

    response.status_code = RESULT_STATUS_CODES.get(result.status, status.HTTP_400_BAD_REQUEST)
    return BookingResultResponse(
        success=result.success,
        status=result.status,
        message=result.message,
        appointment_id=result.appointment_id,
        booked_services=result.booked_services,
        conflicts=result.conflicting_service_names,
        suggestions=result.suggestions,
    )


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentStatusResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin),
):
    del admin
    ensure_database_ready()

    try:
        appointment = BookingStore(db).update_appointment_status(appointment_id, data.status)
    except BookingError as error:
        raise http_error_for(error) from error

    return AppointmentStatusResponse(
        id=appointment.id,
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        status=appointment.status,
    )
