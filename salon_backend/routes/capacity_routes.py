import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from salon_backend.auth.dependencies import require_admin
from salon_backend.core.errors import BookingError
from salon_backend.database import get_db
from salon_backend.models.admin_user import AdminUser
from salon_backend.models.capacity_override import CapacityOverride
from salon_backend.models.service import Service
from salon_backend.models.waitlist import WaitlistEntry
from salon_backend.routes.common import CamelModel, ensure_database_ready, http_error_for
from salon_backend.services.capacity_store import CapacityConfigStore, default_capacity
from salon_backend.services.waitlist_store import WaitlistStore

router = APIRouter(tags=['capacity'])

logger = logging.getLogger(__name__)

GET_ACTIONS = ('config', 'overrides', 'waitlist')
POST_ACTIONS = ('update_capacity', 'set_override', 'remove_override', 'add_waitlist')


class CapacityActionRequest(CamelModel):
    action: str
    service_id: int | None = None
    max_bookings_per_slot: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    slot_duration: int | None = None
    buffer_time: int | None = None
    override_id: int | None = None
    date: str | None = None
    time: str | None = None
    max_bookings: int | None = None
    reason: str | None = None
    customer_id: int | None = None
    preferred_date: str | None = None
    preferred_time: str | None = None
    alternative_dates: list[str] | None = None
    alternative_times: list[str] | None = None

    @field_validator('action')
    @classmethod
    def validate_action(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in POST_ACTIONS:
            raise ValueError(f'Invalid action. Supported actions: {", ".join(POST_ACTIONS)}')
        return normalized


class ServiceCapacityResponse(CamelModel):
    id: int
    name: str
    max_bookings_per_slot: int
    default_start_time: str | None = None
    default_end_time: str | None = None
    slot_duration: int
    buffer_time: int | None = None


class CapacityOverrideResponse(CamelModel):
    id: int
    service_id: int
    date: str
    time: str
    max_bookings: int
    reason: str | None = None
    is_active: bool


class CapacityConfigResponse(CamelModel):
    service: ServiceCapacityResponse
    overrides: list[CapacityOverrideResponse]


class OverridesResponse(CamelModel):
    overrides: list[CapacityOverrideResponse]


class WaitlistEntryResponse(CamelModel):
    id: int
    customer_id: int
    service_id: int
    preferred_date: str
    preferred_time: str
    alternative_dates: list[str]
    alternative_times: list[str]
    status: str
    created_at: datetime | None = None


class WaitlistResponse(CamelModel):
    waitlist: list[WaitlistEntryResponse]


class ActionResultResponse(CamelModel):
    success: bool
    message: str


def to_service_capacity(service: Service, store: CapacityConfigStore) -> ServiceCapacityResponse:
    parameters = store.slot_parameters_for(service)
    return ServiceCapacityResponse(
        id=service.id,
        name=service.name,
        max_bookings_per_slot=default_capacity(service),
        default_start_time=parameters.start_time,
        default_end_time=parameters.end_time,
        slot_duration=parameters.slot_duration,
        buffer_time=service.buffer_time,
    )


def to_override(override: CapacityOverride) -> CapacityOverrideResponse:
    return CapacityOverrideResponse(
        id=override.id,
        service_id=override.service_id,
        date=override.override_date,
        time=override.override_time,
        max_bookings=override.max_bookings,
        reason=override.reason,
        is_active=bool(override.is_active),
    )


def to_waitlist_entry(entry: WaitlistEntry) -> WaitlistEntryResponse:
    return WaitlistEntryResponse(
        id=entry.id,
        customer_id=entry.customer_id,
        service_id=entry.service_id,
        preferred_date=entry.preferred_date,
        preferred_time=entry.preferred_time,
        alternative_dates=entry.alternative_dates or [],
        alternative_times=entry.alternative_times or [],
        status=entry.status,
        created_at=entry.created_at,
    )


def require_fields(data: CapacityActionRequest, *field_names: str) -> None:
    missing = [name for name in field_names if getattr(data, name) is None]
    if missing:
        labels = ', '.join(to_camel(name) for name in missing)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Missing required fields for {data.action}: {labels}',
        )


@router.get('')
def get_capacity(
    action: str = Query(...),
    service_id: int | None = Query(default=None, alias='serviceId'),
    date: str | None = Query(default=None),
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin),
):
    del admin
    normalized_action = action.strip().lower()
    if normalized_action not in GET_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Invalid action. Supported actions: {", ".join(GET_ACTIONS)}',
        )
    if normalized_action in ('config', 'waitlist') and service_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Service ID is required for {normalized_action} action',
        )

    ensure_database_ready()
    store = CapacityConfigStore(db)

    try:
        if normalized_action == 'config':
            service = store.get_service(service_id)
            return CapacityConfigResponse(
                service=to_service_capacity(service, store),
                overrides=[to_override(override) for override in store.list_overrides(service_id)],
            )

        if normalized_action == 'overrides':
            return OverridesResponse(
                overrides=[to_override(override) for override in store.list_overrides(service_id)],
            )

        entries = WaitlistStore(db).list_entries(service_id, preferred_date=date)
        return WaitlistResponse(waitlist=[to_waitlist_entry(entry) for entry in entries])
    except BookingError as error:
        raise http_error_for(error) from error


@router.post('', response_model=ActionResultResponse)
def post_capacity(
    data: CapacityActionRequest,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin),
):
    ensure_database_ready()

    try:
        if data.action == 'update_capacity':
            require_fields(data, 'service_id', 'max_bookings_per_slot')
            CapacityConfigStore(db).update_service_capacity(
                data.service_id,
                data.max_bookings_per_slot,
                start_time=data.start_time,
                end_time=data.end_time,
                slot_duration=data.slot_duration,
                buffer_time=data.buffer_time,
            )
            message = 'Service capacity updated successfully'

        elif data.action == 'set_override':
            require_fields(data, 'service_id', 'date', 'time', 'max_bookings')
            CapacityConfigStore(db).set_override(
                data.service_id,
                data.date,
                data.time,
                data.max_bookings,
                reason=data.reason,
            )
            message = 'Capacity override set successfully'

        elif data.action == 'remove_override':
            require_fields(data, 'override_id')
            CapacityConfigStore(db).deactivate_override(data.override_id)
            message = 'Capacity override removed successfully'

        else:
            require_fields(data, 'customer_id', 'service_id', 'preferred_date', 'preferred_time')
            WaitlistStore(db).add_to_waitlist(
                data.customer_id,
                data.service_id,
                data.preferred_date,
                data.preferred_time,
                alternative_dates=data.alternative_dates,
                alternative_times=data.alternative_times,
            )
            message = 'Added to waitlist successfully'
    except BookingError as error:
        logger.warning('Capacity action %s by %s failed: %s', data.action, admin.email, error.message)
        raise http_error_for(error) from error

    logger.info('Capacity action %s performed by %s', data.action, admin.email)
    return ActionResultResponse(success=True, message=message)
