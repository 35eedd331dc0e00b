from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from salon_backend.core.errors import (
    BookingError,
    CapacityConflict,
    NotFoundError,
    StorageError,
    ValidationError,
)
from salon_backend.database import ensure_capacity_schema

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class CamelModel(BaseModel):
    """JSON payloads use camelCase keys; Python code uses the snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ensure_database_ready() -> None:
    try:
        ensure_capacity_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def http_error_for(error: BookingError) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
    if isinstance(error, CapacityConflict):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={'message': error.message, 'conflicts': error.conflicting_service_names},
        )
    if isinstance(error, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)


def parse_service_ids(raw: str | None) -> list[int]:
    """Parse the comma separated `services` query parameter."""
    if not raw:
        return []

    service_ids = []
    for item in raw.split(','):
        item = item.strip()
        if not item:
            continue
        if not item.isdigit():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Invalid service ID "{item}".',
            )
        service_ids.append(int(item))
    return service_ids
