import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from salon_backend.database import Base  # noqa: E402
from salon_backend.models.admin_user import AdminUser  # noqa: E402
from salon_backend.models.appointment import Appointment, AppointmentService  # noqa: E402
from salon_backend.models.capacity_override import CapacityOverride  # noqa: E402
from salon_backend.models.customer import Customer  # noqa: E402
from salon_backend.models.service import Service  # noqa: E402
from salon_backend.models.waitlist import WaitlistEntry  # noqa: E402

TABLES = [
    AdminUser.__table__,
    Customer.__table__,
    Service.__table__,
    Appointment.__table__,
    AppointmentService.__table__,
    CapacityOverride.__table__,
    WaitlistEntry.__table__,
]


@pytest.fixture
def booking_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def make_service(booking_db):
    def _make_service(name: str, **fields) -> Service:
        service = Service(name=name, price=fields.pop('price', 40.0), is_active=fields.pop('is_active', True), **fields)
        booking_db.add(service)
        booking_db.commit()
        booking_db.refresh(service)
        return service

    return _make_service


@pytest.fixture
def add_booking(booking_db):
    """Insert an appointment directly, bypassing the capacity checks."""

    def _add_booking(
        service_ids: list[int],
        appointment_date: str,
        appointment_time: str,
        status: str = 'confirmed',
        quantity: int = 1,
    ) -> Appointment:
        appointment = Appointment(
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            status=status,
        )
        booking_db.add(appointment)
        booking_db.flush()
        for service_id in service_ids:
            booking_db.add(
                AppointmentService(
                    appointment_id=appointment.id,
                    service_id=service_id,
                    quantity=quantity,
                )
            )
        booking_db.commit()
        booking_db.refresh(appointment)
        return appointment

    return _add_booking


@pytest.fixture
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ('availability_routes', 'booking_routes', 'capacity_routes'):
        monkeypatch.setattr(f'salon_backend.routes.{module}.ensure_database_ready', lambda: None)


@pytest.fixture
def storage_outage(booking_db, monkeypatch: pytest.MonkeyPatch):
    """Make every later commit fail; the returned list records each rollback."""
    rollbacks = []
    original_rollback = booking_db.rollback

    def fail_commit() -> None:
        raise OperationalError('COMMIT', {}, Exception('database is locked'))

    def record_rollback() -> None:
        rollbacks.append('rollback')
        original_rollback()

    def _start_outage() -> list[str]:
        monkeypatch.setattr(booking_db, 'commit', fail_commit)
        monkeypatch.setattr(booking_db, 'rollback', record_rollback)
        return rollbacks

    return _start_outage
