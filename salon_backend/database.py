from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from salon_backend.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_capacity_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_capacity_schema() -> None:
    """Bring an older catalog up to the capacity-aware schema.

    Services created before capacity management lack the per-slot columns,
    so they are added in place. Lookup indexes for the booking counts are
    created on every first call.
    """
    global _capacity_schema_checked

    if _capacity_schema_checked:
        return

    with _schema_lock:
        if _capacity_schema_checked:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        if 'services' not in table_names:
            _capacity_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('services')}
        migration_steps = [
            ('max_bookings_per_slot', 'ALTER TABLE services ADD COLUMN max_bookings_per_slot INTEGER'),
            ('default_start_time', 'ALTER TABLE services ADD COLUMN default_start_time VARCHAR'),
            ('default_end_time', 'ALTER TABLE services ADD COLUMN default_end_time VARCHAR'),
            ('slot_duration', 'ALTER TABLE services ADD COLUMN slot_duration INTEGER'),
            ('buffer_time', 'ALTER TABLE services ADD COLUMN buffer_time INTEGER'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            if 'appointments' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_appointments_date_time '
                        'ON appointments(appointment_date, appointment_time)'
                    )
                )
            if 'appointment_services' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_appointment_services_service '
                        'ON appointment_services(service_id, appointment_id)'
                    )
                )
            if 'capacity_overrides' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_capacity_overrides_lookup '
                        'ON capacity_overrides(service_id, override_date, override_time)'
                    )
                )

        _capacity_schema_checked = True
