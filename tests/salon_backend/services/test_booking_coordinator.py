import pytest

from salon_backend.core.errors import ExternalIntegrationError, StorageError
from salon_backend.models.appointment import Appointment, AppointmentService
from salon_backend.models.customer import Customer
from salon_backend.services.booking_coordinator import (
    RACE_LOST_MESSAGE,
    STATUS_CAPACITY_CONFLICT,
    STATUS_STORAGE_FAILURE,
    STATUS_SUCCESS,
    STATUS_VALIDATION_FAILURE,
    BookingCoordinator,
    BookingRequest,
)
from salon_backend.services.booking_store import BookingStore
from salon_backend.services.notifications import NotificationDispatcher

DAY = '2026-03-10'


def _request(service_ids: list[int], **overrides) -> BookingRequest:
    fields = {
        'first_name': 'Ada',
        'last_name': 'Lovelace',
        'email': 'ada@example.com',
        'phone': '555-0100',
        'service_ids': service_ids,
        'date': DAY,
        'time': '10:00',
        'notes': 'Short nails please',
    }
    fields.update(overrides)
    return BookingRequest(**fields)


def _coordinator(db, notifiers=None) -> BookingCoordinator:
    return BookingCoordinator(db, dispatcher=NotificationDispatcher(notifiers or []))


def test_books_appointment_with_linked_services(booking_db, make_service) -> None:
    gel = make_service('Gel Manicure', price=45.0)
    pedi = make_service('Pedicure', price=55.0)

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id, pedi.id]))

    assert result.status == STATUS_SUCCESS
    assert result.success is True
    assert result.booked_services == ['Gel Manicure', 'Pedicure']
    appointment = booking_db.get(Appointment, result.appointment_id)
    assert appointment.appointment_date == DAY
    assert appointment.appointment_time == '10:00'
    assert appointment.status == 'pending'
    links = booking_db.query(AppointmentService).filter(AppointmentService.appointment_id == appointment.id).all()
    assert sorted((link.service_id, link.price_at_booking) for link in links) == [(gel.id, 45.0), (pedi.id, 55.0)]


def test_conflict_names_the_full_service(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    pedi = make_service('Pedicure', max_bookings_per_slot=2)
    add_booking([gel.id], DAY, '10:00')

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id, pedi.id]))

    assert result.status == STATUS_CAPACITY_CONFLICT
    assert result.conflicting_service_names == ['Gel Manicure']
    assert 'fully booked at 10:00 on 2026-03-10: Gel Manicure' in result.message
    assert booking_db.query(Appointment).count() == 1


def test_lost_race_returns_conflict_without_creating_appointment(
    booking_db,
    make_service,
    add_booking,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    gel = make_service('Gel Manicure')
    original_lookup = BookingStore.get_or_create_customer

    def lookup_while_someone_else_books(self, *args, **kwargs):
        add_booking([gel.id], DAY, '10:00')
        return original_lookup(self, *args, **kwargs)

    monkeypatch.setattr(BookingStore, 'get_or_create_customer', lookup_while_someone_else_books)

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id]))

    assert result.status == STATUS_CAPACITY_CONFLICT
    assert result.message == RACE_LOST_MESSAGE
    assert 'booked by another customer' in result.message
    assert result.conflicting_service_names == ['Gel Manicure']
    assert result.suggestions == ['09:30', '10:30', '09:00', '11:00', '11:30']
    assert booking_db.query(Appointment).count() == 1


def test_same_email_reuses_customer(booking_db, make_service) -> None:
    gel = make_service('Gel Manicure', max_bookings_per_slot=5)
    coordinator = _coordinator(booking_db)

    first = coordinator.book_with_capacity_check(_request([gel.id], email='Ada@Example.com'))
    second = coordinator.book_with_capacity_check(_request([gel.id], time='11:00'))

    assert first.success and second.success
    assert booking_db.query(Customer).count() == 1
    customer_ids = {appointment.customer_id for appointment in booking_db.query(Appointment).all()}
    assert len(customer_ids) == 1


def test_cancelled_booking_frees_the_slot(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    add_booking([gel.id], DAY, '10:00', status='cancelled')

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id]))

    assert result.status == STATUS_SUCCESS


def test_quantities_are_checked_and_persisted(booking_db, make_service) -> None:
    pedi = make_service('Pedicure', max_bookings_per_slot=2)
    coordinator = _coordinator(booking_db)

    too_many = coordinator.book_with_capacity_check(_request([pedi.id], quantities=[3]))
    booked = coordinator.book_with_capacity_check(_request([pedi.id], quantities=[2]))

    assert too_many.status == STATUS_CAPACITY_CONFLICT
    assert booked.status == STATUS_SUCCESS
    link = booking_db.query(AppointmentService).one()
    assert link.quantity == 2
    assert BookingStore(booking_db).count_bookings(pedi.id, DAY, '10:00') == 2


@pytest.mark.parametrize(
    ('overrides', 'message'),
    [
        ({'first_name': ' '}, 'Please fill in all required fields.'),
        ({'email': 'not-an-email'}, 'Please enter a valid email address.'),
        ({'date': '10/03/2026'}, 'Invalid date format. Use YYYY-MM-DD'),
        ({'quantities': [0]}, 'Quantities must be at least 1.'),
    ],
)
def test_validation_failures_write_nothing(booking_db, make_service, overrides: dict, message: str) -> None:
    gel = make_service('Gel Manicure')

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id], **overrides))

    assert result.status == STATUS_VALIDATION_FAILURE
    assert result.message == message
    assert booking_db.query(Customer).count() == 0


def test_unknown_service_is_a_validation_failure(booking_db) -> None:
    result = _coordinator(booking_db).book_with_capacity_check(_request([404]))

    assert result.status == STATUS_VALIDATION_FAILURE
    assert result.message == 'No active services found'


def test_link_failure_reports_storage_failure_and_keeps_appointment(
    booking_db,
    make_service,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    gel = make_service('Gel Manicure')

    def failing_link(self, *args, **kwargs):
        raise StorageError('Failed to link services to appointment.')

    monkeypatch.setattr(BookingStore, 'link_services', failing_link)

    result = _coordinator(booking_db).book_with_capacity_check(_request([gel.id]))

    assert result.status == STATUS_STORAGE_FAILURE
    assert result.message == 'Failed to link services to appointment.'
    assert booking_db.query(Appointment).count() == 1
    assert booking_db.query(AppointmentService).count() == 0


def test_failing_notifier_does_not_fail_booking(booking_db, make_service) -> None:
    gel = make_service('Gel Manicure')
    delivered = []

    def broken_email(confirmation):
        raise ExternalIntegrationError('mail provider down')

    def broken_calendar(confirmation):
        raise RuntimeError('calendar sync timeout')

    result = _coordinator(booking_db, [broken_email, broken_calendar, delivered.append]).book_with_capacity_check(
        _request([gel.id])
    )

    assert result.status == STATUS_SUCCESS
    assert len(delivered) == 1
    assert delivered[0].appointment_id == result.appointment_id
    assert delivered[0].service_names == ['Gel Manicure']
