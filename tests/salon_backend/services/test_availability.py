import pytest

from salon_backend.core.errors import NotFoundError, ValidationError
from salon_backend.models.capacity_override import CapacityOverride
from salon_backend.services.availability import AvailabilityCalculator, build_slot, requested_quantities
from salon_backend.services.booking_store import BookingStore

DAY = '2026-03-10'


def _slot(result, service_index: int, time_label: str):
    return next(slot for slot in result.services[service_index].time_slots if slot.time == time_label)


def test_build_slot_clamps_remaining_at_zero() -> None:
    slot = build_slot('10:00', max_capacity=1, current_bookings=3)

    assert slot.available_slots == 0
    assert slot.is_available is False


def test_requested_quantities_defaults_and_sums_duplicates() -> None:
    assert requested_quantities([1, 2, 1], [2, None, 0]) == {1: 3, 2: 1}
    assert requested_quantities([5], None) == {5: 1}


def test_count_bookings_excludes_cancelled(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    add_booking([gel.id], DAY, '10:00')
    add_booking([gel.id], DAY, '10:00', status='cancelled')
    add_booking([gel.id], DAY, '10:00', status='pending')

    assert BookingStore(booking_db).count_bookings(gel.id, DAY, '10:00') == 2


def test_count_bookings_batch_sums_quantities(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    pedi = make_service('Pedicure')
    add_booking([gel.id, pedi.id], DAY, '09:00', quantity=2)
    add_booking([gel.id], DAY, '11:30')
    add_booking([gel.id], '2026-03-11', '09:00')

    counts = BookingStore(booking_db).count_bookings_batch([gel.id, pedi.id], DAY)

    assert counts == {gel.id: {'09:00': 2, '11:30': 1}, pedi.id: {'09:00': 2}}


def test_get_availability_uses_default_grid_and_capacity(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    add_booking([gel.id], DAY, '09:30')

    result = AvailabilityCalculator(booking_db).get_availability(DAY, [gel.id])

    times = [slot.time for slot in result.services[0].time_slots]
    assert times[0] == '09:00'
    assert times[-1] == '18:00'
    assert len(times) == 19
    assert result.date == DAY
    assert result.last_updated
    booked = _slot(result, 0, '09:30')
    assert (booked.max_capacity, booked.current_bookings, booked.available_slots, booked.is_available) == (1, 1, 0, False)
    assert _slot(result, 0, '10:00').is_available is True


def test_get_availability_grid_comes_from_first_service(booking_db, make_service) -> None:
    acrylic = make_service('Acrylic Set', default_start_time='10:00', default_end_time='12:00', slot_duration=60)
    polish = make_service('Polish Change', default_start_time='08:00', default_end_time='20:00', slot_duration=15)

    result = AvailabilityCalculator(booking_db).get_availability(DAY, [acrylic.id, polish.id])

    for service in result.services:
        assert [slot.time for slot in service.time_slots] == ['10:00', '11:00', '12:00']


def test_get_availability_request_parameters_win(booking_db, make_service) -> None:
    acrylic = make_service('Acrylic Set', default_start_time='10:00', default_end_time='12:00', slot_duration=60)

    result = AvailabilityCalculator(booking_db).get_availability(
        DAY, [acrylic.id], start_time='13:00', end_time='14:00', slot_duration=30
    )

    assert [slot.time for slot in result.services[0].time_slots] == ['13:00', '13:30', '14:00']


def test_get_availability_applies_service_capacity_and_overrides(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure', max_bookings_per_slot=3)
    booking_db.add(CapacityOverride(service_id=gel.id, override_date=DAY, override_time='10:00', max_bookings=1))
    booking_db.add(
        CapacityOverride(service_id=gel.id, override_date=DAY, override_time='11:00', max_bookings=0, is_active=False)
    )
    booking_db.commit()
    add_booking([gel.id], DAY, '09:00')
    add_booking([gel.id], DAY, '10:00')

    result = AvailabilityCalculator(booking_db).get_availability(DAY, [gel.id])

    assert _slot(result, 0, '09:00').available_slots == 2
    assert _slot(result, 0, '10:00').max_capacity == 1
    assert _slot(result, 0, '10:00').is_available is False
    assert _slot(result, 0, '11:00').max_capacity == 3


def test_get_availability_reports_zero_when_overbooked(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    add_booking([gel.id], DAY, '12:00')
    add_booking([gel.id], DAY, '12:00')

    slot = _slot(AvailabilityCalculator(booking_db).get_availability(DAY, [gel.id]), 0, '12:00')

    assert slot.current_bookings == 2
    assert slot.available_slots == 0


def test_get_availability_rejects_bad_date(booking_db, make_service) -> None:
    gel = make_service('Gel Manicure')

    with pytest.raises(ValidationError):
        AvailabilityCalculator(booking_db).get_availability('2026-3-10', [gel.id])


def test_get_availability_rejects_empty_service_list(booking_db) -> None:
    with pytest.raises(ValidationError) as exception_info:
        AvailabilityCalculator(booking_db).get_availability(DAY, [])

    assert exception_info.value.message == 'At least one service ID is required'


def test_get_availability_rejects_inactive_services(booking_db, make_service) -> None:
    retired = make_service('Paraffin Dip', is_active=False)

    with pytest.raises(NotFoundError) as exception_info:
        AvailabilityCalculator(booking_db).get_availability(DAY, [retired.id])

    assert exception_info.value.message == 'No active services found'


def test_get_availability_rejects_partially_unknown_services(booking_db, make_service) -> None:
    gel = make_service('Gel Manicure')

    with pytest.raises(NotFoundError):
        AvailabilityCalculator(booking_db).get_availability(DAY, [gel.id, 999])


def test_can_book_names_only_the_full_service(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    pedi = make_service('Pedicure', max_bookings_per_slot=2)
    add_booking([gel.id, pedi.id], DAY, '14:00')

    check = AvailabilityCalculator(booking_db).can_book([gel.id, pedi.id], DAY, '14:00')

    assert check.can_book is False
    assert check.conflicts == ['Gel Manicure']


def test_can_book_counts_requested_quantity(booking_db, make_service, add_booking) -> None:
    pedi = make_service('Pedicure', max_bookings_per_slot=3)
    add_booking([pedi.id], DAY, '15:00')
    calculator = AvailabilityCalculator(booking_db)

    assert calculator.can_book([pedi.id], DAY, '15:00', [2]).can_book is True
    assert calculator.can_book([pedi.id], DAY, '15:00', [3]).conflicts == ['Pedicure']


def test_can_book_ignores_cancelled_appointments(booking_db, make_service, add_booking) -> None:
    gel = make_service('Gel Manicure')
    add_booking([gel.id], DAY, '16:00', status='cancelled')

    assert AvailabilityCalculator(booking_db).can_book([gel.id], DAY, '16:00').can_book is True
