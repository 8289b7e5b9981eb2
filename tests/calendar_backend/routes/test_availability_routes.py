from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from calendar_backend.models.availability import Availability
from calendar_backend.models.booking import Booking
from calendar_backend.routes.availability_routes import (
    TimeSlot,
    UpsertAvailabilityRequest,
    get_availability,
    update_availability,
    upsert_availability,
)


def _add_booking(db, day: date, slot_time: str) -> None:
    db.add(Booking(name='Ada', email='ada@example.com', date=day, time=slot_time))
    db.commit()


def test_time_slot_accepts_from_alias() -> None:
    slot = TimeSlot.model_validate({'from': '09:00', 'to': '11:00'})

    assert slot.model_dump(by_alias=True) == {'from': '09:00', 'to': '11:00'}


@pytest.mark.parametrize('bound', ['9', '09:60', '25:00', '24:30', 'nine'])
def test_time_slot_rejects_malformed_bounds(bound: str) -> None:
    with pytest.raises(ValidationError):
        TimeSlot.model_validate({'from': bound, 'to': '11:00'})


def test_get_availability_requires_date(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_availability(day=None, view=None, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Date is required.'


def test_booking_view_defaults_when_nothing_configured(db) -> None:
    response = get_availability(day=date(2024, 1, 1), view=None, db=db)

    assert response == {'availableTimes': ['09:00', '10:00', '11:00', '14:00', '15:00', '16:00']}


def test_booking_view_excludes_booked_slots(db) -> None:
    _add_booking(db, date(2024, 1, 1), '09:00')

    response = get_availability(day=date(2024, 1, 1), view=None, db=db)

    assert '09:00' not in response['availableTimes']
    assert response['availableTimes'] == ['10:00', '11:00', '14:00', '15:00', '16:00']


def test_booking_view_ignores_bookings_on_other_dates(db) -> None:
    _add_booking(db, date(2024, 1, 2), '09:00')

    response = get_availability(day=date(2024, 1, 1), view=None, db=db)

    assert '09:00' in response['availableTimes']


def test_admin_view_is_empty_when_nothing_configured(db) -> None:
    assert get_availability(day=date(2024, 1, 1), view='admin', db=db) == {'timeSlots': []}


def test_posted_availability_is_returned_verbatim_by_admin_view(db) -> None:
    submitted = [{'from': '09:00', 'to': '11:00'}, {'from': '15:30', 'to': '18:00'}]
    request = UpsertAvailabilityRequest.model_validate({'date': '2024-03-04', 'timeSlots': submitted})

    response = update_availability(request, db=db)

    assert response == {'message': 'Availability updated', 'timeSlots': submitted}
    assert get_availability(day=date(2024, 3, 4), view='admin', db=db) == {'timeSlots': submitted}


def test_configured_windows_drive_booking_view(db) -> None:
    upsert_availability(db, date(2024, 3, 4), [{'from': '09:00', 'to': '11:00'}])

    response = get_availability(day=date(2024, 3, 4), view=None, db=db)

    assert response == {'availableTimes': ['09:00', '10:00']}


def test_upsert_replaces_existing_windows_for_the_same_date(db) -> None:
    upsert_availability(db, date(2024, 3, 4), [{'from': '09:00', 'to': '11:00'}])
    upsert_availability(db, date(2024, 3, 4), [{'from': '14:00', 'to': '15:00'}])

    rows = db.query(Availability).filter(Availability.date == date(2024, 3, 4)).all()

    assert len(rows) == 1
    assert rows[0].time_slots == [{'from': '14:00', 'to': '15:00'}]


def test_update_availability_requires_date_and_slots(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_availability(UpsertAvailabilityRequest(day=date(2024, 3, 4)), db=db)

    assert exception_info.value.status_code == 400


def test_storage_failure_surfaces_as_server_error(db, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_query(*_args, **_kwargs):
        raise OperationalError('SELECT', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'query', broken_query)

    with pytest.raises(HTTPException) as exception_info:
        get_availability(day=date(2024, 1, 1), view=None, db=db)

    assert exception_info.value.status_code == 500
