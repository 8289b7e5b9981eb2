import logging
import re
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendar_backend.database import get_db
from calendar_backend.models.availability import Availability
from calendar_backend.models.booking import Booking
from calendar_backend.services.slots import resolve_available_times

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

ADMIN_VIEW = 'admin'
TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')
_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def validate_clock_time(value: str) -> str:
    match = TIME_PATTERN.match(value)
    if not match:
        raise ValueError('Times must use the HH:MM format.')

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 24 or minute > 59 or (hour == 24 and minute != 0):
        raise ValueError('Times must be between 00:00 and 24:00.')

    return value


class TimeSlot(BaseModel):
    from_: str = Field(alias='from')
    to: str

    class Config:
        populate_by_name = True

    @field_validator('from_', 'to')
    @classmethod
    def validate_bound(cls, value: str) -> str:
        return validate_clock_time(value)


class UpsertAvailabilityRequest(BaseModel):
    day: date | None = Field(default=None, alias='date')
    time_slots: list[TimeSlot] | None = Field(default=None, alias='timeSlots')

    class Config:
        populate_by_name = True


def upsert_availability(db: Session, day: date, time_slots: list[dict]) -> Availability:
    """Insert or replace the windows for ``day`` in a single statement where the backend allows it."""
    dialect_insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)

    if dialect_insert is not None:
        statement = dialect_insert(Availability).values(date=day, time_slots=time_slots)
        statement = statement.on_conflict_do_update(
            index_elements=['date'],
            set_={'time_slots': statement.excluded.time_slots},
        )
        db.execute(statement)
    else:
        availability = db.query(Availability).filter(Availability.date == day).first()
        if availability is None:
            db.add(Availability(date=day, time_slots=time_slots))
        else:
            availability.time_slots = time_slots

    db.commit()
    return db.query(Availability).filter(Availability.date == day).one()


def get_reserved_times(day: date, db: Session) -> list[str]:
    return [booked_time for (booked_time,) in db.query(Booking.time).filter(Booking.date == day).all()]


@router.get('')
def get_availability(
    day: date | None = Query(default=None, alias='date'),
    view: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if day is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Date is required.',
        )

    try:
        availability = db.query(Availability).filter(Availability.date == day).first()
        configured = availability.time_slots if availability else None

        if view == ADMIN_VIEW:
            return {'timeSlots': configured or []}

        available_times = resolve_available_times(configured, get_reserved_times(day, db))
        return {'availableTimes': available_times}
    except SQLAlchemyError as exc:
        logger.exception('Failed to load availability for %s', day)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not load availability.',
        ) from exc


@router.post('')
def update_availability(data: UpsertAvailabilityRequest, db: Session = Depends(get_db)):
    if data.day is None or data.time_slots is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Date and timeSlots are required.',
        )

    time_slots = [slot.model_dump(by_alias=True) for slot in data.time_slots]

    try:
        availability = upsert_availability(db, data.day, time_slots)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update availability for %s', data.day)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not update availability.',
        ) from exc

    logger.info('Availability for %s set to %s window(s)', data.day, len(time_slots))
    return {'message': 'Availability updated', 'timeSlots': availability.time_slots}
