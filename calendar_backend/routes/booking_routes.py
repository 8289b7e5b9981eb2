import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from calendar_backend.database import get_db
from calendar_backend.models.booking import Booking
from calendar_backend.notifications.outbox import enqueue_booking_confirmation
from calendar_backend.services.slots import is_slot_label

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)


class CreateBookingRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    day: date | None = Field(default=None, alias='date')
    time: str | None = None

    class Config:
        populate_by_name = True

    @field_validator('name', 'email', 'time')
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value and not is_slot_label(value):
            raise ValueError('Time must be an hourly slot such as 09:00.')
        return value


class BookingResponse(BaseModel):
    id: int
    name: str
    email: str
    day: date = Field(serialization_alias='date')
    time: str
    created_at: datetime = Field(serialization_alias='createdAt')

    @classmethod
    def from_booking(cls, booking: Booking) -> 'BookingResponse':
        return cls(
            id=booking.id,
            name=booking.name,
            email=booking.email,
            day=booking.date,
            time=booking.time,
            created_at=booking.created_at,
        )


@router.post('', status_code=status.HTTP_201_CREATED)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    if not (data.name and data.email and data.day and data.time):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='All fields are required.',
        )

    booking = Booking(name=data.name, email=data.email, date=data.day, time=data.time)

    try:
        db.add(booking)
        # The (date, time) unique constraint rejects a taken slot here.
        db.flush()
        enqueue_booking_confirmation(db, booking)
        db.commit()
        db.refresh(booking)
    except IntegrityError as exc:
        db.rollback()
        logger.info('Slot %s %s already booked', data.day, data.time)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time slot is already booked.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create booking for %s %s', data.day, data.time)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not create the booking.',
        ) from exc

    logger.info('Booking %s created for %s %s', booking.id, booking.date, booking.time)

    return {
        'message': 'Booking confirmed',
        'booking': BookingResponse.from_booking(booking).model_dump(mode='json', by_alias=True),
    }


@router.get('')
def list_bookings(db: Session = Depends(get_db)):
    try:
        bookings = db.query(Booking).order_by(Booking.date.asc(), Booking.time.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to list bookings')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not load bookings.',
        ) from exc

    return [BookingResponse.from_booking(booking).model_dump(mode='json', by_alias=True) for booking in bookings]
