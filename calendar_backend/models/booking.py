"""Booking model definitions."""

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint
from calendar_backend.database import Base, utcnow


class Booking(Base):
    """A client reservation of one hourly slot."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    date = Column(Date, nullable=False, index=True)
    time = Column(String, nullable=False)  # "HH:00"
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("date", "time", name="uq_bookings_date_time"),
    )
