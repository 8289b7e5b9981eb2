"""Availability model definitions."""

from sqlalchemy import JSON, Column, Date, Integer
from calendar_backend.database import Base


class Availability(Base):
    """Admin-configured opening windows for a single day."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    time_slots = Column(JSON, nullable=False, default=list)  # [{"from": "09:00", "to": "12:00"}, ...]
