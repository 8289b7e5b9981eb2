"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String
from calendar_backend.database import Base, utcnow

DEFAULT_ROLE = "user"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default=DEFAULT_ROLE)  # user/admin
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
