"""Email outbox model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from calendar_backend.database import Base, utcnow

STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class EmailOutbox(Base):
    """A notification email waiting to be, or already, delivered."""
    __tablename__ = "email_outbox"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), index=True)
    recipient = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING)  # pending/sending/sent/failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    claimed_at = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
