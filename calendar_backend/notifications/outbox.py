"""
Booking confirmation outbox.

Bookings write their confirmation email into ``email_outbox`` inside the same
transaction as the booking row. ``OutboxDispatcher`` drains pending rows in
the background, so an SMTP outage delays the email instead of failing the
booking request.

Started as an asyncio task in the application lifespan.
Uses the synchronous session and mailer via asyncio.to_thread.
"""

import asyncio
import logging
from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from calendar_backend.core import config
from calendar_backend.database import utcnow
from calendar_backend.models.booking import Booking
from calendar_backend.models.notification import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_SENT,
    EmailOutbox,
)
from calendar_backend.notifications.templates import (
    BOOKING_CONFIRMATION_SUBJECT,
    build_message,
    render_booking_confirmation,
)

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


def enqueue_booking_confirmation(db: Session, booking: Booking, recipient: str | None = None) -> EmailOutbox:
    """Stage the confirmation email for ``booking``; the caller commits."""
    email = EmailOutbox(
        booking_id=booking.id,
        recipient=recipient or config.BOOKING_NOTIFY_EMAIL,
        subject=BOOKING_CONFIRMATION_SUBJECT,
        body=render_booking_confirmation(booking.date, booking.time),
        status=STATUS_PENDING,
        attempts=0,
    )
    db.add(email)
    return email


class OutboxDispatcher:
    def __init__(
        self,
        session_factory: sessionmaker,
        mailer,
        sender: str,
        signature_image_url: str = '',
        poll_interval: float = 5,
        max_attempts: int = 5,
        batch_size: int = 20,
        claim_timeout: float = 300,
    ) -> None:
        self.session_factory = session_factory
        self.mailer = mailer
        self.sender = sender
        self.signature_image_url = signature_image_url
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.batch_size = batch_size
        self.claim_timeout = claim_timeout
        self._task: asyncio.Task | None = None

    def dispatch_pending(self) -> int:
        """Try each pending email once. Returns how many were delivered."""
        sent = 0
        db = self.session_factory()
        try:
            self._release_stale_claims(db)

            pending_ids = [
                email_id for (email_id,) in db.query(EmailOutbox.id).filter(
                    EmailOutbox.status == STATUS_PENDING,
                ).order_by(EmailOutbox.id.asc()).limit(self.batch_size).all()
            ]

            for email_id in pending_ids:
                # Another dispatcher may have taken the row since it was listed.
                if not self._claim(db, email_id):
                    continue
                email = db.get(EmailOutbox, email_id)
                if self._deliver(email):
                    sent += 1
                db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        return sent

    def _claim(self, db: Session, email_id: int) -> bool:
        claimed = db.query(EmailOutbox).filter(
            EmailOutbox.id == email_id,
            EmailOutbox.status == STATUS_PENDING,
        ).update(
            {EmailOutbox.status: STATUS_SENDING, EmailOutbox.claimed_at: utcnow()},
            synchronize_session=False,
        )
        db.commit()
        return claimed == 1

    def _release_stale_claims(self, db: Session) -> None:
        """Put back rows left in ``sending`` by a dispatcher that died mid-send."""
        cutoff = utcnow() - timedelta(seconds=self.claim_timeout)
        released = db.query(EmailOutbox).filter(
            EmailOutbox.status == STATUS_SENDING,
            EmailOutbox.claimed_at < cutoff,
        ).update({EmailOutbox.status: STATUS_PENDING}, synchronize_session=False)
        db.commit()
        if released:
            logger.warning('Released %s stale outbox claim(s)', released)

    def _deliver(self, email: EmailOutbox) -> bool:
        message = build_message(
            sender=self.sender,
            recipient=email.recipient,
            subject=email.subject,
            body=email.body,
            signature_image_url=self.signature_image_url,
        )
        email.attempts = (email.attempts or 0) + 1

        try:
            self.mailer.send(message)
        except Exception as exc:
            email.last_error = str(exc)[:MAX_ERROR_LENGTH] or exc.__class__.__name__
            if email.attempts >= self.max_attempts:
                email.status = STATUS_FAILED
                logger.error(
                    'Giving up on email %s for booking %s after %s attempts',
                    email.id, email.booking_id, email.attempts,
                )
            else:
                email.status = STATUS_PENDING
                logger.warning('Email %s failed (attempt %s): %s', email.id, email.attempts, email.last_error)
            return False

        email.status = STATUS_SENT
        email.sent_at = utcnow()
        email.last_error = None
        return True

    async def run(self) -> None:
        logger.info('outbox dispatcher started')

        try:
            while True:
                try:
                    sent = await asyncio.to_thread(self.dispatch_pending)
                    if sent:
                        logger.info('outbox dispatcher delivered %s email(s)', sent)
                except asyncio.CancelledError:
                    logger.info('outbox dispatcher cancelled')
                    raise
                except Exception:
                    logger.exception('outbox dispatcher error')

                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            pass

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
