import weakref
from datetime import datetime, timezone
from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_schema_lock = Lock()
_schema_checked: "weakref.WeakSet[Engine]" = weakref.WeakSet()


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # In-memory SQLite only lives as long as its single connection.
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def ensure_schema(engine: Engine) -> None:
    """Create missing tables and the slot index older databases were created without."""
    if engine in _schema_checked:
        return

    with _schema_lock:
        if engine in _schema_checked:
            return

        # Registers every model on Base.metadata.
        from calendar_backend.models import availability, booking, notification, user  # noqa: F401

        Base.metadata.create_all(bind=engine)

        with engine.begin() as connection:
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_date_time ON bookings(date, time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_email_outbox_status ON email_outbox(status, id)')
            )

        _schema_checked.add(engine)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
