import pytest

from calendar_backend.database import Base, build_engine, build_session_factory, ensure_schema


class FakeMailer:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.sent = []

    def send(self, message) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionRefusedError('SMTP relay unavailable')
        self.sent.append(message)


@pytest.fixture
def engine():
    engine = build_engine('sqlite://')
    ensure_schema(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def flaky_mailer():
    return FakeMailer(failures=2)
