import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from calendar_backend.core import config
from calendar_backend.database import build_engine, build_session_factory, ensure_schema
from calendar_backend.notifications.mailer import mailer_from_config
from calendar_backend.notifications.outbox import OutboxDispatcher
from calendar_backend.routes import auth_routes, availability_routes, booking_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_schema(app.state.engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')
        raise

    dispatcher: OutboxDispatcher = app.state.outbox_dispatcher
    if app.state.start_outbox_worker:
        dispatcher.start()

    logger.info('Calendar API started')
    try:
        yield
    finally:
        await dispatcher.stop()
        app.state.engine.dispose()
        logger.info('Calendar API stopped')


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'detail': jsonable_encoder(exc.errors())},
    )


def create_app(database_url: str | None = None, mailer=None, start_outbox_worker: bool | None = None) -> FastAPI:
    config.validate_runtime_config()
    logging.basicConfig(level=config.LOG_LEVEL)

    app = FastAPI(title='Calendar Booking API', lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials='*' not in config.CORS_ALLOW_ORIGINS,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    engine = build_engine(database_url or config.DATABASE_URL)
    session_factory = build_session_factory(engine)

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.start_outbox_worker = (
        config.OUTBOX_WORKER_ENABLED if start_outbox_worker is None else start_outbox_worker
    )
    app.state.outbox_dispatcher = OutboxDispatcher(
        session_factory=session_factory,
        mailer=mailer or mailer_from_config(),
        sender=config.MAIL_FROM,
        signature_image_url=config.SIGNATURE_IMAGE_URL,
        poll_interval=config.OUTBOX_POLL_SECONDS,
        max_attempts=config.OUTBOX_MAX_ATTEMPTS,
        batch_size=config.OUTBOX_BATCH_SIZE,
        claim_timeout=config.OUTBOX_CLAIM_TIMEOUT_SECONDS,
    )

    @app.get('/')
    def root():
        return {'status': 'Calendar API Running'}

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(availability_routes.router, prefix='/availability')
    app.include_router(booking_routes.router, prefix='/bookings')

    return app


app = create_app()
