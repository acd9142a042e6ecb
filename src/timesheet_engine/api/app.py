"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timesheet_engine import __version__
from timesheet_engine.api.routes import (
    approvals_router,
    auth_router,
    health_router,
    notifications_router,
    reports_router,
    timesheets_router,
    users_router,
)
from timesheet_engine.config import Settings, configure_logging, get_settings
from timesheet_engine.database import create_engine, create_schema, create_session_factory
from timesheet_engine.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotActionableError,
    PersistenceError,
    TimesheetError,
    ValidationError,
)
from timesheet_engine.events import NotificationDispatcher
from timesheet_engine.services.mailer import Mailer
from timesheet_engine.services.notifications import build_dispatcher

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotActionableError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    engine = None
    if app.state.session_factory is None:
        engine = create_engine(settings.database_url, echo=settings.debug)
        app.state.session_factory = create_session_factory(engine)
        if settings.auto_create_db:
            await create_schema(engine)
    if app.state.dispatcher is None:
        app.state.dispatcher = build_dispatcher(
            app.state.session_factory, settings, app.state.mailer
        )
    logger.info("Timesheet engine %s started", settings.engine_version)
    yield
    await app.state.dispatcher.drain()
    if engine is not None:
        await engine.dispose()


def _error_body(exc: TimesheetError) -> dict:
    body = {"detail": str(exc), "code": exc.code}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    if isinstance(exc, PersistenceError):
        body["retryable"] = True
    return body


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    dispatcher: NotificationDispatcher | None = None,
    mailer: Mailer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without a session factory the engine is created at startup from
    `settings.database_url`.
    """
    settings = settings or get_settings()
    mailer = mailer or Mailer(settings)
    if session_factory is not None and dispatcher is None:
        dispatcher = build_dispatcher(session_factory, settings, mailer)

    app = FastAPI(
        title="Timesheet Engine API",
        description="Timesheet approval workflow, pay calculation, and reporting",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.dispatcher = dispatcher
    app.state.mailer = mailer

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(TimesheetError)
    async def timesheet_error_handler(request: Request, exc: TimesheetError) -> JSONResponse:
        status_code = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
            status.HTTP_400_BAD_REQUEST,
        )
        headers = None
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
        if isinstance(exc, PersistenceError):
            logger.warning("Persistence failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status_code, content=_error_body(exc), headers=headers)

    @app.exception_handler(OperationalError)
    async def database_unavailable_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        logger.warning("Database unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Database temporarily unavailable",
                "code": PersistenceError.code,
                "retryable": True,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    for router in (
        auth_router,
        timesheets_router,
        approvals_router,
        users_router,
        reports_router,
        notifications_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app
