"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.auth import decode_access_token
from timesheet_engine.config import Settings
from timesheet_engine.errors import AuthenticationError, ForbiddenError
from timesheet_engine.events import NotificationDispatcher
from timesheet_engine.models import User
from timesheet_engine.services.mailer import Mailer
from timesheet_engine.services.permissions import AccountStatus, Actor, can_manage_users
from timesheet_engine.services.timesheet_service import TimesheetService

http_bearer = HTTPBearer(auto_error=False)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Uncommitted work is rolled back on close."""
    async with request.app.state.session_factory() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
AppMailer = Annotated[Mailer, Depends(get_mailer)]


async def get_current_actor(
    db: DbSession,
    settings: AppSettings,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(http_bearer)],
) -> Actor:
    """Resolve the bearer token to an actor.

    Role and status are read from the database on every request.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    token_actor = decode_access_token(credentials.credentials, settings)
    user = await db.get(User, token_actor.id)
    if user is None or user.status != AccountStatus.ACTIVE.value:
        raise AuthenticationError("Account is not active")
    return Actor.from_user(user)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


async def require_reviewer(actor: CurrentActor) -> Actor:
    """HR or ADMIN only."""
    if not can_manage_users(actor):
        raise ForbiddenError()
    return actor


ReviewerActor = Annotated[Actor, Depends(require_reviewer)]


def get_timesheet_service(db: DbSession, dispatcher: Dispatcher) -> TimesheetService:
    return TimesheetService(db, dispatcher)


TimesheetServiceDep = Annotated[TimesheetService, Depends(get_timesheet_service)]
