"""Pytest fixtures for timesheet engine tests."""

from __future__ import annotations

import dataclasses
from datetime import date, datetime, time
from decimal import Decimal
from email.message import EmailMessage
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timesheet_engine.api.app import create_app
from timesheet_engine.auth import create_access_token, hash_password
from timesheet_engine.calculators.pay_period import resolve_pay_period
from timesheet_engine.config import Settings
from timesheet_engine.database import create_engine, create_schema, create_session_factory
from timesheet_engine.events import NotificationDispatcher, TimesheetTransitionEvent
from timesheet_engine.models import Timesheet, TimesheetEntry, User
from timesheet_engine.services.mailer import Mailer
from timesheet_engine.services.notifications import build_dispatcher
from timesheet_engine.services.permissions import Actor

TEST_PASSWORD = "correct-horse"

# Friday, inside the 1st-15th period of March 2024
TODAY = date(2024, 3, 8)


def clock(day: date, hour: int, minute: int = 0) -> datetime:
    """Naive UTC clock time on a day."""
    return datetime.combine(day, time(hour, minute))


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate sessions share one database."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'timesheets.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(engine) -> Settings:
    return dataclasses.replace(
        Settings.from_env(),
        database_url=str(engine.url),
        jwt_secret="test-secret",
        jwt_algorithm="HS256",
        jwt_ttl_seconds=3600,
        smtp_host=None,
        mail_from=None,
        auto_create_db=False,
        pay_periods_back=2,
        pay_periods_forward=1,
    )


@pytest_asyncio.fixture
async def users(session_factory) -> dict[str, User]:
    """A small organisation.

    manager manages staff and peer; other_manager manages outsider.
    """
    async with session_factory() as session:
        hr = User(email="hr@test.com", name="Hana Reviewer", role="HR", pay_rate=Decimal("0"))
        admin = User(email="admin@test.com", name="Ada Admin", role="ADMIN", pay_rate=Decimal("0"))
        manager = User(
            email="manager@test.com", name="Max Manager", role="MANAGER", pay_rate=Decimal("30.00")
        )
        other_manager = User(
            email="other@test.com", name="Olga Manager", role="MANAGER", pay_rate=Decimal("30.00")
        )
        session.add_all([hr, admin, manager, other_manager])
        await session.flush()

        staff = User(
            email="staff@test.com",
            name="Sam Staff",
            role="STAFF",
            manager_id=manager.id,
            pay_rate=Decimal("20.00"),
        )
        peer = User(
            email="peer@test.com",
            name="Pat Peer",
            role="STAFF",
            manager_id=manager.id,
            pay_rate=Decimal("18.00"),
        )
        outsider = User(
            email="outsider@test.com",
            name="Oscar Outsider",
            role="STAFF",
            manager_id=other_manager.id,
            pay_rate=Decimal("25.00"),
        )
        session.add_all([staff, peer, outsider])

        all_users = [hr, admin, manager, other_manager, staff, peer, outsider]
        for user in all_users:
            user.password_hash = hash_password(TEST_PASSWORD)
            user.status = "active"
        await session.commit()

        return {
            "hr": hr,
            "admin": admin,
            "manager": manager,
            "other_manager": other_manager,
            "staff": staff,
            "peer": peer,
            "outsider": outsider,
        }


@pytest.fixture
def actors(users) -> dict[str, Actor]:
    return {key: Actor.from_user(user) for key, user in users.items()}


@pytest.fixture
def recorded_events() -> list[TimesheetTransitionEvent]:
    return []


@pytest_asyncio.fixture
async def dispatcher(recorded_events) -> AsyncGenerator[NotificationDispatcher, None]:
    """Dispatcher that only records events."""
    dispatcher = NotificationDispatcher()

    async def record(event: TimesheetTransitionEvent) -> None:
        recorded_events.append(event)

    dispatcher.on_all(record)
    yield dispatcher
    await dispatcher.drain()


@pytest.fixture
def app_dispatcher(settings, session_factory) -> NotificationDispatcher:
    """The API app's dispatcher, for waiting on in-app notifications."""
    return build_dispatcher(session_factory, settings)


@pytest_asyncio.fixture
async def client(settings, session_factory, app_dispatcher) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the test database."""
    app = create_app(
        settings,
        session_factory=session_factory,
        dispatcher=app_dispatcher,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app_dispatcher.drain()


@pytest.fixture
def auth_headers(settings):
    """Build bearer headers for a seeded user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user, settings)}"}

    return _headers


async def seed_timesheet(
    session_factory: async_sessionmaker[AsyncSession],
    user: User,
    start: date,
    state: str = "PENDING_STAFF",
    hours_per_day: dict[date, tuple[int, int]] | None = None,
    plawa: dict[date, Decimal] | None = None,
) -> UUID:
    """Insert a timesheet for the pay period starting at `start`.

    `hours_per_day` maps a work date to an (in hour, out hour) pair.
    Signatures are filled in to match the state.
    """
    period = resolve_pay_period(start)
    hours_per_day = hours_per_day or {}
    plawa = plawa or {}
    signed = {
        "PENDING_STAFF": (),
        "PENDING_MANAGER": ("staff_sig",),
        "PENDING_HR": ("staff_sig", "manager_sig"),
        "APPROVED": ("staff_sig", "manager_sig", "hr_sig"),
    }[state]

    async with session_factory() as session:
        entries = []
        for day in period.dates():
            entry = TimesheetEntry(work_date=day, plawa_hours=plawa.get(day, Decimal("0")))
            if day in hours_per_day:
                start_hour, end_hour = hours_per_day[day]
                entry.in1 = clock(day, start_hour)
                entry.out1 = clock(day, end_hour)
            entries.append(entry)
        timesheet = Timesheet(
            user_id=user.id,
            period_start=period.start,
            period_end=period.end,
            state=state,
            entries=entries,
            **{column: "signed" for column in signed},
        )
        session.add(timesheet)
        await session.commit()
        return timesheet.id


class RecordingMailer(Mailer):
    """Mailer that keeps messages instead of talking to SMTP."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.outbox: list[EmailMessage] = []

    def _deliver(self, msg: EmailMessage) -> None:
        self.outbox.append(msg)


@pytest.fixture
def mail_settings(settings) -> Settings:
    return dataclasses.replace(
        settings, smtp_host="smtp.test", mail_from="timesheets@test.com"
    )


@pytest.fixture
def mailer(mail_settings) -> RecordingMailer:
    return RecordingMailer(mail_settings)
