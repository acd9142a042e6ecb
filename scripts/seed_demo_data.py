"""Seed a development database with demo users and timesheets.

Usage:
    python -m scripts.seed_demo_data [--password PASSWORD] [--periods N]

Creates an admin, an HR reviewer, a manager, and two staff members, records
a pay rate change for one of them, and fills recent pay periods with
timesheets in a mix of approval states.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date, datetime, time
from decimal import Decimal

from timesheet_engine.auth import create_access_token
from timesheet_engine.calculators.pay_period import resolve_pay_period
from timesheet_engine.config import get_settings
from timesheet_engine.database import create_schema, dispose_db, init_db
from timesheet_engine.events import NotificationDispatcher
from timesheet_engine.services.permissions import Actor, Role
from timesheet_engine.services.timesheet_service import TimesheetService
from timesheet_engine.services.user_service import UserService

DEMO_USERS = [
    ("admin@example.com", "Avery Admin", Role.ADMIN, None, Decimal("0")),
    ("hr@example.com", "Harper Reyes", Role.HR, None, Decimal("0")),
    ("manager@example.com", "Morgan Lee", Role.MANAGER, None, Decimal("32.00")),
    ("sam@example.com", "Sam Ortiz", Role.STAFF, "manager@example.com", Decimal("21.50")),
    ("jordan@example.com", "Jordan Kim", Role.STAFF, "manager@example.com", Decimal("19.75")),
]


def _clock(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


async def _fill_weekdays(service: TimesheetService, actor: Actor, timesheet) -> None:
    for entry in timesheet.entries:
        if entry.work_date.weekday() >= 5:
            continue
        await service.update_entry(
            actor,
            timesheet.id,
            entry.id,
            {
                "in1": _clock(entry.work_date, 8),
                "out1": _clock(entry.work_date, 12),
                "in2": _clock(entry.work_date, 12, 30),
                "out2": _clock(entry.work_date, 16, 30),
            },
        )


async def seed(password: str, periods: int) -> None:
    settings = get_settings()
    engine, factory = init_db()
    await create_schema(engine)

    print(f"Target database: {settings.database_url.split('@')[-1]}")

    users = {}
    async with factory() as session:
        service = UserService(session)
        for email, name, role, manager_email, rate in DEMO_USERS:
            manager_id = users[manager_email].id if manager_email else None
            user = await service.create_user(
                email=email,
                name=name,
                role=role.value,
                password=password,
                manager_id=manager_id,
                pay_rate=rate,
            )
            users[email] = user
            print(f"  user {email} ({role.value})")

        sam = users["sam@example.com"]
        today = date.today()
        raise_date = resolve_pay_period(today).previous().start
        await service.add_pay_rate(sam.id, Decimal("20.00"), date(today.year - 1, 1, 1))
        await service.add_pay_rate(sam.id, Decimal("21.50"), raise_date)

    actors = {email: Actor.from_user(user) for email, user in users.items()}
    staff = actors["sam@example.com"], actors["jordan@example.com"]
    manager = actors["manager@example.com"]
    hr = actors["hr@example.com"]

    # Oldest periods end fully approved; the newest stay open for editing.
    period = resolve_pay_period(date.today())
    for _ in range(periods):
        period = period.previous()
    for index in range(periods):
        period = period.next()
        for actor in staff:
            async with factory() as session:
                service = TimesheetService(session, NotificationDispatcher())
                timesheet = await service.create_for_period(actor, period.start, period.end)
                await _fill_weekdays(service, actor, timesheet)
                remaining = periods - index
                if remaining >= 2:
                    await service.submit(actor, timesheet.id, actor.name)
                    await service.manager_approve(manager, timesheet.id, manager.name)
                    if remaining >= 3:
                        await service.hr_approve(hr, timesheet.id, hr.name)
            print(f"  timesheet {actor.email} {period.label}")

    print("Bearer tokens:")
    for email, user in users.items():
        print(f"  {email}: {create_access_token(user, settings)}")

    await dispose_db()
    print("Seed complete")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo users and timesheets")
    parser.add_argument("--password", default="password123", help="Password for every demo user")
    parser.add_argument("--periods", type=int, default=4, help="Past pay periods to fill")
    args = parser.parse_args()
    asyncio.run(seed(args.password, args.periods))


if __name__ == "__main__":
    main()
