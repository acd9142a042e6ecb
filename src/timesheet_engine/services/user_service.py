"""Users, the manager tree, pay rate history, and per-user metrics."""

from __future__ import annotations

import calendar
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.auth import hash_password
from timesheet_engine.calculators.hours import ZERO, HoursBreakdown, entry_breakdown
from timesheet_engine.calculators.types import PayCalculation, PayRateWindow
from timesheet_engine.errors import (
    ConflictError,
    NotActionableError,
    PersistenceError,
    ValidationError,
)
from timesheet_engine.models import PayRateHistory, Timesheet, User
from timesheet_engine.services.pay_service import PayService
from timesheet_engine.services.permissions import AccountStatus, Role
from timesheet_engine.services.state_machine import TimesheetState

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
USER_FIELDS = ("email", "name", "role", "pay_rate", "password")


def months_before(today: date, months: int) -> date:
    """Same day `months` calendar months earlier, clamped to the month's end."""
    index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if not whole:
        return ZERO
    return Decimal(part) / Decimal(whole) * 100


@dataclass
class MonthlyHours:
    month: str
    month_name: str
    hours: HoursBreakdown = field(default_factory=HoursBreakdown)
    timesheets: int = 0


@dataclass
class DayAverage:
    total: Decimal = ZERO
    count: int = 0

    @property
    def average(self) -> Decimal:
        return self.total / self.count if self.count else ZERO


@dataclass
class UserMetrics:
    """Unrounded metrics for one user over a trailing window."""

    user: User
    since: date
    hours: HoursBreakdown
    timesheet_count: int
    approved_count: int
    pending_count: int
    monthly: list[MonthlyHours]
    day_of_week: dict[str, DayAverage]
    earnings: PayCalculation
    recent: list[tuple[Timesheet, Decimal]]

    @property
    def average_hours_per_timesheet(self) -> Decimal:
        return self.hours.total / self.timesheet_count if self.timesheet_count else ZERO

    @property
    def average_hours_per_month(self) -> Decimal:
        return self.hours.total / len(self.monthly) if self.monthly else ZERO

    @property
    def plawa_percentage(self) -> Decimal:
        return _percentage(self.hours.plawa, self.hours.total)

    @property
    def approval_rate(self) -> Decimal:
        return _percentage(Decimal(self.approved_count), Decimal(self.timesheet_count))


class UserService:
    """HR-side user administration."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("A user with this email already exists") from exc
        except DBAPIError as exc:
            await self.session.rollback()
            raise PersistenceError("User storage is unavailable") from exc

    async def get_user(self, user_id: UUID) -> User:
        user = await self.session.scalar(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.manager))
            .execution_options(populate_existing=True)
        )
        if user is None:
            raise NotActionableError("User not found")
        return user

    async def list_users(
        self,
        role: str | None = None,
        status: str | None = None,
    ) -> list[User]:
        query = select(User).options(selectinload(User.manager)).order_by(User.name)
        try:
            if role is not None:
                query = query.where(User.role == Role(role).value)
            if status is not None:
                query = query.where(User.status == AccountStatus(status).value)
        except ValueError:
            raise ValidationError("Invalid role or status filter")
        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _validate_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        errors: list[str] = []
        cleaned = dict(values)
        if "email" in cleaned:
            cleaned["email"] = (cleaned["email"] or "").strip().lower()
            if not EMAIL_RE.match(cleaned["email"]):
                errors.append("Invalid email format")
        if "name" in cleaned:
            cleaned["name"] = (cleaned["name"] or "").strip()
            if not cleaned["name"]:
                errors.append("Name is required")
        if "role" in cleaned:
            try:
                cleaned["role"] = Role(cleaned["role"]).value
            except ValueError:
                errors.append("Invalid role")
        if "pay_rate" in cleaned:
            if cleaned["pay_rate"] is None or Decimal(cleaned["pay_rate"]) < 0:
                errors.append("Pay rate must be a positive number")
        if errors:
            raise ValidationError(errors[0], errors)
        return cleaned

    async def _email_taken(self, email: str, exclude: UUID | None = None) -> bool:
        query = select(User.id).where(func.lower(User.email) == email)
        if exclude is not None:
            query = query.where(User.id != exclude)
        return await self.session.scalar(query) is not None

    async def create_user(
        self,
        email: str,
        name: str,
        role: str = Role.STAFF.value,
        password: str | None = None,
        manager_id: UUID | None = None,
        pay_rate: Decimal = ZERO,
    ) -> User:
        values = self._validate_fields(
            {"email": email, "name": name, "role": role, "pay_rate": pay_rate}
        )
        if await self._email_taken(values["email"]):
            raise ConflictError("A user with this email already exists")
        if manager_id is not None:
            await self.get_user(manager_id)

        user = User(
            email=values["email"],
            name=values["name"],
            role=values["role"],
            pay_rate=Decimal(values["pay_rate"]),
            manager_id=manager_id,
            password_hash=hash_password(password) if password else None,
            status=AccountStatus.ACTIVE.value,
        )
        self.session.add(user)
        await self._commit()
        logger.info("Created user %s (%s)", user.id, user.role)
        return await self.get_user(user.id)

    async def update_user(self, user_id: UUID, changes: dict[str, Any]) -> User:
        """Apply a partial update. Manager changes go through assign_manager."""
        unknown = set(changes) - set(USER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown user fields: {', '.join(sorted(unknown))}")

        user = await self.get_user(user_id)
        values = self._validate_fields(changes)
        if "email" in values and await self._email_taken(values["email"], exclude=user_id):
            raise ConflictError("Email is already taken by another user")

        for key, value in values.items():
            if key == "password":
                if value:
                    user.password_hash = hash_password(value)
            elif key == "pay_rate":
                user.pay_rate = Decimal(value)
            else:
                setattr(user, key, value)
        await self._commit()
        return await self.get_user(user_id)

    async def set_status(self, user_id: UUID, status: str) -> User:
        user = await self.get_user(user_id)
        try:
            user.status = AccountStatus(status).value
        except ValueError:
            raise ValidationError("Invalid account status")
        await self._commit()
        logger.info("User %s status set to %s", user_id, user.status)
        return await self.get_user(user_id)

    # -------------------------------------------------------------------------
    # Manager tree
    # -------------------------------------------------------------------------

    async def _manager_chain(self, start: UUID) -> list[UUID]:
        """Ids from `start` up through its managers, stopping at a repeat."""
        chain: list[UUID] = []
        current: UUID | None = start
        while current is not None and current not in chain:
            chain.append(current)
            current = await self.session.scalar(select(User.manager_id).where(User.id == current))
        return chain

    async def assign_manager(self, user_id: UUID, manager_id: UUID | None) -> User:
        """Set or clear a user's manager, refusing assignments that form a cycle."""
        user = await self.get_user(user_id)
        if manager_id is not None:
            if manager_id == user_id:
                raise ConflictError("A user cannot manage themselves")
            await self.get_user(manager_id)
            if user_id in await self._manager_chain(manager_id):
                raise ConflictError("Manager assignment would create a cycle")

        user.manager_id = manager_id
        await self._commit()
        logger.info("User %s manager set to %s", user_id, manager_id)
        return await self.get_user(user_id)

    # -------------------------------------------------------------------------
    # Pay rate history
    # -------------------------------------------------------------------------

    async def list_pay_rates(self, user_id: UUID) -> list[PayRateHistory]:
        await self.get_user(user_id)
        result = await self.session.execute(
            select(PayRateHistory)
            .where(PayRateHistory.user_id == user_id)
            .order_by(PayRateHistory.effective_date)
        )
        return list(result.scalars().all())

    async def add_pay_rate(
        self,
        user_id: UUID,
        pay_rate: Decimal,
        effective_date: date,
        end_date: date | None = None,
        today: date | None = None,
    ) -> PayRateHistory:
        """Record an effective-dated rate.

        Windows may not overlap. The one exception is an open-ended latest
        window, which is closed at the new window's effective date.
        """
        if pay_rate is None or Decimal(pay_rate) < 0:
            raise ValidationError("Pay rate must be a positive number")
        if end_date is not None and end_date <= effective_date:
            raise ValidationError("End date must be after the effective date")

        user = await self.get_user(user_id)
        rows = await self.list_pay_rates(user_id)
        new_window = PayRateWindow(Decimal(pay_rate), effective_date, end_date)

        to_close: PayRateHistory | None = None
        if rows and rows[-1].end_date is None and rows[-1].effective_date < effective_date:
            to_close = rows[-1]

        for row in rows:
            existing = PayRateWindow(
                row.pay_rate,
                row.effective_date,
                effective_date if row is to_close else row.end_date,
            )
            if existing.overlaps(new_window):
                raise ConflictError(
                    f"Pay rate window overlaps the rate effective {row.effective_date.isoformat()}"
                )

        if to_close is not None:
            to_close.end_date = effective_date

        history = PayRateHistory(
            user_id=user_id,
            pay_rate=Decimal(pay_rate),
            effective_date=effective_date,
            end_date=end_date,
        )
        self.session.add(history)
        if new_window.contains(today or date.today()):
            user.pay_rate = Decimal(pay_rate)

        await self._commit()
        logger.info(
            "Added pay rate %s for user %s effective %s",
            pay_rate,
            user_id,
            effective_date,
        )
        return history

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    async def user_metrics(
        self,
        user_id: UUID,
        months: int = 12,
        today: date | None = None,
    ) -> UserMetrics:
        """Hours, approval, and earnings metrics over the trailing `months`."""
        user = await self.get_user(user_id)
        since = months_before(today or date.today(), months)

        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.user_id == user_id, Timesheet.period_start >= since)
            .options(selectinload(Timesheet.entries))
            .order_by(Timesheet.period_start.desc())
        )
        timesheets = list(result.scalars().all())

        hours = HoursBreakdown()
        monthly: OrderedDict[str, MonthlyHours] = OrderedDict()
        day_of_week: dict[str, DayAverage] = {}
        recent: list[tuple[Timesheet, Decimal]] = []
        approved = pending = 0

        for timesheet in timesheets:
            if timesheet.state == TimesheetState.APPROVED.value:
                approved += 1
            else:
                pending += 1

            sheet_hours = HoursBreakdown()
            for entry in timesheet.entries:
                day = entry_breakdown(entry)
                sheet_hours = sheet_hours + day
                bucket = day_of_week.setdefault(DAY_NAMES[entry.work_date.weekday()], DayAverage())
                bucket.total += day.total
                bucket.count += 1

            hours = hours + sheet_hours
            key = f"{timesheet.period_start:%Y-%m}"
            month = monthly.setdefault(
                key, MonthlyHours(month=key, month_name=f"{timesheet.period_start:%b %Y}")
            )
            month.hours = month.hours + sheet_hours
            month.timesheets += 1
            if len(recent) < 10:
                recent.append((timesheet, sheet_hours.total))

        earnings = await PayService(self.session).calculate(user_id, timesheets)

        return UserMetrics(
            user=user,
            since=since,
            hours=hours,
            timesheet_count=len(timesheets),
            approved_count=approved,
            pending_count=pending,
            monthly=sorted(monthly.values(), key=lambda m: m.month),
            day_of_week={name: day_of_week[name] for name in DAY_NAMES if name in day_of_week},
            earnings=earnings,
            recent=recent,
        )
