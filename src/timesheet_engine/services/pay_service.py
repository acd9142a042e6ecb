"""Pay across a user's timesheets using historical rates."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.calculators.hours import hours_breakdown
from timesheet_engine.calculators.pay_calculator import calculate_pay
from timesheet_engine.calculators.rate_resolver import RateResolver
from timesheet_engine.calculators.types import PayCalculation, TimesheetHours
from timesheet_engine.errors import NotActionableError
from timesheet_engine.models import Timesheet, User
from timesheet_engine.services.state_machine import TimesheetState


def timesheet_hours(timesheets: Iterable[Timesheet]) -> list[TimesheetHours]:
    """Unrounded hours per timesheet (entries must be loaded)."""
    return [
        TimesheetHours(
            period_start=timesheet.period_start,
            period_end=timesheet.period_end,
            total_hours=hours_breakdown(timesheet.entries).total,
        )
        for timesheet in timesheets
    ]


class PayService:
    """Pay calculations for one user at a time."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)

    async def _load_timesheets(
        self,
        user_id: UUID,
        start: date | None = None,
        end: date | None = None,
        states: Sequence[str] | None = None,
    ) -> list[Timesheet]:
        query = (
            select(Timesheet)
            .where(Timesheet.user_id == user_id)
            .options(selectinload(Timesheet.entries))
            .order_by(Timesheet.period_start)
        )
        if start is not None:
            query = query.where(Timesheet.period_start >= start)
        if end is not None:
            query = query.where(Timesheet.period_start <= end)
        if states:
            query = query.where(Timesheet.state.in_([TimesheetState(s).value for s in states]))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def calculate(self, user_id: UUID, timesheets: Iterable[Timesheet]) -> PayCalculation:
        """Price already-loaded timesheets for a user."""
        history = await self.rate_resolver.load_history(user_id)
        current_rate = await self.rate_resolver.current_rate(user_id)
        return calculate_pay(timesheet_hours(timesheets), history, current_rate)

    async def pay_for_user(
        self,
        user_id: UUID,
        start: date | None = None,
        end: date | None = None,
        states: Sequence[str] | None = None,
    ) -> PayCalculation:
        """Pay for a user's timesheets whose period starts within [start, end]."""
        if await self.session.get(User, user_id) is None:
            raise NotActionableError("User not found")
        timesheets = await self._load_timesheets(user_id, start, end, states)
        return await self.calculate(user_id, timesheets)

    async def estimated_annual_earnings(self, user_id: UUID, year: int) -> PayCalculation:
        """Earnings from approved timesheets whose period starts in the given year."""
        return await self.pay_for_user(
            user_id,
            start=date(year, 1, 1),
            end=date(year, 12, 31),
            states=[TimesheetState.APPROVED.value],
        )
