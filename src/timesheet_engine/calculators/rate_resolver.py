"""Pay rate resolution against effective-dated rate history."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.calculators.types import PayRateWindow, RateSource, ResolvedRate
from timesheet_engine.models import PayRateHistory, User


def implied_end_date(window: PayRateWindow, history: Sequence[PayRateWindow]) -> date | None:
    """End of a window for display: its own end date, or the next window's start."""
    if window.end_date is not None:
        return window.end_date
    later = [w.effective_date for w in history if w.effective_date > window.effective_date]
    return min(later) if later else None


def resolve_rate(
    history: Sequence[PayRateWindow],
    as_of: date,
    fallback_rate: Decimal,
) -> ResolvedRate:
    """Resolve the pay rate in effect on a date.

    Rate selection:
    1. Windows whose [effective_date, end_date) contains as_of are candidates
    2. Among candidates, the latest effective_date wins
    3. With no candidate (or no history at all), the user's current flat rate
    """
    candidates = [window for window in history if window.contains(as_of)]
    if not candidates:
        return ResolvedRate(pay_rate=Decimal(fallback_rate), source=RateSource.CURRENT)

    best = max(candidates, key=lambda window: window.effective_date)
    return ResolvedRate(
        pay_rate=best.pay_rate,
        source=RateSource.HISTORY,
        effective_date=best.effective_date,
        end_date=implied_end_date(best, history),
    )


class RateResolver:
    """Loads a user's rate history and resolves rates from it."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_history(self, user_id: UUID) -> list[PayRateWindow]:
        """Rate windows for a user, oldest first."""
        result = await self.session.execute(
            select(PayRateHistory)
            .where(PayRateHistory.user_id == user_id)
            .order_by(PayRateHistory.effective_date)
        )
        return [
            PayRateWindow(
                pay_rate=row.pay_rate,
                effective_date=row.effective_date,
                end_date=row.end_date,
            )
            for row in result.scalars().all()
        ]

    async def current_rate(self, user_id: UUID) -> Decimal:
        rate = await self.session.scalar(select(User.pay_rate).where(User.id == user_id))
        return rate if rate is not None else Decimal("0")

    async def resolve_rate_for_user(self, user_id: UUID, as_of_date: date) -> ResolvedRate:
        """Resolve the rate in effect for a user on a date."""
        history = await self.load_history(user_id)
        fallback = await self.current_rate(user_id)
        return resolve_rate(history, as_of_date, fallback)
