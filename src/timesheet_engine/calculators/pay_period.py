"""Biweekly pay period resolution.

A pay period is always either the 1st-15th or the 16th-last day of a month.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

FIRST_HALF_END_DAY = 15


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive [start, end] calendar range of one pay period."""

    start: date
    end: date

    @property
    def end_of_period(self) -> datetime:
        """Last representable instant of the period (23:59:59.999999 on end)."""
        return datetime.combine(self.end, time.max)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def dates(self) -> list[date]:
        """Every calendar date in the period, in order."""
        return [
            self.start + timedelta(days=offset)
            for offset in range((self.end - self.start).days + 1)
        ]

    def previous(self) -> PayPeriod:
        return resolve_pay_period(self.start - timedelta(days=1))

    def next(self) -> PayPeriod:
        return resolve_pay_period(self.end + timedelta(days=1))

    @property
    def label(self) -> str:
        return f"{self.start:%b %d, %Y} - {self.end:%b %d, %Y}"


@dataclass(frozen=True)
class PeriodOption:
    """A pay period tagged relative to today, for period pickers."""

    period: PayPeriod
    is_current: bool
    is_past: bool
    is_future: bool


def resolve_pay_period(reference: date | datetime) -> PayPeriod:
    """Return the pay period enclosing the reference date."""
    if isinstance(reference, datetime):
        reference = reference.date()

    year, month = reference.year, reference.month
    if reference.day <= FIRST_HALF_END_DAY:
        return PayPeriod(date(year, month, 1), date(year, month, FIRST_HALF_END_DAY))

    last_day = calendar.monthrange(year, month)[1]
    return PayPeriod(
        date(year, month, FIRST_HALF_END_DAY + 1),
        date(year, month, last_day),
    )


def is_aligned(start: date, end: date) -> bool:
    """Check whether [start, end] is exactly one resolver-produced period."""
    return resolve_pay_period(start) == PayPeriod(start, end)


def available_periods(today: date, back: int, forward: int) -> list[PeriodOption]:
    """Enumerate `back` past periods, the current one, and `forward` future ones.

    Ordered newest first.
    """
    current = resolve_pay_period(today)

    periods = [current]
    cursor = current
    for _ in range(back):
        cursor = cursor.previous()
        periods.append(cursor)
    cursor = current
    for _ in range(forward):
        cursor = cursor.next()
        periods.insert(0, cursor)

    return [
        PeriodOption(
            period=period,
            is_current=period == current,
            is_past=period.end < current.start,
            is_future=period.start > current.end,
        )
        for period in periods
    ]
