"""Earnings across timesheets with historically accurate pay rates."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from timesheet_engine.calculators.rate_resolver import resolve_rate
from timesheet_engine.calculators.types import (
    PayBreakdownLine,
    PayCalculation,
    PayRateWindow,
    ResolvedRate,
    TimesheetHours,
)


def calculate_pay(
    timesheets: Iterable[TimesheetHours],
    history: Sequence[PayRateWindow],
    current_rate: Decimal,
) -> PayCalculation:
    """Calculate total hours and pay, grouped by the rate window in effect.

    Each timesheet is priced at the rate in effect on its period start.
    Figures are full precision; call `rounded()` for presentation.
    """
    groups: dict[tuple[Decimal, date | None], PayBreakdownLine] = {}
    total_hours = Decimal("0")
    total_pay = Decimal("0")

    for timesheet in timesheets:
        resolved: ResolvedRate = resolve_rate(history, timesheet.period_start, current_rate)
        pay = timesheet.total_hours * resolved.pay_rate

        line = groups.get(resolved.group_key)
        if line is None:
            groups[resolved.group_key] = PayBreakdownLine(
                pay_rate=resolved.pay_rate,
                hours=timesheet.total_hours,
                pay=pay,
                source=resolved.source,
                effective_date=resolved.effective_date,
                end_date=resolved.end_date,
            )
        else:
            line.hours += timesheet.total_hours
            line.pay += pay

        total_hours += timesheet.total_hours
        total_pay += pay

    breakdown = sorted(
        groups.values(),
        key=lambda line: (line.effective_date or date.min, line.pay_rate),
    )
    return PayCalculation(total_hours=total_hours, total_pay=total_pay, breakdown=breakdown)
