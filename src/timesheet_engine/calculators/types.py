"""Type definitions for the pay calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from timesheet_engine.calculators.hours import round_hours, round_money


class RateSource(str, Enum):
    """Where a resolved rate came from."""

    HISTORY = "history"
    CURRENT = "current"


@dataclass(frozen=True)
class PayRateWindow:
    """One effective-dated rate: [effective_date, end_date), open if end_date is None."""

    pay_rate: Decimal
    effective_date: date
    end_date: date | None = None

    def contains(self, as_of: date) -> bool:
        if self.effective_date > as_of:
            return False
        return self.end_date is None or as_of < self.end_date

    def overlaps(self, other: PayRateWindow) -> bool:
        self_end = self.end_date or date.max
        other_end = other.end_date or date.max
        return self.effective_date < other_end and other.effective_date < self_end


@dataclass(frozen=True)
class ResolvedRate:
    """Rate chosen for a date, with the window it came from."""

    pay_rate: Decimal
    source: RateSource
    effective_date: date | None = None
    end_date: date | None = None

    @property
    def group_key(self) -> tuple[Decimal, date | None]:
        return (self.pay_rate, self.effective_date)


@dataclass(frozen=True)
class TimesheetHours:
    """Hours worked in one timesheet, unrounded."""

    period_start: date
    period_end: date
    total_hours: Decimal


@dataclass
class PayBreakdownLine:
    """Hours and pay at one rate window."""

    pay_rate: Decimal
    hours: Decimal
    pay: Decimal
    source: RateSource
    effective_date: date | None = None
    end_date: date | None = None


@dataclass
class PayCalculation:
    """Result of calculating pay across timesheets."""

    total_hours: Decimal = Decimal("0")
    total_pay: Decimal = Decimal("0")
    breakdown: list[PayBreakdownLine] = field(default_factory=list)

    def rounded(self) -> PayCalculation:
        """Copy with every figure rounded for presentation."""
        return PayCalculation(
            total_hours=round_hours(self.total_hours),
            total_pay=round_money(self.total_pay),
            breakdown=[
                PayBreakdownLine(
                    pay_rate=line.pay_rate,
                    hours=round_hours(line.hours),
                    pay=round_money(line.pay),
                    source=line.source,
                    effective_date=line.effective_date,
                    end_date=line.end_date,
                )
                for line in self.breakdown
            ],
        )
