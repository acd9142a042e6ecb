"""Daily and per-period hours calculation.

Hours are Decimal throughout. Rounding to two places (ROUND_HALF_UP) happens
once, at presentation time; totals are summed from unrounded daily values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

TWO_PLACES = Decimal("0.01")
MINUTES_PER_HOUR = Decimal(60)
MAX_PLAWA_HOURS = Decimal(24)

ZERO = Decimal("0")


class EntryLike(Protocol):
    """Anything carrying three in/out pairs and PLAWA hours."""

    in1: datetime | None
    out1: datetime | None
    in2: datetime | None
    out2: datetime | None
    in3: datetime | None
    out3: datetime | None
    plawa_hours: Decimal


@dataclass(frozen=True)
class HoursBreakdown:
    """Unrounded hour totals for a set of entries."""

    total: Decimal = ZERO
    regular: Decimal = ZERO
    plawa: Decimal = ZERO

    def __add__(self, other: HoursBreakdown) -> HoursBreakdown:
        return HoursBreakdown(
            total=self.total + other.total,
            regular=self.regular + other.regular,
            plawa=self.plawa + other.plawa,
        )

    def rounded(self) -> HoursBreakdown:
        return HoursBreakdown(
            total=round_hours(self.total),
            regular=round_hours(self.regular),
            plawa=round_hours(self.plawa),
        )


def round_hours(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _pair_minutes(clock_in: datetime | None, clock_out: datetime | None) -> int:
    """Whole minutes between a pair; zero unless both sides are present."""
    if clock_in is None or clock_out is None:
        return 0
    seconds = (clock_out - clock_in).total_seconds()
    if seconds < 0:
        raise ValueError("Clock-out precedes clock-in")
    return int(seconds // 60)


def worked_minutes(
    in1: datetime | None = None,
    out1: datetime | None = None,
    in2: datetime | None = None,
    out2: datetime | None = None,
    in3: datetime | None = None,
    out3: datetime | None = None,
) -> int:
    return (
        _pair_minutes(in1, out1)
        + _pair_minutes(in2, out2)
        + _pair_minutes(in3, out3)
    )


def raw_daily_hours(
    in1: datetime | None = None,
    out1: datetime | None = None,
    in2: datetime | None = None,
    out2: datetime | None = None,
    in3: datetime | None = None,
    out3: datetime | None = None,
    plawa_hours: Decimal | int | float | str = 0,
) -> Decimal:
    """Unrounded hours for one day."""
    minutes = worked_minutes(in1, out1, in2, out2, in3, out3)
    return Decimal(minutes) / MINUTES_PER_HOUR + Decimal(str(plawa_hours))


def daily_hours(
    in1: datetime | None = None,
    out1: datetime | None = None,
    in2: datetime | None = None,
    out2: datetime | None = None,
    in3: datetime | None = None,
    out3: datetime | None = None,
    plawa_hours: Decimal | int | float | str = 0,
) -> Decimal:
    """Hours for one day, rounded to two decimal places."""
    return round_hours(raw_daily_hours(in1, out1, in2, out2, in3, out3, plawa_hours))


def entry_breakdown(entry: EntryLike) -> HoursBreakdown:
    """Unrounded total/regular/PLAWA hours for one entry."""
    plawa = Decimal(str(entry.plawa_hours or 0))
    regular = Decimal(
        worked_minutes(entry.in1, entry.out1, entry.in2, entry.out2, entry.in3, entry.out3)
    ) / MINUTES_PER_HOUR
    return HoursBreakdown(total=regular + plawa, regular=regular, plawa=plawa)


def hours_breakdown(entries: Iterable[EntryLike]) -> HoursBreakdown:
    """Unrounded totals across entries."""
    result = HoursBreakdown()
    for entry in entries:
        result = result + entry_breakdown(entry)
    return result


def period_total(entries: Iterable[EntryLike]) -> Decimal:
    """Total hours across entries, summed unrounded and rounded once."""
    return round_hours(hours_breakdown(entries).total)


def validate_time_pairs(
    in1: datetime | None = None,
    out1: datetime | None = None,
    in2: datetime | None = None,
    out2: datetime | None = None,
    in3: datetime | None = None,
    out3: datetime | None = None,
) -> list[str]:
    """Return validation errors for a day's in/out pairs (empty if valid)."""
    errors: list[str] = []
    ordinals = ("First", "Second", "Third")
    pairs = ((in1, out1), (in2, out2), (in3, out3))

    complete: list[tuple[datetime, datetime]] = []
    for ordinal, (clock_in, clock_out) in zip(ordinals, pairs):
        if clock_in is None or clock_out is None:
            continue
        if clock_out < clock_in:
            errors.append(f"{ordinal} in time must not be after {ordinal.lower()} out time")
            continue
        complete.append((clock_in, clock_out))

    for i, (start_a, end_a) in enumerate(complete):
        for start_b, end_b in complete[i + 1:]:
            if start_a < end_b and start_b < end_a:
                errors.append("Time periods cannot overlap")
                return errors

    return errors


def validate_plawa_hours(value: Decimal | int | float | str) -> list[str]:
    """PLAWA hours must be within [0, 24]."""
    plawa = Decimal(str(value))
    if plawa < 0:
        return ["PLAWA hours cannot be negative"]
    if plawa > MAX_PLAWA_HOURS:
        return ["PLAWA hours cannot exceed 24 hours per day"]
    return []
