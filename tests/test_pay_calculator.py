"""Tests for rate resolution and pay calculation."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from timesheet_engine.calculators.pay_calculator import calculate_pay
from timesheet_engine.calculators.rate_resolver import RateResolver, implied_end_date, resolve_rate
from timesheet_engine.calculators.types import PayRateWindow, RateSource, TimesheetHours
from timesheet_engine.models import PayRateHistory

HISTORY = [
    PayRateWindow(Decimal("18.00"), date(2023, 1, 1)),
    PayRateWindow(Decimal("20.00"), date(2024, 1, 1)),
    PayRateWindow(Decimal("22.00"), date(2024, 3, 16)),
]


def sheet(start: date, end: date, hours: str) -> TimesheetHours:
    return TimesheetHours(period_start=start, period_end=end, total_hours=Decimal(hours))


class TestResolveRate:
    def test_latest_window_in_effect_wins(self):
        resolved = resolve_rate(HISTORY, date(2024, 2, 1), Decimal("99"))

        assert resolved.pay_rate == Decimal("20.00")
        assert resolved.source == RateSource.HISTORY
        assert resolved.effective_date == date(2024, 1, 1)
        assert resolved.end_date == date(2024, 3, 16)

    def test_effective_date_is_inclusive(self):
        assert resolve_rate(HISTORY, date(2024, 3, 16), Decimal("99")).pay_rate == Decimal("22.00")
        assert resolve_rate(HISTORY, date(2024, 3, 15), Decimal("99")).pay_rate == Decimal("20.00")

    def test_explicit_end_date_is_exclusive(self):
        history = [PayRateWindow(Decimal("15.00"), date(2024, 1, 1), date(2024, 2, 1))]

        assert resolve_rate(history, date(2024, 1, 31), Decimal("17")).pay_rate == Decimal("15.00")
        fallback = resolve_rate(history, date(2024, 2, 1), Decimal("17"))
        assert fallback.pay_rate == Decimal("17")
        assert fallback.source == RateSource.CURRENT

    def test_before_any_history_falls_back(self):
        resolved = resolve_rate(HISTORY, date(2022, 6, 1), Decimal("16.50"))
        assert resolved.pay_rate == Decimal("16.50")
        assert resolved.source == RateSource.CURRENT
        assert resolved.effective_date is None

    def test_no_history(self):
        assert resolve_rate([], date(2024, 1, 1), Decimal("12")).pay_rate == Decimal("12")

    def test_implied_end_date(self):
        assert implied_end_date(HISTORY[0], HISTORY) == date(2024, 1, 1)
        assert implied_end_date(HISTORY[-1], HISTORY) is None


class TestCalculatePay:
    def test_groups_by_rate_window(self):
        calculation = calculate_pay(
            [
                sheet(date(2024, 2, 1), date(2024, 2, 15), "80"),
                sheet(date(2024, 2, 16), date(2024, 2, 29), "72.5"),
                sheet(date(2024, 3, 16), date(2024, 3, 31), "40"),
            ],
            HISTORY,
            Decimal("22.00"),
        )

        assert calculation.total_hours == Decimal("192.5")
        assert calculation.total_pay == Decimal("152.5") * 20 + Decimal("40") * 22
        assert [line.pay_rate for line in calculation.breakdown] == [
            Decimal("20.00"),
            Decimal("22.00"),
        ]
        assert calculation.breakdown[0].hours == Decimal("152.5")

    def test_rate_in_effect_on_period_start_applies(self):
        # Raise lands mid-period; the whole period is paid at the earlier rate
        history = [
            PayRateWindow(Decimal("20.00"), date(2024, 1, 1)),
            PayRateWindow(Decimal("25.00"), date(2024, 3, 10)),
        ]
        calculation = calculate_pay(
            [sheet(date(2024, 3, 1), date(2024, 3, 15), "10")], history, Decimal("25")
        )
        assert calculation.total_pay == Decimal("200.00")

    def test_current_rate_when_no_history(self):
        calculation = calculate_pay(
            [sheet(date(2024, 3, 1), date(2024, 3, 15), "7.333")], [], Decimal("15")
        ).rounded()

        assert calculation.total_hours == Decimal("7.33")
        assert calculation.total_pay == Decimal("110.00")
        assert calculation.breakdown[0].source == RateSource.CURRENT

    def test_no_timesheets(self):
        calculation = calculate_pay([], HISTORY, Decimal("10"))
        assert calculation.total_hours == 0
        assert calculation.total_pay == 0
        assert calculation.breakdown == []


class TestRateResolver:
    """Database-backed resolution."""

    @pytest_asyncio.fixture
    async def history(self, session_factory, users):
        async with session_factory() as session:
            session.add_all(
                [
                    PayRateHistory(
                        user_id=users["staff"].id,
                        pay_rate=Decimal("18.00"),
                        effective_date=date(2023, 1, 1),
                    ),
                    PayRateHistory(
                        user_id=users["staff"].id,
                        pay_rate=Decimal("20.00"),
                        effective_date=date(2024, 1, 1),
                    ),
                ]
            )
            await session.commit()

    async def test_resolves_from_history(self, session, users, history):
        resolver = RateResolver(session)

        resolved = await resolver.resolve_rate_for_user(users["staff"].id, date(2023, 6, 1))
        assert resolved.pay_rate == Decimal("18.00")
        assert resolved.end_date == date(2024, 1, 1)

    async def test_falls_back_to_current_rate(self, session, users):
        resolver = RateResolver(session)

        resolved = await resolver.resolve_rate_for_user(users["peer"].id, date(2024, 1, 1))
        assert resolved.pay_rate == Decimal("18.00")
        assert resolved.source == RateSource.CURRENT
