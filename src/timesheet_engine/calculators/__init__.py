"""Hours, pay period, and pay calculation."""

from timesheet_engine.calculators.hours import daily_hours, hours_breakdown, period_total
from timesheet_engine.calculators.pay_calculator import calculate_pay
from timesheet_engine.calculators.pay_period import PayPeriod, available_periods, resolve_pay_period
from timesheet_engine.calculators.rate_resolver import RateResolver, resolve_rate

__all__ = [
    "PayPeriod",
    "RateResolver",
    "available_periods",
    "calculate_pay",
    "daily_hours",
    "hours_breakdown",
    "period_total",
    "resolve_pay_period",
    "resolve_rate",
]
