"""Timesheet approval workflow, hours and pay calculation, and reporting."""

__version__ = "1.0.0"
