"""Timesheet and daily entry models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from timesheet_engine.models.user import User


class Timesheet(Base, TimestampMixin, UpdatedAtMixin):
    """One user's timesheet for one biweekly pay period."""

    __tablename__ = "timesheet"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    state: Mapped[str] = mapped_column(String, nullable=False, default="PENDING_STAFF")

    # Signature slots
    staff_sig: Mapped[str | None] = mapped_column(Text, nullable=True)
    staff_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    manager_sig: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hr_sig: Mapped[str | None] = mapped_column(Text, nullable=True)
    hr_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    manager_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "period_start", "period_end", name="timesheet_user_period_unique"),
        CheckConstraint(
            "state IN ('PENDING_STAFF', 'PENDING_MANAGER', 'PENDING_HR', 'APPROVED')",
            name="timesheet_state_check",
        ),
        CheckConstraint("period_end >= period_start", name="timesheet_period_check"),
    )

    # Relationships
    user: Mapped[User] = relationship(back_populates="timesheets")
    entries: Mapped[list[TimesheetEntry]] = relationship(
        back_populates="timesheet",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TimesheetEntry.work_date",
    )


class TimesheetEntry(Base, TimestampMixin, UpdatedAtMixin):
    """One calendar day of a timesheet: up to three in/out pairs plus PLAWA hours.

    Clock times are stored as naive UTC datetimes.
    """

    __tablename__ = "timesheet_entry"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    in1: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    out1: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    in2: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    out2: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    in3: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    out3: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    plawa_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("timesheet_id", "work_date", name="timesheet_entry_day_unique"),
        CheckConstraint(
            "plawa_hours >= 0 AND plawa_hours <= 24",
            name="timesheet_entry_plawa_check",
        ),
    )

    timesheet: Mapped[Timesheet] = relationship(back_populates="entries")
