"""User, manager tree, and pay rate history models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from timesheet_engine.models.timesheet import Timesheet


class User(Base, TimestampMixin, UpdatedAtMixin):
    """Application user. Managers form a parent-reference tree via manager_id."""

    __tablename__ = "app_user"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="STAFF")
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.id", ondelete="SET NULL"),
        nullable=True,
    )
    pay_rate: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "role IN ('STAFF', 'MANAGER', 'HR', 'ADMIN')",
            name="app_user_role_check",
        ),
        CheckConstraint(
            "status IN ('active', 'suspended', 'inactive')",
            name="app_user_status_check",
        ),
        CheckConstraint("pay_rate >= 0", name="app_user_pay_rate_check"),
    )

    # Relationships
    manager: Mapped[User | None] = relationship(
        remote_side="User.id",
        back_populates="direct_reports",
    )
    direct_reports: Mapped[list[User]] = relationship(back_populates="manager")
    pay_rate_history: Mapped[list[PayRateHistory]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="PayRateHistory.effective_date",
    )
    timesheets: Mapped[list[Timesheet]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class PayRateHistory(Base, TimestampMixin):
    """Effective-dated hourly pay rate.

    The window is [effective_date, end_date); an empty end_date means the
    rate is still in effect.
    """

    __tablename__ = "pay_rate_history"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pay_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("pay_rate >= 0", name="pay_rate_history_rate_check"),
        CheckConstraint(
            "end_date IS NULL OR end_date > effective_date",
            name="pay_rate_history_dates_check",
        ),
    )

    user: Mapped[User] = relationship(back_populates="pay_rate_history")
