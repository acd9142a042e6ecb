"""Timesheet lifecycle: creation, entry edits, and approval transitions."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.calculators.hours import validate_plawa_hours, validate_time_pairs
from timesheet_engine.calculators.pay_period import (
    PayPeriod,
    PeriodOption,
    available_periods,
    is_aligned,
    resolve_pay_period,
)
from timesheet_engine.errors import (
    ConflictError,
    ForbiddenError,
    NotActionableError,
    PersistenceError,
    ValidationError,
)
from timesheet_engine.events import (
    EventMetadata,
    NotificationDispatcher,
    TimesheetHRApproved,
    TimesheetHRDenied,
    TimesheetManagerApproved,
    TimesheetManagerDenied,
    TimesheetSubmitted,
    TimesheetTransitionEvent,
)
from timesheet_engine.models import AuditEvent, Timesheet, TimesheetEntry, User
from timesheet_engine.services.permissions import (
    Actor,
    can_edit_entries,
    can_hr_review,
    can_view_timesheet,
)
from timesheet_engine.services.state_machine import (
    TimesheetEvent,
    TimesheetState,
    TimesheetStateMachine,
)

logger = logging.getLogger(__name__)

TIME_FIELDS = ("in1", "out1", "in2", "out2", "in3", "out3")
ENTRY_FIELDS = (*TIME_FIELDS, "plawa_hours", "comments")

EVENT_TYPES: dict[TimesheetEvent, type[TimesheetTransitionEvent]] = {
    TimesheetEvent.SUBMIT: TimesheetSubmitted,
    TimesheetEvent.MANAGER_APPROVE: TimesheetManagerApproved,
    TimesheetEvent.MANAGER_DENY: TimesheetManagerDenied,
    TimesheetEvent.HR_APPROVE: TimesheetHRApproved,
    TimesheetEvent.HR_DENY: TimesheetHRDenied,
}


def naive_utc(value: datetime | None) -> datetime | None:
    """Clock times are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimesheetService:
    """Service for timesheet lifecycle operations.

    Operations:
    - get_or_create_current / create_for_period: one timesheet per user and period
    - update_entry: owner edits while PENDING_STAFF
    - submit, manager_approve, manager_deny, hr_approve, hr_deny: transitions

    Mutating operations commit their own transaction. Transitions are a single
    conditional UPDATE guarded by the expected state and the actor's
    relationship to the owner, so exactly one of several racing calls wins.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.clock = clock

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_timesheet(self, timesheet_id: UUID) -> Timesheet | None:
        """Load a timesheet with its owner and entries."""
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.id == timesheet_id)
            .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_actor(self, actor: Actor, timesheet_id: UUID) -> Timesheet:
        """Load a timesheet the actor may view."""
        timesheet = await self.get_timesheet(timesheet_id)
        if timesheet is None or not can_view_timesheet(
            actor, timesheet.user_id, timesheet.user.manager_id
        ):
            raise NotActionableError()
        return timesheet

    async def list_for_actor(self, actor: Actor, state: str | None = None) -> list[Timesheet]:
        """Timesheets visible to the actor, newest period first.

        HR and ADMIN see every timesheet; everyone else sees their own and
        those of their direct reports.
        """
        query = (
            select(Timesheet)
            .join(User, Timesheet.user_id == User.id)
            .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
            .order_by(Timesheet.period_start.desc(), User.name)
        )
        if not actor.is_reviewer:
            query = query.where(or_(Timesheet.user_id == actor.id, User.manager_id == actor.id))
        if state is not None:
            query = query.where(Timesheet.state == TimesheetState(state).value)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def pending_manager_approvals(self, actor: Actor) -> list[Timesheet]:
        """Timesheets of the actor's direct reports awaiting manager review."""
        result = await self.session.execute(
            select(Timesheet)
            .join(User, Timesheet.user_id == User.id)
            .where(User.manager_id == actor.id)
            .where(Timesheet.state == TimesheetState.PENDING_MANAGER.value)
            .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
            .order_by(Timesheet.period_start.desc(), User.name)
        )
        return list(result.scalars().all())

    async def pending_hr_approvals(self, actor: Actor) -> list[Timesheet]:
        """Timesheets awaiting final HR sign-off."""
        if not can_hr_review(actor):
            raise ForbiddenError("HR or ADMIN role required")
        result = await self.session.execute(
            select(Timesheet)
            .join(User, Timesheet.user_id == User.id)
            .where(Timesheet.state == TimesheetState.PENDING_HR.value)
            .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
            .order_by(Timesheet.period_start.desc(), User.name)
        )
        return list(result.scalars().all())

    async def period_options(
        self,
        actor: Actor,
        today: date,
        back: int,
        forward: int,
    ) -> list[tuple[PeriodOption, Timesheet | None]]:
        """Period picker choices, each paired with the actor's timesheet if one exists."""
        options = available_periods(today, back, forward)
        result = await self.session.execute(
            select(Timesheet).where(
                Timesheet.user_id == actor.id,
                Timesheet.period_start.in_([option.period.start for option in options]),
            )
        )
        by_start = {timesheet.period_start: timesheet for timesheet in result.scalars().all()}
        return [(option, by_start.get(option.period.start)) for option in options]

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def _find_for_period(self, user_id: UUID, period: PayPeriod) -> Timesheet | None:
        result = await self.session.execute(
            select(Timesheet.id).where(
                Timesheet.user_id == user_id,
                Timesheet.period_start == period.start,
                Timesheet.period_end == period.end,
            )
        )
        timesheet_id = result.scalar_one_or_none()
        return await self.get_timesheet(timesheet_id) if timesheet_id else None

    async def _create(self, user_id: UUID, period: PayPeriod) -> Timesheet:
        """Insert a timesheet with one empty entry per day of the period."""
        timesheet = Timesheet(
            user_id=user_id,
            period_start=period.start,
            period_end=period.end,
            state=TimesheetState.PENDING_STAFF.value,
            entries=[TimesheetEntry(work_date=day, plawa_hours=0) for day in period.dates()],
        )
        self.session.add(timesheet)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("A timesheet already exists for this pay period") from exc
        except DBAPIError as exc:
            await self.session.rollback()
            raise PersistenceError("Timesheet storage is unavailable") from exc

        logger.info(
            "Created timesheet %s for user %s (%s to %s)",
            timesheet.id,
            user_id,
            period.start,
            period.end,
        )
        created = await self.get_timesheet(timesheet.id)
        if created is None:
            raise PersistenceError("Timesheet could not be reloaded after creation")
        return created

    async def get_or_create_current(self, actor: Actor, today: date | None = None) -> Timesheet:
        """The actor's timesheet for the current pay period, created on first access."""
        period = resolve_pay_period(today or date.today())
        existing = await self._find_for_period(actor.id, period)
        if existing is not None:
            return existing
        try:
            return await self._create(actor.id, period)
        except ConflictError:
            # Lost a creation race; the other request's row is the answer
            existing = await self._find_for_period(actor.id, period)
            if existing is None:
                raise
            return existing

    async def create_for_period(self, actor: Actor, start: date, end: date) -> Timesheet:
        """Create the actor's timesheet for an explicit past or future period."""
        if not is_aligned(start, end):
            raise ValidationError(
                "Period must run from the 1st to the 15th or from the 16th to the end of a month"
            )
        period = PayPeriod(start, end)
        if await self._find_for_period(actor.id, period) is not None:
            raise ConflictError("A timesheet already exists for this pay period")
        return await self._create(actor.id, period)

    # -------------------------------------------------------------------------
    # Entry edits
    # -------------------------------------------------------------------------

    async def update_entry(
        self,
        actor: Actor,
        timesheet_id: UUID,
        entry_id: UUID,
        changes: dict[str, Any],
    ) -> TimesheetEntry:
        """Apply a partial update to one day's entry.

        Only the owner may edit, and only while the timesheet is PENDING_STAFF.
        Omitted fields keep their stored values; validation runs on the merged
        result before anything is written.
        """
        unknown = set(changes) - set(ENTRY_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown entry fields: {', '.join(sorted(unknown))}")

        changes = {
            key: naive_utc(value) if key in TIME_FIELDS else value
            for key, value in changes.items()
        }

        try:
            # Lock the parent row while it is still editable
            timesheet = await self.session.scalar(
                select(Timesheet)
                .where(
                    Timesheet.id == timesheet_id,
                    Timesheet.user_id == actor.id,
                    Timesheet.state.in_(
                        [state.value for state in TimesheetStateMachine.ENTRIES_MUTABLE]
                    ),
                )
                .with_for_update()
            )
            if timesheet is None or not can_edit_entries(actor, timesheet):
                raise NotActionableError()

            entry = await self.session.scalar(
                select(TimesheetEntry).where(
                    TimesheetEntry.id == entry_id,
                    TimesheetEntry.timesheet_id == timesheet.id,
                )
            )
            if entry is None:
                raise NotActionableError()

            merged = {field: changes.get(field, getattr(entry, field)) for field in TIME_FIELDS}
            errors = validate_time_pairs(**merged)
            if "plawa_hours" in changes:
                if changes["plawa_hours"] is None:
                    changes["plawa_hours"] = 0
                errors.extend(validate_plawa_hours(changes["plawa_hours"]))
            if errors:
                raise ValidationError(errors[0], errors)

            for field, value in changes.items():
                setattr(entry, field, value)
            await self.session.commit()
        except DBAPIError as exc:
            await self.session.rollback()
            raise PersistenceError("Timesheet storage is unavailable") from exc
        except (NotActionableError, ValidationError):
            await self.session.rollback()
            raise

        await self.session.refresh(entry)
        logger.debug("Updated entry %s on timesheet %s", entry_id, timesheet_id)
        return entry

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def submit(self, actor: Actor, timesheet_id: UUID, signature: str) -> Timesheet:
        return await self._transition(actor, timesheet_id, TimesheetEvent.SUBMIT, signature=signature)

    async def manager_approve(self, actor: Actor, timesheet_id: UUID, signature: str) -> Timesheet:
        return await self._transition(
            actor, timesheet_id, TimesheetEvent.MANAGER_APPROVE, signature=signature
        )

    async def manager_deny(self, actor: Actor, timesheet_id: UUID, note: str) -> Timesheet:
        return await self._transition(actor, timesheet_id, TimesheetEvent.MANAGER_DENY, note=note)

    async def hr_approve(self, actor: Actor, timesheet_id: UUID, signature: str) -> Timesheet:
        return await self._transition(
            actor, timesheet_id, TimesheetEvent.HR_APPROVE, signature=signature
        )

    async def hr_deny(self, actor: Actor, timesheet_id: UUID, note: str) -> Timesheet:
        return await self._transition(actor, timesheet_id, TimesheetEvent.HR_DENY, note=note)

    def _actor_guard(self, actor: Actor, event: TimesheetEvent) -> list[Any]:
        """WHERE clauses tying the row to the actor's relationship with its owner."""
        if event == TimesheetEvent.SUBMIT:
            return [Timesheet.user_id == actor.id]
        if event in (TimesheetEvent.MANAGER_APPROVE, TimesheetEvent.MANAGER_DENY):
            reports = select(User.id).where(User.manager_id == actor.id)
            return [Timesheet.user_id.in_(reports)]
        return []

    async def _transition(
        self,
        actor: Actor,
        timesheet_id: UUID,
        event: TimesheetEvent,
        signature: str | None = None,
        note: str | None = None,
    ) -> Timesheet:
        """Apply one transition atomically, then notify.

        Zero matched rows means the timesheet is missing, in another state,
        or not the actor's to act on; callers cannot tell which.
        """
        errors = TimesheetStateMachine.validate_payload(event, signature, note)
        if errors:
            raise ValidationError(errors[0], errors)

        if event in (TimesheetEvent.HR_APPROVE, TimesheetEvent.HR_DENY) and not can_hr_review(actor):
            logger.info("Rejected %s on timesheet %s by %s: role", event.value, timesheet_id, actor.id)
            raise NotActionableError()

        plan = TimesheetStateMachine.plan(event, self.clock(), signature=signature, note=note)

        try:
            result = await self.session.execute(
                update(Timesheet)
                .where(
                    Timesheet.id == timesheet_id,
                    Timesheet.state == plan.from_state.value,
                    *self._actor_guard(actor, event),
                )
                .values(**plan.values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                logger.info(
                    "Rejected %s on timesheet %s by %s: not actionable",
                    event.value,
                    timesheet_id,
                    actor.id,
                )
                raise NotActionableError()

            # Reload before commit; the session must be idle when handlers run
            timesheet = await self.get_timesheet(timesheet_id)
            if timesheet is None:
                await self.session.rollback()
                raise PersistenceError("Timesheet could not be reloaded after update")

            self.session.add(
                AuditEvent(
                    actor_user_id=actor.id,
                    entity_type="timesheet",
                    entity_id=timesheet_id,
                    action=event.value,
                    from_state=plan.from_state.value,
                    to_state=plan.to_state.value,
                    note=plan.values.get("manager_note"),
                )
            )
            await self.session.commit()
        except DBAPIError as exc:
            await self.session.rollback()
            raise PersistenceError("Timesheet storage is unavailable") from exc

        logger.info(
            "Timesheet %s: %s by %s, now %s",
            timesheet_id,
            event.value,
            actor.id,
            plan.to_state.value,
        )

        self._notify(actor, timesheet, event, note)
        return timesheet

    def _notify(
        self,
        actor: Actor,
        timesheet: Timesheet,
        event: TimesheetEvent,
        note: str | None,
    ) -> None:
        """Schedule notification of the committed transition. Never blocks or raises."""
        if self.dispatcher is None:
            return

        kwargs: dict[str, Any] = {}
        if event in TimesheetStateMachine.NOTE_EVENTS:
            kwargs["note"] = (note or "").strip()

        transition_event = EVENT_TYPES[event](
            metadata=EventMetadata.create(actor_id=actor.id),
            timesheet_id=timesheet.id,
            owner_id=timesheet.user_id,
            owner_name=timesheet.user.name,
            manager_id=timesheet.user.manager_id,
            period_start=timesheet.period_start,
            period_end=timesheet.period_end,
            state=timesheet.state,
            **kwargs,
        )
        self.dispatcher.dispatch(transition_event)
