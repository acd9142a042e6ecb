"""Notification handlers for timesheet transitions.

Handlers run after the transition has committed, each in its own session.
A failing handler is logged by the dispatcher and never reaches the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timesheet_engine.config import Settings
from timesheet_engine.errors import NotActionableError
from timesheet_engine.events import (
    NotificationDispatcher,
    TimesheetHRApproved,
    TimesheetHRDenied,
    TimesheetManagerApproved,
    TimesheetManagerDenied,
    TimesheetSubmitted,
    TimesheetTransitionEvent,
)
from timesheet_engine.models import Notification, User
from timesheet_engine.services.mailer import Mailer
from timesheet_engine.services.permissions import REVIEWER_ROLES, AccountStatus, Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationContent:
    title: str
    message: str


async def resolve_recipients(
    session: AsyncSession, event: TimesheetTransitionEvent
) -> list[User]:
    """Who hears about a transition.

    - submitted: the owner's manager
    - manager approved: active HR/ADMIN users and the owner
    - denied (either stage) or HR approved: the owner
    """
    ids: list[UUID] = []
    if isinstance(event, TimesheetSubmitted):
        if event.manager_id is not None:
            ids.append(event.manager_id)
    else:
        ids.append(event.owner_id)

    recipients: list[User] = []
    if ids:
        result = await session.execute(select(User).where(User.id.in_(ids)))
        recipients.extend(result.scalars().all())

    if isinstance(event, TimesheetManagerApproved):
        result = await session.execute(
            select(User)
            .where(User.role.in_([role.value for role in REVIEWER_ROLES]))
            .where(User.status == AccountStatus.ACTIVE.value)
            .where(User.id != event.owner_id)
            .order_by(User.name)
        )
        recipients.extend(result.scalars().all())

    return recipients


def compose(event: TimesheetTransitionEvent, recipient_id: UUID) -> NotificationContent:
    """Title and body for one recipient of an event."""
    period = event.period_label
    is_owner = recipient_id == event.owner_id

    if isinstance(event, TimesheetSubmitted):
        return NotificationContent(
            "Timesheet Submitted for Approval",
            f"{event.owner_name} submitted a timesheet for {period} for your approval.",
        )
    if isinstance(event, TimesheetManagerApproved):
        if is_owner:
            return NotificationContent(
                "Timesheet Approved",
                f"Your timesheet for {period} was approved by your manager and sent to HR.",
            )
        return NotificationContent(
            "Timesheet Pending HR Approval",
            f"{event.owner_name}'s timesheet for {period} is ready for HR review.",
        )
    if isinstance(event, (TimesheetManagerDenied, TimesheetHRDenied)):
        stage = "your manager" if isinstance(event, TimesheetManagerDenied) else "HR"
        return NotificationContent(
            "Timesheet Requires Revision",
            f"Your timesheet for {period} was returned by {stage}: {event.note}",
        )
    if isinstance(event, TimesheetHRApproved):
        return NotificationContent(
            "Timesheet Finally Approved",
            f"Your timesheet for {period} has received final approval.",
        )
    return NotificationContent("Timesheet Notification", f"Timesheet for {period} was updated.")


class InAppNotificationHandler:
    """Writes Notification rows for each recipient."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def __call__(self, event: TimesheetTransitionEvent) -> None:
        async with self.session_factory() as session:
            recipients = await resolve_recipients(session, event)
            for user in recipients:
                content = compose(event, user.id)
                session.add(
                    Notification(
                        user_id=user.id,
                        type=event.notification_type.value,
                        title=content.title,
                        message=content.message,
                        resource_id=event.timesheet_id,
                    )
                )
            await session.commit()
        logger.debug(
            "Stored %d notification(s) for %s on timesheet %s",
            len(recipients),
            event.event_type,
            event.timesheet_id,
        )


class EmailNotificationHandler:
    """Emails each recipient through the mailer.

    A failed send is logged and the remaining recipients are still tried.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], mailer: Mailer):
        self.session_factory = session_factory
        self.mailer = mailer

    async def __call__(self, event: TimesheetTransitionEvent) -> None:
        async with self.session_factory() as session:
            recipients = [
                (user.id, user.name, user.email)
                for user in await resolve_recipients(session, event)
            ]

        for user_id, name, email in recipients:
            content = compose(event, user_id)
            body = (
                f"Hello {name},\n\n{content.message}\n\n"
                f"Employee: {event.owner_name}\n"
                f"Period: {event.period_label}\n"
                f"Status: {event.state}\n\n"
                "This is an automated notification from the timesheet system.\n"
            )
            try:
                await self.mailer.send(email, content.title, body)
            except Exception:
                logger.exception(
                    "Email to %s failed for %s on timesheet %s",
                    email,
                    event.event_type,
                    event.timesheet_id,
                )


def build_dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    mailer: Mailer | None = None,
) -> NotificationDispatcher:
    """Dispatcher with the in-app handler, plus email when SMTP is configured."""
    dispatcher = NotificationDispatcher()
    dispatcher.on_all(InAppNotificationHandler(session_factory))

    mailer = mailer or Mailer(settings)
    if mailer.enabled:
        dispatcher.on_all(EmailNotificationHandler(session_factory, mailer))
    else:
        logger.info("SMTP not configured; email notifications disabled")
    return dispatcher


class NotificationService:
    """Reads and acknowledges a user's in-app notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(
        self, actor: Actor, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == actor.id)
            .order_by(Notification.created_at.desc(), Notification.id)
            .limit(limit)
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark_read(self, actor: Actor, notification_id: UUID) -> Notification:
        notification = await self.session.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == actor.id,
            )
        )
        if notification is None:
            raise NotActionableError("Notification not found")
        notification.is_read = True
        await self.session.commit()
        return notification

    async def mark_all_read(self, actor: Actor) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == actor.id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.session.commit()
        return result.rowcount
