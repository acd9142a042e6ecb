"""Async dispatcher for timesheet transition events.

The dispatcher provides:
- Handler registration by event type, or for all events
- Error isolation (a failing handler never affects other handlers or the caller)
- Background dispatch, so a transition never waits on its handlers

Events are dispatched after the transition has been committed. Delivery is
best effort: failures are logged and returned, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from timesheet_engine.events.types import TimesheetTransitionEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=TimesheetTransitionEvent)


@runtime_checkable
class AsyncEventHandler(Protocol):
    """Protocol for asynchronous event handlers."""

    async def __call__(self, event: TimesheetTransitionEvent) -> None:
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: AsyncEventHandler
    event_types: set[str] | None  # None = all events


class NotificationDispatcher:
    """Asynchronous event dispatcher.

    Usage:
        dispatcher = NotificationDispatcher()

        async def notify_manager(event: TimesheetSubmitted) -> None:
            ...

        dispatcher.on(TimesheetSubmitted, notify_manager)
        await dispatcher.emit(event)
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []
        self._pending: set[asyncio.Task[list[Exception]]] = set()

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: AsyncEventHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}
        self._handlers.append(HandlerRegistration(handler=handler, event_types=types))

    def on_all(self, handler: AsyncEventHandler) -> None:
        """Register handler for all events."""
        self._handlers.append(HandlerRegistration(handler=handler, event_types=None))

    def off(self, handler: AsyncEventHandler) -> None:
        """Unregister a handler."""
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def emit(self, event: TimesheetTransitionEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        matching = [
            reg.handler
            for reg in self._handlers
            if reg.event_types is None or event.event_type in reg.event_types
        ]
        if not matching:
            return []

        results = await asyncio.gather(
            *(self._call_handler(handler, event) for handler in matching),
            return_exceptions=True,
        )
        return [result for result in results if isinstance(result, Exception)]

    async def _call_handler(
        self,
        handler: AsyncEventHandler,
        event: TimesheetTransitionEvent,
    ) -> None:
        """Call handler with error logging."""
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Notification handler %s failed for event %s (timesheet %s)",
                handler,
                event.event_type,
                event.timesheet_id,
            )
            raise

    def dispatch(self, event: TimesheetTransitionEvent) -> asyncio.Task[list[Exception]]:
        """Schedule `emit` in the background and return immediately.

        The task is held until it finishes; `drain` waits for whatever is
        still running.
        """
        task = asyncio.create_task(self._emit_logged(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every dispatched event to finish (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _emit_logged(self, event: TimesheetTransitionEvent) -> list[Exception]:
        failures = await self.emit(event)
        if failures:
            logger.warning(
                "%d notification handler(s) failed for %s on timesheet %s",
                len(failures),
                event.event_type,
                event.timesheet_id,
            )
        return failures
