# core/domain/dispatcher.py
from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Type, TypeVar, Union

from .events import DomainEvent

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=DomainEvent)
Handler = Callable[[EventT], Union[None, Awaitable[None]]]

DEAD_LETTER_LOGGER = "atelier.deadletter"


class Outbox:
    """
    Events queued by a workflow while its primary write is in flight.
    Flushed by DomainEventDispatcher.collect() only when the block exits cleanly.
    """

    def __init__(self) -> None:
        self._events: List[DomainEvent] = []

    def add(self, event: DomainEvent) -> None:
        self._events.append(event)

    def drain(self) -> List[DomainEvent]:
        events, self._events = self._events, []
        return events

    def __len__(self) -> int:
        return len(self._events)


class DomainEventDispatcher:
    """
    In-process domain event dispatcher for non-critical effects
    (notifications, audit comments).

    Usage:

        dispatcher = DomainEventDispatcher()

        @dispatcher.register_handler(InvoicePaid)
        async def handle_invoice_paid(event: InvoicePaid) -> None:
            ...

        async with dispatcher.collect() as outbox:
            row = await store.update(...)
            outbox.add(InvoicePaid(invoice_id=row["id"], ...))

    - One instance per engine; tests build their own.
    - Handler failures go to the dead-letter logger and never reach the
      workflow that emitted the event.
    """

    def __init__(self, dead_letter: Optional[logging.Logger] = None) -> None:
        # Mapping: { EventClass -> [handler_fn, handler_fn, ...] }
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)
        self.dead_letter = dead_letter or logging.getLogger(DEAD_LETTER_LOGGER)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register_handler(self, event_type: Type[EventT]):
        """
        Decorator to register a handler (sync or async) for the given event type.
        """

        def decorator(func: Handler) -> Handler:
            self.subscribe(event_type, func)
            return func

        return decorator

    def subscribe(self, event_type: Type[EventT], handler: Handler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug(
            "Registered domain event handler %s for %s",
            getattr(handler, "__name__", repr(handler)),
            event_type.__name__,
        )

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    # ------------------------------------------------------------------
    # Emitting
    # ------------------------------------------------------------------
    async def emit(self, event: DomainEvent) -> None:
        """
        Dispatch the given domain event to all registered handlers.

        - Handlers run sequentially, in registration order.
        - Exceptions in one handler are dead-lettered and do not stop other handlers.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        if not handlers:
            logger.debug("No handlers registered for event %s", event_type.__name__)
            return

        logger.debug(
            "Emitting event %s to %d handler(s)",
            event_type.__name__,
            len(handlers),
        )

        for handler in handlers:
            await self.run_effect(
                getattr(handler, "__name__", repr(handler)),
                handler,
                event,
                event=event_type.__name__,
            )

    async def run_effect(
        self,
        label: str,
        func: Callable[..., Any],
        *args: Any,
        **context: Any,
    ) -> bool:
        """
        Run one best-effort effect. Returns False (and dead-letters) on failure.
        """
        try:
            result = func(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.dead_letter.exception(
                "Non-critical effect %s failed",
                label,
                extra={"effect": label, "context": context},
            )
            return False
        return True

    @asynccontextmanager
    async def collect(self):
        """
        Queue events during a workflow step and emit them after it succeeds.
        If the block raises, queued events are discarded.
        """
        outbox = Outbox()
        yield outbox
        for event in outbox.drain():
            await self.emit(event)
