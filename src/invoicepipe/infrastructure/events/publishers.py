# SPDX-License-Identifier: Apache-2.0
"""Event publisher implementations."""

from __future__ import annotations

import inspect
import logging
from typing import Callable, Dict, List

from invoicepipe.domain.events import DomainEvent, IEventPublisher

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], object]


class InMemoryEventPublisher(IEventPublisher):
    """In-process publisher that dispatches events to registered handlers.

    Published events are kept in memory so a run can be inspected afterwards.
    A failing handler is logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._handlers: Dict[str, List[EventHandler]] = {}

    async def publish(self, event: DomainEvent) -> None:
        self._events.append(event)

        event_type = event.event_type
        for handler in self._handlers.get(event_type, []):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as e:
                logger.error("Event handler error for %s: %s", event_type, e)

    async def publish_many(self, events: List[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for events whose ``event_type`` matches."""
        self._handlers.setdefault(event_type, []).append(handler)

    def has_handlers(self, event_type: str) -> bool:
        return bool(self._handlers.get(event_type))

    def get_published_events(self) -> List[DomainEvent]:
        """All published events (useful for testing)."""
        return self._events.copy()

    def clear_events(self) -> None:
        self._events.clear()
