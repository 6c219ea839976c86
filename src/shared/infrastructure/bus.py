"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Simple in-process event bus.

    Handlers are keyed by event class; relayed outbox payloads are routed by
    the class name stored in ``OutboxEvent.event_type``.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            handler.handle(event)

    def publish_payload(self, event_name: str, payload: dict) -> int:
        """Deliver a persisted event payload; returns the number of handlers."""
        delivered = 0
        for event_class, handlers in self._handlers.items():
            if event_class.__name__ != event_name:
                continue
            for handler in handlers:
                handler.handle_payload(payload)
                delivered += 1
        if not delivered:
            logger.debug("event_bus.no_handlers", event_name=event_name)
        return delivered

    def clear(self) -> None:
        self._handlers.clear()


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
