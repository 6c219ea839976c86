"""Domain bus interfaces for in-process event handling."""

from __future__ import annotations

from typing import Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Handler interface for domain events."""

    def handle(self, event: E) -> None: ...

    def handle_payload(self, payload: dict) -> None: ...


class IEventBus(Protocol):
    """Event bus interface.

    ``publish_payload`` lets the outbox relay deliver events that were
    persisted as JSON, without rebuilding the event dataclass.
    """

    def publish(self, event: DomainEvent) -> None: ...

    def publish_payload(self, event_name: str, payload: dict) -> int: ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...
