"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when the creation saga commits an order."""

    topic = "orders"

    order_number: str
    status: str
    grand_total: Decimal


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    topic = "orders"

    old_status: Optional[str]
    new_status: str


@dataclass(frozen=True, kw_only=True)
class OrderCancelled(DomainEvent):
    topic = "orders"

    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class OrderRefunded(DomainEvent):
    """Raised for full and partial refunds alike."""

    topic = "orders"

    amount: Decimal
    full: bool
