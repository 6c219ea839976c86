"""Domain events for the inventory ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class StockReserved(DomainEvent):
    """Units of a tracked item were taken out of stock."""

    topic = "inventory"

    variant_id: Optional[UUID] = None
    quantity: int


@dataclass(frozen=True, kw_only=True)
class StockReleased(DomainEvent):
    """Units of a tracked item were returned to stock."""

    topic = "inventory"

    variant_id: Optional[UUID] = None
    quantity: int
