"""Cart repository interface: the order engine's view of the cart collaborator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from modules.carts.dtos import CartSnapshotDTO


class ICartRepository(ABC):
    @abstractmethod
    def get_snapshot(self, cart_id: UUID) -> CartSnapshotDTO:
        """Return a validated snapshot of the cart.

        Raises ``CartNotFound``; pydantic ``ValidationError`` when the cart
        breaks a line or totals invariant.
        """

    @abstractmethod
    def convert(self, cart_id: UUID) -> None:
        """Move an ``active`` cart to ``converted``.

        Raises ``CartNotConvertible`` if the cart is no longer active.
        """
