"""Order repository interface.

Extends ``IRepository[Order]`` with the operations the saga, the state
machine and the read side need. The service layer depends exclusively on
this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderRefund, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes OrderItem children, OrderStatusHistory and
    OrderRefund records.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Insert an order and its items.

        ``data`` holds the order fields plus ``items``: a list of dicts with
        ``product_id``, ``variant_id``, ``quantity``, ``unit_price``,
        ``total_price`` and ``product_snapshot``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items, history and refunds."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row lock until the transaction ends."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def exists_order_number(self, order_number: str) -> bool:
        """Whether an order already uses *order_number*."""

    @abstractmethod
    def update_status_if(self, order_id: UUID, expected: str, new_status: str) -> bool:
        """Set ``status`` only if it still equals *expected*; return success."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        to_status: str,
        from_status: Optional[str] = None,
        notes: str = "",
        actor_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        """Append a row to the order's status history."""

    @abstractmethod
    def history(self, order_id: UUID) -> List[OrderStatusHistory]:
        """Return the status history oldest first."""

    @abstractmethod
    def add_refund(
        self,
        order_id: UUID,
        amount: Decimal,
        reason: str,
        is_full: bool,
        actor_id: Optional[int] = None,
        refund_id: str = "",
    ) -> OrderRefund:
        """Record a refund and add *amount* to ``refunded_amount``."""

    @abstractmethod
    def flush_events(self, entity: Order) -> None:
        """Record the aggregate's pending domain events in the outbox."""
