"""Django ORM implementation of the Order repository.

Writes join the caller's transaction: the creation saga and the state
machine own the unit-of-work boundary. ``save`` flushes the aggregate's
pending domain events into the transactional outbox.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.core.outbox import record_events
from modules.orders.models import Order, OrderItem, OrderRefund, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

ORDER_RELATIONS = ("items", "status_history", "refunds")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Order:
        fields = dict(data)
        items = fields.pop("items", [])
        with transaction.atomic():
            order = Order.objects.create(**fields)
            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        product_id=item["product_id"],
                        variant_id=item.get("variant_id"),
                        quantity=item["quantity"],
                        unit_price=item["unit_price"],
                        total_price=item["total_price"],
                        product_snapshot=item["product_snapshot"],
                    )
                    for item in items
                ]
            )
        logger.debug("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or malformed IDs."""
        try:
            return (
                Order.objects.prefetch_related(*ORDER_RELATIONS)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Items are prefetched so the caller can release stock while the row
        is locked. Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Supported filter keys: ``status``, ``user_id``, ``created_at__range``."""
        queryset = Order.objects.prefetch_related(*ORDER_RELATIONS)
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def exists_order_number(self, order_number: str) -> bool:
        return Order.objects.filter(order_number=order_number).exists()

    def history(self, order_id: UUID) -> List[OrderStatusHistory]:
        return list(OrderStatusHistory.objects.filter(order_id=order_id).order_by("created_at", "id"))

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        """Persist an order and move its pending domain events to the outbox."""
        event_count = len(entity.domain_events)
        with transaction.atomic():
            entity.save()
            self.flush_events(entity)
        logger.debug("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    def flush_events(self, entity: Order) -> None:
        record_events(entity.domain_events)
        entity.clear_domain_events()

    # ------------------------------------------------------------------
    # Status / history / refunds
    # ------------------------------------------------------------------

    def update_status_if(self, order_id: UUID, expected: str, new_status: str) -> bool:
        updated = Order.objects.filter(id=order_id, status=expected).update(
            status=new_status,
            updated_at=timezone.now(),
        )
        return bool(updated)

    def add_history(
        self,
        order_id: UUID,
        to_status: str,
        from_status: Optional[str] = None,
        notes: str = "",
        actor_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            notes=notes,
            actor_id=actor_id,
        )
        logger.debug(
            "order.history_added",
            order_id=str(order_id),
            from_status=from_status,
            to_status=to_status,
        )
        return history

    def add_refund(
        self,
        order_id: UUID,
        amount: Decimal,
        reason: str,
        is_full: bool,
        actor_id: Optional[int] = None,
        refund_id: str = "",
    ) -> OrderRefund:
        with transaction.atomic():
            refund = OrderRefund.objects.create(
                order_id=order_id,
                amount=amount,
                reason=reason,
                is_full=is_full,
                actor_id=actor_id,
                refund_id=refund_id,
            )
            Order.objects.filter(id=order_id).update(
                refunded_amount=F("refunded_amount") + amount,
                updated_at=timezone.now(),
            )
        return refund
