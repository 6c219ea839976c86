"""Event handlers for Orders domain events.

Handlers receive relayed outbox payloads; they only log for now.
"""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderRefunded,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info(
            "order.event.created",
            order_id=payload["aggregate_id"],
            order_number=payload.get("order_number"),
            status=payload.get("status"),
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=payload["aggregate_id"],
            old_status=payload.get("old_status"),
            new_status=payload.get("new_status"),
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info("order.event.cancelled", order_id=payload["aggregate_id"])


class OrderRefundedHandler(IEventHandler[OrderRefunded]):
    def handle(self, event: OrderRefunded) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info(
            "order.event.refunded",
            order_id=payload["aggregate_id"],
            amount=payload.get("amount"),
            full=payload.get("full"),
        )


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_refunded_handler = OrderRefundedHandler()
