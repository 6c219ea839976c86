"""Event handlers for inventory domain events."""

from __future__ import annotations

import structlog

from modules.inventory.events import StockReleased, StockReserved
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class StockReservedHandler(IEventHandler[StockReserved]):
    def handle(self, event: StockReserved) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info(
            "inventory.event.stock_reserved",
            product_id=payload["aggregate_id"],
            variant_id=payload.get("variant_id"),
            quantity=payload["quantity"],
        )


class StockReleasedHandler(IEventHandler[StockReleased]):
    def handle(self, event: StockReleased) -> None:
        self.handle_payload(event.to_payload())

    def handle_payload(self, payload: dict) -> None:
        logger.info(
            "inventory.event.stock_released",
            product_id=payload["aggregate_id"],
            variant_id=payload.get("variant_id"),
            quantity=payload["quantity"],
        )


stock_reserved_handler = StockReservedHandler()
stock_released_handler = StockReleasedHandler()
