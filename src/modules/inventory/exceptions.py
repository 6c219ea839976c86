"""Inventory ledger exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from modules.core.exceptions import DomainError, DomainValidationError, NotFound

if TYPE_CHECKING:
    from modules.inventory.ledger import StockItemRef


class InsufficientStock(DomainError):
    """A tracked item has fewer units than requested. Nothing was reserved."""

    code = "insufficient_stock"

    def __init__(self, item: StockItemRef, requested: int, available: int) -> None:
        self.item = item
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item}: requested {requested}, "
            f"available {available}."
        )

    def context(self) -> Dict[str, Any]:
        return {
            "product_id": str(self.item.product_id),
            "variant_id": str(self.item.variant_id) if self.item.variant_id else None,
            "requested": self.requested,
            "available": self.available,
        }


class StockItemNotFound(NotFound):
    """The product or variant behind a stock reference does not exist."""

    code = "stock_item_not_found"

    def __init__(self, item: StockItemRef) -> None:
        self.item = item
        super().__init__(f"Stock item {item} not found.")

    def context(self) -> Dict[str, Any]:
        return {"product_id": str(self.item.product_id)}


class InvalidStockQuantity(DomainValidationError):
    """Reserve/release quantities must be positive integers."""

    code = "invalid_stock_quantity"
