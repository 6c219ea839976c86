"""Inventory ledger: the only writer of catalog stock counters.

Business rules enforced:
- ``reserve`` is a single conditional UPDATE
  (``stock_quantity >= requested``), never read-modify-write, so concurrent
  reservations against one row serialize in the database and the counter
  can never go negative.
- Untracked items (``manage_stock = False``) are always available and
  their counter is never touched.
- Both operations join the caller's transaction; a saga that aborts rolls
  its reservations back together with everything else.
- ``check`` is advisory. Its answer may be stale by the time a caller acts
  on it; only ``reserve``/``release`` decide availability.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Type, Union
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.catalog.models import Product, ProductVariant
from modules.core.outbox import record_events
from modules.inventory.events import StockReleased, StockReserved
from modules.inventory.exceptions import (
    InsufficientStock,
    InvalidStockQuantity,
    StockItemNotFound,
)

logger = structlog.get_logger(__name__)

StockModel = Union[Type[Product], Type[ProductVariant]]


@dataclass(frozen=True)
class StockItemRef:
    """Names one stock counter: a product, or one of its variants."""

    product_id: UUID
    variant_id: Optional[UUID] = None

    def __str__(self) -> str:
        if self.variant_id:
            return f"product {self.product_id} / variant {self.variant_id}"
        return f"product {self.product_id}"


@dataclass(frozen=True)
class StockMovement:
    """Result of a successful ``reserve`` or ``release``."""

    item: StockItemRef
    quantity: int
    tracked: bool


class InventoryLedger:
    """Atomic reserve/release/check over product and variant counters."""

    def reserve(self, item: StockItemRef, quantity: int) -> StockMovement:
        """Take *quantity* units of *item* out of stock.

        Raises:
            InvalidStockQuantity: *quantity* is not a positive integer.
            StockItemNotFound: the product/variant does not exist.
            InsufficientStock: tracked item with fewer units than requested;
                the counter is left unchanged.
        """
        _validate_quantity(quantity)
        model, pk = _resolve(item)
        log = logger.bind(item=str(item), quantity=quantity)

        with transaction.atomic():
            tracked = _is_tracked(model, pk, item)
            if not tracked:
                log.debug("inventory.untracked_reserve")
                return StockMovement(item=item, quantity=quantity, tracked=False)

            updated = model.objects.filter(
                pk=pk, manage_stock=True, stock_quantity__gte=quantity
            ).update(
                stock_quantity=F("stock_quantity") - quantity,
                updated_at=timezone.now(),
            )
            if not updated:
                available = self.check(item)
                log.warning("inventory.insufficient_stock", available=available)
                raise InsufficientStock(
                    item=item, requested=quantity, available=available
                )

            record_events(
                [
                    StockReserved(
                        aggregate_id=item.product_id,
                        variant_id=item.variant_id,
                        quantity=quantity,
                    )
                ]
            )

        log.info("inventory.stock_reserved")
        return StockMovement(item=item, quantity=quantity, tracked=True)

    def release(self, item: StockItemRef, quantity: int) -> StockMovement:
        """Return *quantity* units of *item* to stock (no-op when untracked).

        Raises:
            InvalidStockQuantity: *quantity* is not a positive integer.
            StockItemNotFound: the product/variant does not exist.
        """
        _validate_quantity(quantity)
        model, pk = _resolve(item)
        log = logger.bind(item=str(item), quantity=quantity)

        with transaction.atomic():
            updated = model.objects.filter(pk=pk, manage_stock=True).update(
                stock_quantity=F("stock_quantity") + quantity,
                updated_at=timezone.now(),
            )
            if not updated:
                # Either unknown or untracked; tell them apart.
                _is_tracked(model, pk, item)
                log.debug("inventory.untracked_release")
                return StockMovement(item=item, quantity=quantity, tracked=False)

            record_events(
                [
                    StockReleased(
                        aggregate_id=item.product_id,
                        variant_id=item.variant_id,
                        quantity=quantity,
                    )
                ]
            )

        log.info("inventory.stock_released")
        return StockMovement(item=item, quantity=quantity, tracked=True)

    def check(self, item: StockItemRef) -> int:
        """Return the current counter value. Advisory only.

        Raises:
            StockItemNotFound: the product/variant does not exist.
        """
        model, pk = _resolve(item)
        value = model.objects.filter(pk=pk).values_list("stock_quantity", flat=True).first()
        if value is None:
            raise StockItemNotFound(item)
        return value


def _resolve(item: StockItemRef) -> tuple[StockModel, UUID]:
    if item.variant_id is not None:
        return ProductVariant, item.variant_id
    return Product, item.product_id


def _is_tracked(model: StockModel, pk: UUID, item: StockItemRef) -> bool:
    tracked = model.objects.filter(pk=pk).values_list("manage_stock", flat=True).first()
    if tracked is None:
        raise StockItemNotFound(item)
    return tracked


def _validate_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidStockQuantity(
            f"Stock quantity must be a positive integer, got {quantity!r}."
        )
