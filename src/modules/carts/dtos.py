"""Cart snapshot DTOs consumed by the order creation saga.

The snapshot is an immutable, validated copy of a cart taken inside the
saga's transaction.  Validation enforces the invariants the order
relies on:

- every line has ``quantity >= 1`` and ``total_price == quantity * unit_price``;
- all monetary values are non-negative;
- ``subtotal == sum(line.total_price)`` when the cart has lines.

An empty ``items`` list is *valid* here; the saga reports it as
``EmptyCart`` before any side effect.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from modules.catalog.snapshots import ProductSnapshot

if TYPE_CHECKING:
    from modules.carts.models import Cart


NonNegative = Field(ge=Decimal("0"))


class CartLineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(ge=1)
    unit_price: Decimal = NonNegative
    total_price: Decimal = NonNegative
    product_snapshot: ProductSnapshot

    @model_validator(mode="after")
    def total_matches_quantity_times_price(self):
        if self.total_price != self.quantity * self.unit_price:
            raise ValueError(
                f"Line total {self.total_price} != {self.quantity} x {self.unit_price}."
            )
        return self


class CartSnapshotDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    cart_id: UUID
    status: str
    user_id: Optional[int] = None
    items: List[CartLineDTO]
    subtotal: Decimal = NonNegative
    discount_total: Decimal = NonNegative
    shipping_total: Decimal = NonNegative
    tax_total: Decimal = NonNegative
    grand_total: Decimal = NonNegative
    applied_coupon_id: Optional[UUID] = None
    referral_code_id: Optional[UUID] = None

    @model_validator(mode="after")
    def subtotal_matches_lines(self):
        if self.items:
            lines_total = sum((line.total_price for line in self.items), Decimal("0"))
            if lines_total != self.subtotal:
                raise ValueError(
                    f"Cart subtotal {self.subtotal} != sum of lines {lines_total}."
                )
        return self

    @classmethod
    def from_entity(cls, cart: Cart) -> CartSnapshotDTO:
        """Build a snapshot; assumes ``items__product`` and ``items__variant`` are prefetched."""
        return cls(
            cart_id=cart.id,
            status=cart.status,
            user_id=cart.user_id,
            items=[
                CartLineDTO(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    product_snapshot=ProductSnapshot.capture(item.product, item.variant),
                )
                for item in cart.items.all()
            ],
            subtotal=cart.subtotal,
            discount_total=cart.discount_total,
            shipping_total=cart.shipping_total,
            tax_total=cart.tax_total,
            grand_total=cart.grand_total,
            applied_coupon_id=cart.applied_coupon_id,
            referral_code_id=cart.referral_code_id,
        )
