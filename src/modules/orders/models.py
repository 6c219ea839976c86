"""Order, OrderItem, OrderStatusHistory and OrderRefund models.

Business rules implemented:
- ``order_number`` is assigned once by the creation saga and never changes.
- Orders are never physically deleted.
- Order lines, status history and refunds are append-only.
- Each line stores a frozen product snapshot and the prices copied from
  the cart; ``total_price`` is never recomputed.
- History rows are ordered by ``(created_at, id)``; ids are UUIDv7 so rows
  sharing a timestamp keep their insertion order.
- ``refunded_amount`` is the running total of recorded refunds and can never
  exceed ``grand_total``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from modules.core.exceptions import ImmutableRecordError
from modules.core.models import AppendOnlyModel, BaseModel
from modules.orders.constants import VALID_TRANSITIONS, OrderStatus
from modules.orders.value_objects import Address
from shared.domain.events import DomainEventMixin

ZERO = Decimal("0.00")


def _money(**kwargs: Any) -> models.DecimalField:
    return models.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is the human-readable identifier
    (``ORD-YYYYMMDD-XXXXXX``); the UUIDv7 ``id`` is used for internal
    references and API lookups.

    ``applied_coupon_id`` and ``referral_code_id`` are carried verbatim from
    the cart; the order never re-validates them.
    """

    order_number: models.CharField = models.CharField(
        max_length=32, unique=True, editable=False
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
    )
    cart: models.ForeignKey = models.ForeignKey(
        "carts.Cart",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    subtotal: models.DecimalField = _money(default=ZERO)
    discount_total: models.DecimalField = _money(default=ZERO)
    shipping_total: models.DecimalField = _money(default=ZERO)
    tax_total: models.DecimalField = _money(default=ZERO)
    grand_total: models.DecimalField = _money(default=ZERO)
    refunded_amount: models.DecimalField = _money(default=ZERO)

    billing_address: models.JSONField = models.JSONField(null=True, blank=True)
    shipping_address: models.JSONField = models.JSONField(null=True, blank=True)
    customer_notes: models.TextField = models.TextField(blank=True, default="")

    payment_method: models.CharField = models.CharField(
        max_length=50, blank=True, default=""
    )
    payment_transaction_id: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    applied_coupon_id: models.UUIDField = models.UUIDField(null=True, blank=True)
    referral_code_id: models.UUIDField = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["user", "-created_at"], name="orders_user_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(subtotal__gte=0)
                & Q(discount_total__gte=0)
                & Q(shipping_total__gte=0)
                & Q(tax_total__gte=0)
                & Q(grand_total__gte=0),
                name="orders_totals_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(refunded_amount__gte=0)
                & Q(refunded_amount__lte=F("grand_total")),
                name="orders_refunded_within_total",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def refundable_amount(self) -> Decimal:
        return self.grand_total - self.refunded_amount

    # ------------------------------------------------------------------
    # Value objects
    # ------------------------------------------------------------------

    @property
    def billing(self) -> Address | None:
        return Address.from_json(self.billing_address)

    @property
    def shipping(self) -> Address | None:
        return Address.from_json(self.shipping_address)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_order_number = instance.__dict__.get("order_number")
        return instance

    def save(self, *args: Any, **kwargs: Any) -> None:
        loaded = getattr(self, "_loaded_order_number", None)
        if loaded and self.order_number != loaded:
            raise ImmutableRecordError(
                f"Order number {loaded} cannot be changed once assigned."
            )
        super().save(*args, **kwargs)
        self._loaded_order_number = self.order_number

    def delete(self, using=None, keep_parents=False):
        raise ImmutableRecordError("Orders are never deleted.")

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(AppendOnlyModel):
    """Line item with a frozen copy of the purchased product.

    ``product_snapshot`` holds name, sku, description, product type, images
    and variant attributes as they were at purchase time.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    variant: models.ForeignKey = models.ForeignKey(
        "catalog.ProductVariant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField()
    unit_price: models.DecimalField = _money()
    total_price: models.DecimalField = _money()
    product_snapshot: models.JSONField = models.JSONField(default=dict)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(unit_price__gte=0) & Q(total_price__gte=0),
                name="order_items_prices_non_negative",
            ),
        ]

    def __str__(self) -> str:
        name = (self.product_snapshot or {}).get("name", self.product_id)
        return f"{name} x{self.quantity} (${self.total_price})"


class OrderStatusHistory(AppendOnlyModel):
    """Append-only audit trail for order status transitions.

    ``from_status`` is ``None`` only for the row written at creation.
    ``actor`` is ``None`` when the system performed the change.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    from_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    to_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    actor: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="osh_order_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.from_status} -> {self.to_status}"


class OrderRefund(AppendOnlyModel):
    """One recorded refund, full or partial."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    amount: models.DecimalField = _money()
    reason: models.TextField = models.TextField(blank=True, default="")
    is_full: models.BooleanField = models.BooleanField(default=False)
    actor: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    refund_id: models.CharField = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "order_refunds"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="order_refunds_amount_positive",
            ),
        ]

    @property
    def notes(self) -> str:
        return f"{self.reason} - Refund amount: {self.amount}"

    def __str__(self) -> str:
        return f"{self.order_id} refund {self.amount}"
