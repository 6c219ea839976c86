"""Cart and CartItem models.

Carts are built and priced elsewhere (cart total formulas, coupons and
shipping/tax strategies are external). The order engine reads a cart as
an immutable snapshot and, on success, moves it to the terminal
``converted`` status so it can no longer be mutated or converted twice.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

ZERO = Decimal("0.00")


class CartStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CONVERTED = "converted", "Converted"
    ABANDONED = "abandoned", "Abandoned"
    EXPIRED = "expired", "Expired"


class Cart(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="carts",
    )
    cart_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=CartStatus.choices,
        default=CartStatus.ACTIVE,
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    shipping_total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax_total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    grand_total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    applied_coupon_id = models.UUIDField(null=True, blank=True)
    referral_code_id = models.UUIDField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "carts"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="carts_status_idx"),
        ]

    @property
    def is_convertible(self) -> bool:
        return self.status == CartStatus.ACTIVE

    def __str__(self) -> str:
        return f"Cart {self.id} ({self.status})"


class CartItem(BaseModel):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="cart_items",
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="cart_items",
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = "cart_items"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity}"
