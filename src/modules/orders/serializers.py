"""Order DRF serializers for API input/output.

Serializers validate the HTTP payload; the service layer receives pydantic
DTOs built from ``validated_data``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderItem, OrderRefund, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class AddressSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, default="", allow_blank=True)
    last_name = serializers.CharField(required=False, default="", allow_blank=True)
    company = serializers.CharField(required=False, default="", allow_blank=True)
    line1 = serializers.CharField()
    line2 = serializers.CharField(required=False, default="", allow_blank=True)
    city = serializers.CharField()
    state = serializers.CharField(required=False, default="", allow_blank=True)
    postal_code = serializers.CharField()
    country = serializers.CharField(min_length=2, max_length=2)
    phone = serializers.CharField(required=False, default="", allow_blank=True)


class PaymentRequestSerializer(serializers.Serializer):
    details = serializers.DictField(required=False, default=dict)
    authorize_only = serializers.BooleanField(required=False, default=False)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order-from-cart request payload."""

    cart_id = serializers.UUIDField()
    billing_address = AddressSerializer()
    shipping_address = AddressSerializer(required=False, allow_null=True, default=None)
    customer_notes = serializers.CharField(required=False, default="", allow_blank=True)
    payment_method = serializers.CharField(required=False, default="", allow_blank=True)
    payment = PaymentRequestSerializer(required=False, allow_null=True, default=None)
    payment_transaction_id = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, default=None
    )

    def validate(self, attrs):
        if attrs.get("payment") and attrs.get("payment_transaction_id"):
            raise serializers.ValidationError(
                "Provide either 'payment' or 'payment_transaction_id', not both."
            )
        return attrs


class UpdateStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class RefundOrderSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    reason = serializers.CharField(required=False, default="", allow_blank=True)
    release_inventory = serializers.BooleanField(required=False, default=True)
    # False: money was returned outside the gateway, only record it.
    use_gateway = serializers.BooleanField(required=False, default=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "variant_id",
            "quantity",
            "unit_price",
            "total_price",
            "product_snapshot",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "from_status",
            "to_status",
            "actor_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class RefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderRefund
        fields = ["id", "amount", "reason", "is_full", "refund_id", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items, history and refunds."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    refunds = RefundSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "cart_id",
            "status",
            "subtotal",
            "discount_total",
            "shipping_total",
            "tax_total",
            "grand_total",
            "refunded_amount",
            "billing_address",
            "shipping_address",
            "customer_notes",
            "payment_method",
            "payment_transaction_id",
            "applied_coupon_id",
            "referral_code_id",
            "created_at",
            "updated_at",
            "items",
            "status_history",
            "refunds",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "grand_total",
            "refunded_amount",
            "created_at",
        ]
        read_only_fields = fields
