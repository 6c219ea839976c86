"""Unit tests for the core model behaviours used by orders and catalog.

Covers:
- Order lines, history and refunds are append-only.
- Orders are never deleted and keep their order number.
- UUIDv7 keys and soft-deleted catalog rows.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.catalog.models import Product
from modules.core.exceptions import ImmutableRecordError
from modules.orders.models import Order, OrderRefund, OrderStatusHistory

pytestmark = pytest.mark.unit


class TestAppendOnlyRecords:
    def test_order_item_cannot_be_updated(self, make_order):
        item = make_order().items.first()
        item.quantity = 99
        with pytest.raises(ImmutableRecordError):
            item.save()

    def test_order_item_cannot_be_deleted(self, make_order):
        item = make_order().items.first()
        with pytest.raises(ImmutableRecordError):
            item.delete()

    def test_history_cannot_be_rewritten(self, make_order):
        entry = OrderStatusHistory.objects.filter(order=make_order()).first()
        entry.notes = "tampered"
        with pytest.raises(ImmutableRecordError):
            entry.save()
        with pytest.raises(ImmutableRecordError):
            entry.delete()

    def test_refund_rows_are_immutable(self, make_order, order_service):
        order = make_order(status="completed")
        order_service.refund_order(order.id, Decimal("5.00"), reason="scratch")
        refund = OrderRefund.objects.get(order=order)
        assert refund.notes == "scratch - Refund amount: 5.00"
        refund.amount = Decimal("1.00")
        with pytest.raises(ImmutableRecordError):
            refund.save()


class TestOrderRecord:
    def test_orders_are_never_deleted(self, make_order):
        order = make_order()
        with pytest.raises(ImmutableRecordError):
            order.delete()
        assert Order.objects.filter(id=order.id).exists()

    def test_order_number_cannot_change(self, make_order):
        order = Order.objects.get(id=make_order().id)
        original = order.order_number
        order.order_number = "ORD-19990101-ABCDEF"
        with pytest.raises(ImmutableRecordError):
            order.save()
        assert Order.objects.get(id=order.id).order_number == original

    def test_other_fields_remain_writable(self, make_order):
        order = Order.objects.get(id=make_order().id)
        order.customer_notes = "Leave at the door"
        order.save()
        assert Order.objects.get(id=order.id).customer_notes == "Leave at the door"

    def test_ids_are_uuid7(self, make_order):
        assert make_order().id.version == 7

    def test_refundable_amount(self, make_order):
        order = make_order(status="completed")
        assert order.refundable_amount == Decimal("20.00")
        assert order.billing.city == "London"


class TestSoftDeletedCatalog:
    def test_soft_delete_keeps_row(self, make_product):
        product = make_product()
        product.delete()
        assert Product.objects.dead().filter(id=product.id).exists()
        assert not Product.objects.alive().filter(id=product.id).exists()

    def test_second_delete_is_noop(self, make_product):
        product = make_product()
        product.delete()
        assert product.delete() == (0, {})

    def test_sku_is_normalized(self, make_product):
        assert make_product(sku="  abc-1 ").sku == "ABC-1"
