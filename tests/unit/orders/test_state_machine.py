"""Unit tests for OrderStateMachine transitions and side effects."""

from __future__ import annotations

from itertools import product as pairs
from uuid import uuid4

import pytest

from modules.core.models import OutboxEvent
from modules.inventory.exceptions import StockItemNotFound
from modules.inventory.ledger import InventoryLedger
from modules.orders.constants import VALID_TRANSITIONS, OrderStatus
from modules.orders.exceptions import (
    CannotCancel,
    InvalidStatusTransition,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.models import Order, OrderRefund, OrderStatusHistory
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.state_machine import OrderStateMachine

pytestmark = pytest.mark.unit

ALL_STATUSES = [choice.value for choice in OrderStatus]


@pytest.fixture()
def completed_calls():
    return []


@pytest.fixture()
def machine(completed_calls):
    return OrderStateMachine(
        order_repository=OrderDjangoRepository(),
        ledger=InventoryLedger(),
        on_completed=completed_calls.append,
    )


def _history(order):
    return list(
        OrderStatusHistory.objects.filter(order=order)
        .order_by("created_at", "id")
        .values_list("from_status", "to_status")
    )


def _assert_valid_walk(order):
    previous = None
    for from_status, to_status in _history(order):
        assert from_status == previous
        if previous is not None:
            assert to_status in VALID_TRANSITIONS[previous]
        previous = to_status
    assert previous == Order.objects.get(id=order.id).status


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("from_status,to_status", list(pairs(ALL_STATUSES, ALL_STATUSES)))
def test_transition_table(machine, make_order, from_status, to_status):
    order = make_order(from_status)
    history_before = _history(order)

    if to_status == OrderStatus.REFUNDED:
        with pytest.raises(OrderValidationError):
            machine.transition(order.id, to_status)

        order.refresh_from_db()
        assert order.status == from_status
        assert _history(order) == history_before
    elif to_status in VALID_TRANSITIONS[from_status]:
        machine.transition(order.id, to_status, notes="table")

        order.refresh_from_db()
        assert order.status == to_status
        assert _history(order) == history_before + [(from_status, to_status)]
    else:
        with pytest.raises(InvalidStatusTransition) as exc_info:
            machine.transition(order.id, to_status)

        order.refresh_from_db()
        assert order.status == from_status
        assert _history(order) == history_before
        assert exc_info.value.from_status == from_status
        assert exc_info.value.to_status == to_status

    _assert_valid_walk(order)


def test_unknown_status_is_invalid(machine, make_order):
    order = make_order()

    with pytest.raises(InvalidStatusTransition):
        machine.transition(order.id, "shipped")

    order.refresh_from_db()
    assert order.status == OrderStatus.PENDING


def test_missing_order_raises_not_found(machine):
    with pytest.raises(OrderNotFound):
        machine.transition(uuid4(), OrderStatus.PROCESSING)


def test_history_row_carries_actor_and_notes(machine, make_order, user):
    order = make_order()

    machine.transition(order.id, OrderStatus.PROCESSING, actor_id=user.id, notes="picked")

    last = OrderStatusHistory.objects.filter(order=order).order_by("created_at", "id").last()
    assert last.actor_id == user.id
    assert last.notes == "picked"


def test_transition_records_status_changed_event(machine, make_order):
    order = make_order()

    machine.transition(order.id, OrderStatus.PROCESSING)

    event = OutboxEvent.objects.filter(
        event_type="OrderStatusChanged", aggregate_id=str(order.id)
    ).last()
    assert event.payload["old_status"] == "pending"
    assert event.payload["new_status"] == "processing"


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("status", ["pending", "processing"])
def test_cancel_restores_stock(machine, make_order, make_product, status):
    product = make_product(stock=10)
    order = make_order(status, lines=[(product, 4)])
    product.refresh_from_db()
    assert product.stock_quantity == 6

    machine.cancel(order.id, reason="customer request")

    product.refresh_from_db()
    order.refresh_from_db()
    assert product.stock_quantity == 10
    assert order.status == OrderStatus.CANCELLED
    assert _history(order)[-1] == (status, "cancelled")
    assert OutboxEvent.objects.filter(event_type="OrderCancelled", aggregate_id=str(order.id)).exists()


@pytest.mark.parametrize("status", ["completed", "cancelled", "refunded", "failed"])
def test_cancel_outside_cancellable_states(machine, make_order, status):
    order = make_order(status)
    history_before = _history(order)

    with pytest.raises(CannotCancel) as exc_info:
        machine.cancel(order.id, reason="too late")

    assert exc_info.value.status == status
    assert _history(order) == history_before


def test_cancel_twice_appends_no_history(machine, make_order):
    order = make_order()
    machine.cancel(order.id, reason="first")
    rows = OrderStatusHistory.objects.filter(order=order).count()

    with pytest.raises(CannotCancel):
        machine.cancel(order.id, reason="second")

    assert OrderStatusHistory.objects.filter(order=order).count() == rows


def test_cancel_leaves_untracked_items_alone(machine, make_order, make_product):
    product = make_product(stock=0, manage_stock=False)
    order = make_order(lines=[(product, 3)])

    machine.cancel(order.id, reason="changed mind")

    product.refresh_from_db()
    assert product.stock_quantity == 0


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


class FlakyLedger(InventoryLedger):
    """Fails the first release, then behaves normally."""

    def __init__(self):
        self.failures = 0

    def release(self, item, quantity):
        if self.failures == 0:
            self.failures += 1
            raise StockItemNotFound(item)
        return super().release(item, quantity)


def test_release_failure_does_not_undo_cancellation(make_order, make_product):
    first, second = make_product(stock=10), make_product(stock=10)
    order = make_order(lines=[(first, 1), (second, 1)])
    machine = OrderStateMachine(OrderDjangoRepository(), FlakyLedger())

    machine.cancel(order.id, reason="partial release")

    order.refresh_from_db()
    first.refresh_from_db()
    second.refresh_from_db()
    assert order.status == OrderStatus.CANCELLED
    # Exactly one of the two items was restored.
    assert sorted([first.stock_quantity, second.stock_quantity]) == [9, 10]


def test_completing_referred_order_triggers_commission(machine, make_order, completed_calls):
    order = make_order("processing", referral_code_id=uuid4())

    machine.transition(order.id, OrderStatus.COMPLETED)

    assert completed_calls == [order.id]


def test_completing_unreferred_order_skips_commission(machine, make_order, completed_calls):
    order = make_order("processing")

    machine.transition(order.id, OrderStatus.COMPLETED)

    assert completed_calls == []


def test_status_change_cannot_refund_an_order(machine, make_order, make_product):
    product = make_product(stock=10)
    order = make_order("completed", lines=[(product, 2)])

    with pytest.raises(OrderValidationError):
        machine.transition(order.id, OrderStatus.REFUNDED)

    order.refresh_from_db()
    product.refresh_from_db()
    assert order.status == OrderStatus.COMPLETED
    assert order.refunded_amount == 0
    assert product.stock_quantity == 8
    assert not OrderRefund.objects.filter(order=order).exists()


def test_full_refund_without_release_keeps_stock(machine, make_order, make_product):
    product = make_product(stock=10)
    order = make_order("completed", lines=[(product, 2)])

    machine.refund(order.id, order.grand_total, release_inventory=False)

    order.refresh_from_db()
    product.refresh_from_db()
    assert order.status == OrderStatus.REFUNDED
    assert product.stock_quantity == 8
