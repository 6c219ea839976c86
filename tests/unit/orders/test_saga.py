"""Unit tests for OrderCreationSaga with stubbed collaborators."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.db import IntegrityError

from modules.carts.dtos import CartLineDTO, CartSnapshotDTO
from modules.carts.exceptions import CartNotConvertible, CartNotFound
from modules.catalog.snapshots import ProductSnapshot
from modules.inventory.exceptions import InsufficientStock
from modules.inventory.ledger import StockItemRef
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderFromCartDTO, PaymentRequestDTO
from modules.orders.exceptions import EmptyCart, OrderNumberCollisionExhausted, OrderValidationError
from modules.orders.saga import OrderCreationSaga
from modules.payments.exceptions import PaymentAuthorizationFailed, PaymentCaptureFailed
from modules.payments.processor import PaymentResult, PaymentStatus

pytestmark = pytest.mark.unit

SNAPSHOT = ProductSnapshot(name="Widget", sku="W-1", product_type="simple")


def _line(product_id=None, variant_id=None, quantity=1, unit_price="10.00"):
    unit = Decimal(unit_price)
    return CartLineDTO(
        product_id=product_id or uuid4(),
        variant_id=variant_id,
        quantity=quantity,
        unit_price=unit,
        total_price=unit * quantity,
        product_snapshot=SNAPSHOT,
    )


def _snapshot(lines, status="active"):
    subtotal = sum((line.total_price for line in lines), Decimal("0.00"))
    return CartSnapshotDTO(
        cart_id=uuid4(),
        status=status,
        items=lines,
        subtotal=subtotal,
        grand_total=subtotal,
    )


@pytest.fixture()
def order():
    order = MagicMock()
    order.id = uuid4()
    order.order_number = "ORD-20260101-AAAAAA"
    order.grand_total = Decimal("20.00")
    return order


@pytest.fixture()
def collaborators(order):
    order_repo = MagicMock()
    order_repo.create.return_value = order
    order_repo.get_by_id.return_value = order
    issuer = MagicMock()
    issuer.allocate.return_value = order.order_number
    return {
        "order_repository": order_repo,
        "cart_repository": MagicMock(),
        "ledger": MagicMock(),
        "issuer": issuer,
        "payment_processor": MagicMock(),
    }


@pytest.fixture()
def saga(collaborators):
    return OrderCreationSaga(**collaborators)


def _dto(address, **extra):
    return CreateOrderFromCartDTO(cart_id=uuid4(), billing_address=address, **extra)


def test_happy_path_runs_steps_in_order(saga, collaborators, address):
    line = _line(quantity=2)
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([line])
    dto = _dto(address)

    saga.execute(dto)

    collaborators["issuer"].allocate.assert_called_once()
    collaborators["ledger"].reserve.assert_called_once_with(StockItemRef(line.product_id, None), 2)
    data = collaborators["order_repository"].create.call_args.args[0]
    assert data["status"] == OrderStatus.PENDING
    assert data["subtotal"] == Decimal("20.00")
    assert data["shipping_address"] == data["billing_address"]
    assert data["items"][0]["product_snapshot"]["name"] == "Widget"
    history = collaborators["order_repository"].add_history.call_args
    assert history.kwargs["from_status"] is None
    assert history.kwargs["to_status"] == OrderStatus.PENDING
    collaborators["cart_repository"].convert.assert_called_once_with(dto.cart_id)
    collaborators["order_repository"].flush_events.assert_called_once()
    collaborators["payment_processor"].charge.assert_not_called()


def test_reservations_follow_item_order(saga, collaborators, address):
    lines = [_line() for _ in range(4)]
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot(lines)

    saga.execute(_dto(address))

    reserved = [c.args[0].product_id for c in collaborators["ledger"].reserve.call_args_list]
    assert reserved == sorted(reserved, key=str)


def test_empty_cart_fails_before_side_effects(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([])

    with pytest.raises(EmptyCart):
        saga.execute(_dto(address))

    collaborators["issuer"].allocate.assert_not_called()
    collaborators["ledger"].reserve.assert_not_called()
    collaborators["order_repository"].create.assert_not_called()


def test_converted_cart_is_rejected(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()], status="converted")

    with pytest.raises(CartNotConvertible):
        saga.execute(_dto(address))

    collaborators["ledger"].reserve.assert_not_called()


def test_missing_cart_propagates_not_found(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.side_effect = CartNotFound("nope")

    with pytest.raises(CartNotFound):
        saga.execute(_dto(address))


def test_number_exhaustion_aborts(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    collaborators["issuer"].allocate.side_effect = OrderNumberCollisionExhausted(5)

    with pytest.raises(OrderNumberCollisionExhausted):
        saga.execute(_dto(address))

    collaborators["ledger"].reserve.assert_not_called()


def test_insufficient_stock_stops_before_payment(saga, collaborators, address):
    line = _line()
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([line])
    collaborators["ledger"].reserve.side_effect = InsufficientStock(
        StockItemRef(line.product_id), requested=1, available=0
    )

    with pytest.raises(InsufficientStock):
        saga.execute(_dto(address, payment=PaymentRequestDTO(details={"token": "t"})))

    collaborators["payment_processor"].charge.assert_not_called()
    collaborators["order_repository"].create.assert_not_called()


def test_captured_payment_starts_processing(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line(quantity=2)])
    collaborators["payment_processor"].charge.return_value = PaymentResult(
        transaction_id="dummy_txn_1", status=PaymentStatus.CAPTURED
    )

    saga.execute(_dto(address, payment=PaymentRequestDTO(details={"token": "t"})))

    collaborators["payment_processor"].charge.assert_called_once_with(
        Decimal("20.00"), {"token": "t"}, authorize_only=False
    )
    data = collaborators["order_repository"].create.call_args.args[0]
    assert data["status"] == OrderStatus.PROCESSING
    assert data["payment_transaction_id"] == "dummy_txn_1"


def test_authorized_only_payment_stays_pending(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    collaborators["payment_processor"].charge.return_value = PaymentResult(
        transaction_id="dummy_txn_2", status=PaymentStatus.AUTHORIZED
    )

    saga.execute(
        _dto(address, payment=PaymentRequestDTO(details={}, authorize_only=True))
    )

    data = collaborators["order_repository"].create.call_args.args[0]
    assert data["status"] == OrderStatus.PENDING
    assert data["payment_transaction_id"] == "dummy_txn_2"


def test_external_transaction_id_is_stored_as_is(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])

    saga.execute(_dto(address, payment_transaction_id="ext-123"))

    data = collaborators["order_repository"].create.call_args.args[0]
    assert data["payment_transaction_id"] == "ext-123"
    assert data["status"] == OrderStatus.PENDING


@pytest.mark.parametrize("error", [PaymentAuthorizationFailed("declined"), PaymentCaptureFailed("timeout")])
def test_payment_failure_aborts(saga, collaborators, address, error):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    collaborators["payment_processor"].charge.side_effect = error

    with pytest.raises(type(error)):
        saga.execute(_dto(address, payment=PaymentRequestDTO()))

    collaborators["order_repository"].create.assert_not_called()
    collaborators["cart_repository"].convert.assert_not_called()
    collaborators["payment_processor"].compensate.assert_not_called()


def test_failure_after_payment_compensates(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    result = PaymentResult(transaction_id="dummy_txn_3", status=PaymentStatus.CAPTURED)
    collaborators["payment_processor"].charge.return_value = result
    collaborators["cart_repository"].convert.side_effect = CartNotConvertible("cart", "converted")

    with pytest.raises(CartNotConvertible):
        saga.execute(_dto(address, payment=PaymentRequestDTO()))

    collaborators["payment_processor"].compensate.assert_called_once_with(result, Decimal("10.00"))


def test_unexpected_error_after_payment_compensates(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    result = PaymentResult(transaction_id="dummy_txn_4", status=PaymentStatus.CAPTURED)
    collaborators["payment_processor"].charge.return_value = result
    collaborators["order_repository"].add_history.side_effect = RuntimeError("serializer bug")

    with pytest.raises(RuntimeError):
        saga.execute(_dto(address, payment=PaymentRequestDTO()))

    collaborators["payment_processor"].compensate.assert_called_once_with(result, Decimal("10.00"))
    collaborators["cart_repository"].convert.assert_not_called()


def test_database_errors_are_wrapped(saga, collaborators, address):
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    collaborators["order_repository"].create.side_effect = IntegrityError("UNIQUE constraint failed")

    with pytest.raises(OrderValidationError) as exc_info:
        saga.execute(_dto(address))

    assert isinstance(exc_info.value.__cause__, IntegrityError)


def test_payment_requested_without_gateway_proceeds_unpaid(collaborators, address):
    collaborators["payment_processor"] = None
    collaborators["cart_repository"].get_snapshot.return_value = _snapshot([_line()])
    saga = OrderCreationSaga(**collaborators)

    saga.execute(_dto(address, payment=PaymentRequestDTO()))

    data = collaborators["order_repository"].create.call_args.args[0]
    assert data["status"] == OrderStatus.PENDING
    assert data["payment_transaction_id"] == ""
