"""Order creation saga: one cart in, one order out, all or nothing.

Steps, inside a single database transaction:

0. Snapshot the cart (must be ``active`` and non-empty).
1. Allocate an order number.
2. Reserve stock for every line, in ``(product_id, variant_id)`` order so
   concurrent sagas lock rows in the same order.
3. Charge the payment, if one was requested and a gateway is configured.
4. Insert the order with totals copied from the cart.
5. Insert one line per cart line with its frozen product snapshot.
6. Append the first history row (``None -> initial status``).
7. Convert the cart; losing that race to another saga aborts this one.

Any failure rolls every write back, stock reservations included. A payment
that went through before the failure is reversed on a best-effort basis.
Payment failures abort the saga; no ``failed`` order is persisted.
"""

from __future__ import annotations

from typing import Optional

import pydantic
import structlog
from django.db import DatabaseError, transaction

from modules.carts.dtos import CartSnapshotDTO
from modules.carts.exceptions import CartNotConvertible
from modules.carts.models import CartStatus
from modules.carts.repositories.interfaces import ICartRepository
from modules.core.exceptions import DomainError
from modules.inventory.ledger import InventoryLedger, StockItemRef
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderFromCartDTO
from modules.orders.events import OrderCreated
from modules.orders.exceptions import EmptyCart, OrderValidationError
from modules.orders.models import Order
from modules.orders.numbering import OrderNumberIssuer
from modules.orders.repositories.interfaces import IOrderRepository
from modules.payments.processor import PaymentProcessor, PaymentResult

logger = structlog.get_logger(__name__)


class OrderCreationSaga:
    def __init__(
        self,
        order_repository: IOrderRepository,
        cart_repository: ICartRepository,
        ledger: InventoryLedger,
        issuer: OrderNumberIssuer,
        payment_processor: Optional[PaymentProcessor] = None,
    ) -> None:
        self._order_repo = order_repository
        self._cart_repo = cart_repository
        self._ledger = ledger
        self._issuer = issuer
        self._payments = payment_processor

    def execute(self, dto: CreateOrderFromCartDTO) -> Order:
        """Convert the cart named by *dto* into a persisted order.

        Raises:
            CartNotFound, CartNotConvertible, EmptyCart, OrderValidationError,
            OrderNumberCollisionExhausted, InsufficientStock, StockItemNotFound,
            PaymentAuthorizationFailed, PaymentCaptureFailed.
        """
        log = logger.bind(cart_id=str(dto.cart_id))
        log.info("order.creation_started")

        snapshot: Optional[CartSnapshotDTO] = None
        payment: Optional[PaymentResult] = None
        try:
            with transaction.atomic():
                snapshot = self._snapshot(dto)
                order_number = self._issuer.allocate()
                log = log.bind(order_number=order_number)

                self._reserve(snapshot)
                payment = self._charge(dto, snapshot)
                status = (
                    OrderStatus.PROCESSING
                    if payment is not None and payment.captured
                    else OrderStatus.PENDING
                )

                order = self._persist(dto, snapshot, order_number, status, payment)
                self._order_repo.add_history(
                    order.id,
                    to_status=status,
                    from_status=None,
                    notes="Order created",
                    actor_id=dto.actor_id,
                )
                self._cart_repo.convert(dto.cart_id)

                order.add_domain_event(
                    OrderCreated(
                        aggregate_id=order.id,
                        order_number=order.order_number,
                        status=status,
                        grand_total=order.grand_total,
                    )
                )
                self._order_repo.flush_events(order)
        except DomainError as exc:
            log.warning("order.creation_failed", error=exc.code, detail=str(exc))
            self._compensate(payment, snapshot)
            raise
        except DatabaseError as exc:
            log.error("order.creation_failed", error="database_error", detail=str(exc))
            self._compensate(payment, snapshot)
            raise OrderValidationError(f"Order could not be persisted: {exc}") from exc
        except Exception:
            log.exception("order.creation_failed", error="unexpected_error")
            self._compensate(payment, snapshot)
            raise

        log.info("order.created", order_id=str(order.id), status=status)
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _snapshot(self, dto: CreateOrderFromCartDTO) -> CartSnapshotDTO:
        try:
            snapshot = self._cart_repo.get_snapshot(dto.cart_id)
        except pydantic.ValidationError as exc:
            raise OrderValidationError(f"Cart {dto.cart_id} is invalid: {exc}") from exc
        if snapshot.status != CartStatus.ACTIVE:
            raise CartNotConvertible(dto.cart_id, snapshot.status)
        if not snapshot.items:
            raise EmptyCart(dto.cart_id)
        return snapshot

    def _reserve(self, snapshot: CartSnapshotDTO) -> None:
        lines = sorted(
            snapshot.items,
            key=lambda line: (str(line.product_id), str(line.variant_id or "")),
        )
        for line in lines:
            self._ledger.reserve(StockItemRef(line.product_id, line.variant_id), line.quantity)

    def _charge(
        self, dto: CreateOrderFromCartDTO, snapshot: CartSnapshotDTO
    ) -> Optional[PaymentResult]:
        if dto.payment is None:
            return None
        if self._payments is None:
            logger.warning("order.payment_skipped", reason="no_gateway_configured")
            return None
        return self._payments.charge(
            snapshot.grand_total,
            dto.payment.details,
            authorize_only=dto.payment.authorize_only,
        )

    def _persist(
        self,
        dto: CreateOrderFromCartDTO,
        snapshot: CartSnapshotDTO,
        order_number: str,
        status: str,
        payment: Optional[PaymentResult],
    ) -> Order:
        transaction_id = payment.transaction_id if payment else dto.payment_transaction_id
        return self._order_repo.create(
            {
                "order_number": order_number,
                "status": status,
                "user_id": snapshot.user_id,
                "cart_id": snapshot.cart_id,
                "subtotal": snapshot.subtotal,
                "discount_total": snapshot.discount_total,
                "shipping_total": snapshot.shipping_total,
                "tax_total": snapshot.tax_total,
                "grand_total": snapshot.grand_total,
                "billing_address": dto.billing_address.to_json(),
                "shipping_address": dto.effective_shipping_address.to_json(),
                "customer_notes": dto.customer_notes,
                "payment_method": dto.payment_method,
                "payment_transaction_id": transaction_id or "",
                "applied_coupon_id": snapshot.applied_coupon_id,
                "referral_code_id": snapshot.referral_code_id,
                "items": [
                    {
                        "product_id": line.product_id,
                        "variant_id": line.variant_id,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                        "total_price": line.total_price,
                        "product_snapshot": line.product_snapshot.model_dump(),
                    }
                    for line in snapshot.items
                ],
            }
        )

    def _compensate(
        self, payment: Optional[PaymentResult], snapshot: Optional[CartSnapshotDTO]
    ) -> None:
        if payment is None or snapshot is None or self._payments is None:
            return
        self._payments.compensate(payment, snapshot.grand_total)
