"""Order service layer (Use Cases).

Single entry point for the API and for other modules. Wires the creation
saga, the state machine and the payment processor, all received through
constructor injection. ``build_order_service`` assembles the production
graph from settings.

Gateway calls made here (``process_payment``, ``process_refund``) run
outside any database transaction; only the bookkeeping that follows them
is atomic.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction

from modules.carts.repositories.django_repository import CartDjangoRepository
from modules.core.exceptions import DomainError
from modules.inventory.ledger import InventoryLedger
from modules.orders.constants import REFUNDABLE_STATES, OrderStatus
from modules.orders.exceptions import (
    CannotRefund,
    InvalidStatusTransition,
    OrderNotFound,
)
from modules.orders.numbering import OrderNumberIssuer
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.saga import OrderCreationSaga
from modules.orders.state_machine import OrderStateMachine, parse_amount
from modules.payments.exceptions import PaymentAuthorizationFailed, PaymentRefundFailed
from modules.payments.gateways import load_gateway
from modules.payments.processor import PaymentProcessor, PaymentResult, build_processor

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderFromCartDTO
    from modules.orders.models import Order, OrderStatusHistory
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

NO_GATEWAY = "no_payment_gateway_configured"


class OrderService:
    """Application service for Order use-cases."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        saga: OrderCreationSaga,
        state_machine: OrderStateMachine,
        payment_processor: Optional[PaymentProcessor] = None,
    ) -> None:
        self._order_repo = order_repository
        self._saga = saga
        self._state_machine = state_machine
        self._payments = payment_processor

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order_from_cart(self, dto: CreateOrderFromCartDTO) -> Order:
        return self._saga.execute(dto)

    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        actor_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        self._state_machine.transition(order_id, new_status, actor_id=actor_id, notes=notes)
        return self.get_order(str(order_id))

    def cancel_order(
        self, order_id: UUID, reason: str = "", actor_id: Optional[int] = None
    ) -> Order:
        self._state_machine.cancel(order_id, reason=reason, actor_id=actor_id)
        return self.get_order(str(order_id))

    def refund_order(
        self,
        order_id: UUID,
        amount: Decimal,
        reason: str = "",
        actor_id: Optional[int] = None,
        release_inventory: bool = True,
    ) -> Order:
        """Record a refund without calling the gateway (money returned elsewhere)."""
        self._state_machine.refund(
            order_id,
            amount,
            reason=reason,
            actor_id=actor_id,
            release_inventory=release_inventory,
        )
        return self.get_order(str(order_id))

    def process_payment(
        self,
        order_id: UUID,
        details: Dict[str, Any],
        authorize_only: bool = False,
        actor_id: Optional[int] = None,
    ) -> Order:
        """Charge a ``pending`` order through the gateway.

        A captured payment moves the order to ``processing``; an
        authorization only stores the transaction id.

        Raises:
            OrderNotFound, InvalidStatusTransition,
            PaymentAuthorizationFailed, PaymentCaptureFailed.
        """
        order = self.get_order(str(order_id))
        if order.status != OrderStatus.PENDING:
            raise InvalidStatusTransition(order.status, OrderStatus.PROCESSING)
        if self._payments is None:
            raise PaymentAuthorizationFailed(NO_GATEWAY)

        result = self._payments.charge(order.grand_total, details, authorize_only=authorize_only)
        try:
            self._record_payment(order.id, result, actor_id)
        except InvalidStatusTransition:
            # Status changed while the gateway call was in flight.
            self._payments.compensate(result, order.grand_total)
            raise
        return self.get_order(str(order_id))

    def process_refund(
        self,
        order_id: UUID,
        amount: Decimal,
        reason: str = "",
        actor_id: Optional[int] = None,
        release_inventory: bool = True,
    ) -> Order:
        """Refund through the gateway, then record the refund on the order.

        Raises:
            OrderNotFound, OrderValidationError, CannotRefund,
            PaymentRefundFailed.
        """
        amount = parse_amount(amount)
        order = self.get_order(str(order_id))
        if order.status not in REFUNDABLE_STATES:
            raise CannotRefund(order.status)
        if amount > order.refundable_amount:
            raise CannotRefund(
                order.status,
                reason=(
                    f"Refund of {amount} exceeds the refundable amount "
                    f"{order.refundable_amount}."
                ),
                refundable=order.refundable_amount,
            )
        if amount == order.refundable_amount and not order.can_transition_to(OrderStatus.REFUNDED):
            raise InvalidStatusTransition(order.status, OrderStatus.REFUNDED)
        if self._payments is None or not order.payment_transaction_id:
            raise PaymentRefundFailed(NO_GATEWAY)

        gateway_result = self._payments.refund(order.payment_transaction_id, amount, reason=reason)
        try:
            self._state_machine.refund(
                order.id,
                amount,
                reason=reason,
                actor_id=actor_id,
                release_inventory=release_inventory,
                refund_id=str(gateway_result.get("refund_id", "")),
            )
        except DomainError:
            logger.error(
                "order.refund_not_recorded",
                order_id=str(order.id),
                amount=str(amount),
                refund_id=gateway_result.get("refund_id"),
            )
            raise
        return self.get_order(str(order_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)

    def get_status_history(self, order_id: str) -> List[OrderStatusHistory]:
        order = self.get_order(order_id)
        return self._order_repo.history(order.id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record_payment(
        self, order_id: UUID, result: PaymentResult, actor_id: Optional[int]
    ) -> None:
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(order_id)
            if order.status != OrderStatus.PENDING:
                raise InvalidStatusTransition(order.status, OrderStatus.PROCESSING)
            order.payment_transaction_id = result.transaction_id
            self._order_repo.save(order)
            if result.captured:
                self._state_machine.transition(
                    order.id,
                    OrderStatus.PROCESSING,
                    actor_id=actor_id,
                    notes="Payment captured",
                )
        logger.info(
            "order.payment_recorded",
            order_id=str(order_id),
            transaction_id=result.transaction_id,
            status=result.status,
        )


def build_order_service() -> OrderService:
    """Assemble ``OrderService`` from settings.

    The payment gateway is resolved once here and injected; nothing below
    looks it up again.
    """
    order_repo = OrderDjangoRepository()
    ledger = InventoryLedger()
    processor = build_processor(
        load_gateway(getattr(settings, "PAYMENT_GATEWAY", "")),
        timeout=getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 10.0),
    )
    issuer = OrderNumberIssuer(
        exists=order_repo.exists_order_number,
        max_attempts=getattr(settings, "ORDER_NUMBER_MAX_ATTEMPTS", 5),
    )
    saga = OrderCreationSaga(
        order_repository=order_repo,
        cart_repository=CartDjangoRepository(),
        ledger=ledger,
        issuer=issuer,
        payment_processor=processor,
    )
    state_machine = OrderStateMachine(order_repository=order_repo, ledger=ledger)
    return OrderService(
        order_repository=order_repo,
        saga=saga,
        state_machine=state_machine,
        payment_processor=processor,
    )
