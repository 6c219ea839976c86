"""Order state machine: every status change after creation goes through here.

Business rules enforced:
- Only edges listed in ``VALID_TRANSITIONS`` are allowed; anything else
  raises ``InvalidStatusTransition`` and leaves status and history untouched.
- Read-validate-write-append is serialized per order: the row is locked with
  ``SELECT ... FOR UPDATE`` and the status write is conditional on the status
  that was read, so two requests from the same state cannot both succeed.
- Entering ``cancelled``, or ``refunded`` through a full refund with
  ``release_inventory``, returns every item's stock. Each release runs in
  its own savepoint; a failure is logged and never undoes the transition.
- A plain status change never targets ``refunded``.
- Entering ``completed`` with a referral reference enqueues the commission
  task once the transaction commits.
- Partial refunds keep the status and write no history row.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction

from modules.core.exceptions import DomainError
from modules.inventory.ledger import InventoryLedger, StockItemRef
from modules.orders.constants import (
    CANCELLABLE_STATES,
    REFUNDABLE_STATES,
    RELEASING_STATES,
    OrderStatus,
)
from modules.orders.events import OrderCancelled, OrderRefunded, OrderStatusChanged
from modules.orders.exceptions import (
    CannotCancel,
    CannotRefund,
    InvalidStatusTransition,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.models import Order
from modules.orders.repositories.interfaces import IOrderRepository
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def schedule_commission(order_id: UUID) -> None:
    """Enqueue the referral commission task after the current transaction commits."""
    from modules.referrals.tasks import create_commission

    transaction.on_commit(partial(create_commission.delay, str(order_id)), robust=True)


class OrderStateMachine:
    def __init__(
        self,
        order_repository: IOrderRepository,
        ledger: InventoryLedger,
        on_completed: Callable[[UUID], None] = schedule_commission,
    ) -> None:
        self._repo = order_repository
        self._ledger = ledger
        self._on_completed = on_completed

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def transition(
        self,
        order_id: UUID,
        new_status: str,
        actor_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        """Move the order to *new_status*.

        ``refunded`` is only reached through ``refund()``, which records the
        refunded amount before releasing stock.

        Raises:
            OrderNotFound: order does not exist.
            OrderValidationError: *new_status* is ``refunded``.
            InvalidStatusTransition: the edge is not legal (or the status
                changed underneath us).
        """
        if new_status == OrderStatus.REFUNDED:
            raise OrderValidationError(
                "Orders become refunded through a full refund, not a status change."
            )
        with transaction.atomic():
            order = self._lock(order_id)
            self._apply(order, new_status, actor_id=actor_id, notes=notes)
        return order

    def cancel(self, order_id: UUID, reason: str = "", actor_id: Optional[int] = None) -> Order:
        """Cancel a ``pending`` or ``processing`` order and restore its stock.

        Raises:
            OrderNotFound: order does not exist.
            CannotCancel: the order is in any other status.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            if order.status not in CANCELLABLE_STATES:
                logger.warning("order.cancel_not_allowed", order_id=str(order_id), status=order.status)
                raise CannotCancel(order.status)
            self._apply(
                order,
                OrderStatus.CANCELLED,
                actor_id=actor_id,
                notes=reason,
                extra_events=[OrderCancelled(aggregate_id=order.id, reason=reason)],
            )
        logger.info("order.cancelled", order_id=str(order_id))
        return order

    def refund(
        self,
        order_id: UUID,
        amount: Decimal,
        reason: str = "",
        actor_id: Optional[int] = None,
        release_inventory: bool = True,
        refund_id: str = "",
    ) -> Order:
        """Record a refund of *amount*.

        A refund that brings ``refunded_amount`` up to ``grand_total`` moves
        the order to ``refunded`` and releases inventory; a smaller one only
        records the amount.

        Raises:
            OrderNotFound: order does not exist.
            OrderValidationError: *amount* is not a positive decimal.
            CannotRefund: status is not ``completed``/``processing``, or the
                amount exceeds what is left to refund.
            InvalidStatusTransition: full refund of a ``processing`` order.
        """
        amount = parse_amount(amount)
        with transaction.atomic():
            order = self._lock(order_id)
            log = logger.bind(order_id=str(order_id), amount=str(amount), status=order.status)

            if order.status not in REFUNDABLE_STATES:
                log.warning("order.refund_not_allowed")
                raise CannotRefund(order.status)

            new_total = order.refunded_amount + amount
            if new_total > order.grand_total:
                log.warning("order.refund_exceeds_total", refundable=str(order.refundable_amount))
                raise CannotRefund(
                    order.status,
                    reason=(
                        f"Refund of {amount} exceeds the refundable amount "
                        f"{order.refundable_amount}."
                    ),
                    refundable=order.refundable_amount,
                )

            full = new_total == order.grand_total
            if full and not order.can_transition_to(OrderStatus.REFUNDED):
                raise InvalidStatusTransition(order.status, OrderStatus.REFUNDED)

            self._repo.add_refund(
                order.id,
                amount=amount,
                reason=reason,
                is_full=full,
                actor_id=actor_id,
                refund_id=refund_id,
            )
            order.refunded_amount = new_total
            refunded = OrderRefunded(aggregate_id=order.id, amount=amount, full=full)

            if full:
                self._apply(
                    order,
                    OrderStatus.REFUNDED,
                    actor_id=actor_id,
                    notes=f"{reason} - Refund amount: {amount}",
                    release_inventory=release_inventory,
                    extra_events=[refunded],
                )
            else:
                order.add_domain_event(refunded)
                self._repo.flush_events(order)

        log.info("order.refunded", full=full)
        return order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, order_id: UUID) -> Order:
        order = self._repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _apply(
        self,
        order: Order,
        new_status: str,
        actor_id: Optional[int] = None,
        notes: str = "",
        release_inventory: bool = True,
        extra_events: Iterable[DomainEvent] = (),
    ) -> None:
        """Validate and write one transition on an order locked by the caller."""
        old_status = order.status
        log = logger.bind(order_id=str(order.id), from_status=old_status, to_status=new_status)

        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise InvalidStatusTransition(old_status, new_status)
        if not self._repo.update_status_if(order.id, old_status, new_status):
            log.warning("order.transition_lost_race")
            raise InvalidStatusTransition(old_status, new_status)

        order.status = new_status
        self._repo.add_history(
            order.id,
            to_status=new_status,
            from_status=old_status,
            notes=notes,
            actor_id=actor_id,
        )
        order.add_domain_event(
            OrderStatusChanged(aggregate_id=order.id, old_status=old_status, new_status=new_status)
        )
        for event in extra_events:
            order.add_domain_event(event)
        self._repo.flush_events(order)
        log.info("order.status_changed")

        if new_status in RELEASING_STATES and (
            new_status == OrderStatus.CANCELLED or release_inventory
        ):
            self._release_items(order)
        if new_status == OrderStatus.COMPLETED and order.referral_code_id:
            self._on_completed(order.id)

    def _release_items(self, order: Order) -> None:
        items = sorted(
            order.items.all(),
            key=lambda item: (str(item.product_id), str(item.variant_id or "")),
        )
        for item in items:
            ref = StockItemRef(product_id=item.product_id, variant_id=item.variant_id)
            try:
                with transaction.atomic():
                    self._ledger.release(ref, item.quantity)
            except (DomainError, DatabaseError) as exc:
                logger.error(
                    "order.stock_release_failed",
                    order_id=str(order.id),
                    item=str(ref),
                    quantity=item.quantity,
                    error=str(exc),
                )


def parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise OrderValidationError(f"Invalid refund amount {value!r}.") from exc
    if not amount.is_finite() or amount <= 0:
        raise OrderValidationError("Refund amount must be greater than zero.")
    if amount != amount.quantize(CENT):
        raise OrderValidationError("Refund amount cannot have more than two decimal places.")
    return amount
