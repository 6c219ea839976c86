"""Order domain exceptions.

Raised by the saga, the state machine and the service layer when business
rules are violated. The API layer (views) translates them into HTTP
responses through ``DomainError.to_dict``.

Ledger, cart and payment failures keep their own classes
(``modules.inventory.exceptions``, ``modules.carts.exceptions``,
``modules.payments.exceptions``) and reach callers unchanged.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from modules.core.exceptions import DomainError, DomainValidationError, NotFound


class OrderValidationError(DomainValidationError):
    """Input or stored data breaks an order invariant.

    Also wraps storage-layer errors so no raw ``IntegrityError`` or
    ``DatabaseError`` leaves the order flows.
    """


class EmptyCart(DomainValidationError):
    code = "empty_cart"

    def __init__(self, cart_id: UUID) -> None:
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} has no items.")

    def context(self) -> Dict[str, Any]:
        return {"cart_id": str(self.cart_id)}


class OrderNotFound(NotFound):
    code = "order_not_found"

    def __init__(self, order_id: UUID | str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")

    def context(self) -> Dict[str, Any]:
        return {"order_id": str(self.order_id)}


class OrderNumberCollisionExhausted(DomainError):
    code = "order_number_collision_exhausted"

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Failed to allocate a unique order number after {attempts} attempts.")

    def context(self) -> Dict[str, Any]:
        return {"attempts": self.attempts}


class InvalidStatusTransition(DomainError):
    code = "invalid_status_transition"

    def __init__(self, from_status: Optional[str], to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot transition from {from_status} to {to_status}.")

    def context(self) -> Dict[str, Any]:
        return {"from_status": self.from_status, "to_status": self.to_status}


class CannotCancel(DomainError):
    code = "cannot_cancel"

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Cannot cancel an order in status {status}.")

    def context(self) -> Dict[str, Any]:
        return {"status": self.status}


class CannotRefund(DomainError):
    code = "cannot_refund"

    def __init__(
        self,
        status: str,
        reason: str = "",
        refundable: Optional[Decimal] = None,
    ) -> None:
        self.status = status
        self.refundable = refundable
        message = reason or f"Cannot refund an order in status {status}."
        super().__init__(message)

    def context(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.refundable is not None:
            data["refundable"] = str(self.refundable)
        return data
