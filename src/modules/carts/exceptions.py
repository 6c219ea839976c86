"""Cart exceptions raised while snapshotting or converting a cart."""

from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from modules.core.exceptions import DomainValidationError, NotFound


class CartNotFound(NotFound):
    code = "cart_not_found"

    def __init__(self, cart_id: UUID | str) -> None:
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} not found.")

    def context(self) -> Dict[str, Any]:
        return {"cart_id": str(self.cart_id)}


class CartNotConvertible(DomainValidationError):
    """The cart is not ``active`` (already converted, abandoned or expired)."""

    code = "cart_not_convertible"

    def __init__(self, cart_id: UUID | str, status: str) -> None:
        self.cart_id = cart_id
        self.status = status
        super().__init__(f"Cart {cart_id} cannot be converted from status '{status}'.")

    def context(self) -> Dict[str, Any]:
        return {"cart_id": str(self.cart_id), "status": self.status}
