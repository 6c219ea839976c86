"""Order DTOs for the Service Layer.

Framework-agnostic, immutable (``frozen=True``) pydantic models: the
contracts between the API layer (DRF serializers) and the order flows.

- ``PaymentRequestDTO``: payment details handed to the gateway.
- ``CreateOrderFromCartDTO``: input of the creation saga.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from modules.orders.value_objects import Address


class PaymentRequestDTO(BaseModel):
    """Gateway-specific payment details plus the capture policy."""

    model_config = ConfigDict(frozen=True)

    details: Dict[str, Any] = Field(default_factory=dict)
    authorize_only: bool = False


class CreateOrderFromCartDTO(BaseModel):
    """Input for converting a cart into an order.

    Validates:
    - ``payment`` (charge now) and ``payment_transaction_id`` (paid
      elsewhere) are mutually exclusive.
    - ``shipping_address`` defaults to ``billing_address``.
    """

    model_config = ConfigDict(frozen=True)

    cart_id: UUID
    billing_address: Address
    shipping_address: Optional[Address] = None
    customer_notes: str = ""
    payment_method: str = ""
    payment: Optional[PaymentRequestDTO] = None
    payment_transaction_id: Optional[str] = None
    actor_id: Optional[int] = None

    @model_validator(mode="after")
    def single_payment_source(self):
        if self.payment is not None and self.payment_transaction_id:
            raise ValueError(
                "Provide either 'payment' or 'payment_transaction_id', not both."
            )
        return self

    @property
    def effective_shipping_address(self) -> Address:
        return self.shipping_address or self.billing_address
