"""Payment gateway interface and the development gateway.

Implementations are configured with ``settings.PAYMENT_GATEWAY`` (a dotted
path) and handed to :class:`~modules.payments.processor.PaymentProcessor`
explicitly. Failures are reported by raising
:class:`~modules.payments.exceptions.PaymentGatewayError`.
"""

from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

from django.utils import timezone
from django.utils.module_loading import import_string

from modules.payments.exceptions import PaymentGatewayError


class IPaymentGateway(ABC):
    @abstractmethod
    def authorize(self, amount: Decimal, details: Dict[str, Any], **opts: Any) -> str:
        """Authorize *amount* and return the gateway transaction id."""

    @abstractmethod
    def capture(self, transaction_id: str, amount: Decimal, **opts: Any) -> Dict[str, Any]:
        """Capture a previously authorized transaction."""

    @abstractmethod
    def refund(self, transaction_id: str, amount: Decimal, **opts: Any) -> Dict[str, Any]:
        """Refund *amount* of a captured transaction."""


class DummyPaymentGateway(IPaymentGateway):
    """Always-succeeding gateway for development and tests.

    Transaction ids look like ``dummy_txn_<millis>_<random>``; capture and
    refund reject ids this gateway did not issue.
    """

    TXN_PREFIX = "dummy_txn_"
    REFUND_PREFIX = "dummy_ref_"

    def authorize(self, amount, details, **opts):
        return self._generate_id(self.TXN_PREFIX)

    def capture(self, transaction_id, amount, **opts):
        self._ensure_known(transaction_id)
        return {
            "status": "succeeded",
            "amount": str(amount),
            "currency": opts.get("currency", "USD"),
            "transaction_id": transaction_id,
            "created_at": timezone.now().isoformat(),
        }

    def refund(self, transaction_id, amount, **opts):
        self._ensure_known(transaction_id)
        return {
            "status": "succeeded",
            "amount": str(amount),
            "currency": opts.get("currency", "USD"),
            "refund_id": self._generate_id(self.REFUND_PREFIX),
            "transaction_id": transaction_id,
            "reason": opts.get("reason", "requested_by_customer"),
            "created_at": timezone.now().isoformat(),
        }

    def _ensure_known(self, transaction_id: str) -> None:
        if not str(transaction_id).startswith(self.TXN_PREFIX):
            raise PaymentGatewayError("transaction_not_found")

    @staticmethod
    def _generate_id(prefix: str) -> str:
        return f"{prefix}{int(time.time() * 1000)}_{secrets.randbelow(999_999) + 1}"


def load_gateway(path: Optional[str]) -> Optional[IPaymentGateway]:
    """Instantiate the gateway class at *path*; empty path means no gateway."""
    if not path:
        return None
    return import_string(path)()
