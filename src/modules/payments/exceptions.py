"""Payment failures surfaced by the processor.

Gateways raise :class:`PaymentGatewayError`; the processor translates it
into the step-specific error the order flows report.
"""

from __future__ import annotations

from typing import Any, Dict

from modules.core.exceptions import DomainError


class PaymentGatewayError(Exception):
    """Raised by gateway implementations. Not a domain error on its own."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class PaymentError(DomainError):
    code = "payment_error"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"{self.__class__.__name__}: {reason}")

    def context(self) -> Dict[str, Any]:
        return {"reason": self.reason}


class PaymentAuthorizationFailed(PaymentError):
    code = "payment_authorization_failed"


class PaymentCaptureFailed(PaymentError):
    code = "payment_capture_failed"


class PaymentRefundFailed(PaymentError):
    code = "payment_refund_failed"
