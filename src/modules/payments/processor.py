"""Timeout-bounded payment calls.

Gateway calls leave the process, so each one runs on a worker thread and is
abandoned after ``timeout`` seconds. A timeout is reported exactly like a
gateway failure of the same step, and so is any other exception a gateway
raises.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Type

import structlog

from modules.payments.exceptions import (
    PaymentAuthorizationFailed,
    PaymentCaptureFailed,
    PaymentError,
    PaymentGatewayError,
    PaymentRefundFailed,
)
from modules.payments.gateways import IPaymentGateway

logger = structlog.get_logger(__name__)


class PaymentStatus:
    AUTHORIZED = "authorized"
    CAPTURED = "captured"


@dataclass(frozen=True)
class PaymentResult:
    transaction_id: str
    status: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def captured(self) -> bool:
        return self.status == PaymentStatus.CAPTURED


class PaymentProcessor:
    def __init__(self, gateway: IPaymentGateway, timeout: float = 10.0) -> None:
        self.gateway = gateway
        self.timeout = timeout

    def charge(
        self,
        amount: Decimal,
        details: Dict[str, Any],
        authorize_only: bool = False,
    ) -> PaymentResult:
        """Authorize *amount* and, unless *authorize_only*, capture it.

        Raises:
            PaymentAuthorizationFailed: authorize errored or timed out.
            PaymentCaptureFailed: capture errored or timed out.
        """
        log = logger.bind(amount=str(amount), authorize_only=authorize_only)

        transaction_id = self._call(
            PaymentAuthorizationFailed, self.gateway.authorize, amount, details
        )
        log = log.bind(transaction_id=transaction_id)
        if authorize_only:
            log.info("payment.authorized")
            return PaymentResult(transaction_id=transaction_id, status=PaymentStatus.AUTHORIZED)

        try:
            capture = self._call(
                PaymentCaptureFailed, self.gateway.capture, transaction_id, amount
            )
        except PaymentCaptureFailed:
            log.warning("payment.capture_failed")
            raise
        log.info("payment.captured")
        return PaymentResult(
            transaction_id=transaction_id,
            status=PaymentStatus.CAPTURED,
            details=capture or {},
        )

    def refund(self, transaction_id: str, amount: Decimal, reason: str = "") -> Dict[str, Any]:
        """Refund through the gateway. Raises ``PaymentRefundFailed``."""
        opts = {"reason": reason} if reason else {}
        result = self._call(
            PaymentRefundFailed, self.gateway.refund, transaction_id, amount, **opts
        )
        logger.info("payment.refunded", transaction_id=transaction_id, amount=str(amount))
        return result

    def compensate(self, result: PaymentResult, amount: Decimal) -> None:
        """Best-effort reversal of a charge whose order was never persisted.

        Failures are logged, never raised: the caller is already unwinding.
        """
        log = logger.bind(transaction_id=result.transaction_id, amount=str(amount))
        try:
            self.refund(result.transaction_id, amount, reason="order_aborted")
        except PaymentRefundFailed as exc:
            log.error("payment.compensation_failed", reason=exc.reason)
        else:
            log.info("payment.compensated")

    def _call(
        self,
        error_class: Type[PaymentError],
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="payment")
        try:
            future = executor.submit(fn, *args, **kwargs)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeout:
                logger.warning("payment.timeout", step=error_class.__name__, timeout=self.timeout)
                raise error_class("timeout") from None
            except PaymentGatewayError as exc:
                raise error_class(exc.reason) from exc
            except Exception as exc:  # noqa: BLE001 - SDK and transport errors
                logger.warning("payment.gateway_error", step=error_class.__name__, error=repr(exc))
                raise error_class(str(exc) or type(exc).__name__) from exc
        finally:
            # Do not block on a hung gateway call.
            executor.shutdown(wait=False)


def build_processor(
    gateway: Optional[IPaymentGateway], timeout: float
) -> Optional[PaymentProcessor]:
    if gateway is None:
        return None
    return PaymentProcessor(gateway, timeout=timeout)
