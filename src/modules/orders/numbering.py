"""Order number allocation.

Numbers look like ``ORD-20260115-3FA9C1``: the UTC date plus six random
upper-case hex characters. Uniqueness is checked against existing orders
and retried a bounded number of times.
"""

from __future__ import annotations

import secrets
from typing import Callable, Optional

import structlog
from django.utils import timezone

from modules.orders.constants import ORDER_NUMBER_PREFIX
from modules.orders.exceptions import OrderNumberCollisionExhausted

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


def generate_order_number() -> str:
    suffix = secrets.token_hex(3).upper()
    return f"{ORDER_NUMBER_PREFIX}-{timezone.now():%Y%m%d}-{suffix}"


class OrderNumberIssuer:
    """Allocates order numbers not yet used by any order.

    ``exists`` answers whether a candidate is taken (normally
    ``IOrderRepository.exists_order_number``). The database unique
    constraint still backs the check: a concurrent saga that takes the
    same number between check and insert fails with an integrity error.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        generator: Optional[Callable[[], str]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._exists = exists
        self._max_attempts = max_attempts
        self._generate = generator or generate_order_number

    def allocate(self) -> str:
        """Return an unused order number.

        Raises:
            OrderNumberCollisionExhausted: every attempt collided.
        """
        for attempt in range(1, self._max_attempts + 1):
            candidate = self._generate()
            if not self._exists(candidate):
                return candidate
            logger.warning("order.number_collision", candidate=candidate, attempt=attempt)
        raise OrderNumberCollisionExhausted(self._max_attempts)
