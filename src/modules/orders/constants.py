"""Order domain constants.

Defines status choices and the legal status transitions of the order
state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    },
    OrderStatus.COMPLETED: {OrderStatus.REFUNDED},
    OrderStatus.FAILED: {OrderStatus.PENDING},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

CANCELLABLE_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.PROCESSING}

REFUNDABLE_STATES: set[str] = {OrderStatus.COMPLETED, OrderStatus.PROCESSING}

# Entering these releases every item's stock back to the ledger.
RELEASING_STATES: set[str] = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

ORDER_NUMBER_PREFIX = "ORD"
