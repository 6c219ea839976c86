"""Django ORM implementation of the cart repository."""

from __future__ import annotations

from uuid import UUID

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from modules.carts.dtos import CartSnapshotDTO
from modules.carts.exceptions import CartNotConvertible, CartNotFound
from modules.carts.models import Cart, CartStatus
from modules.carts.repositories.interfaces import ICartRepository

logger = structlog.get_logger(__name__)


class CartDjangoRepository(ICartRepository):
    def get_snapshot(self, cart_id: UUID) -> CartSnapshotDTO:
        try:
            cart = (
                Cart.objects.prefetch_related("items__product", "items__variant")
                .filter(id=cart_id)
                .first()
            )
        except (ValueError, DjangoValidationError):
            cart = None
        if cart is None:
            raise CartNotFound(cart_id)
        return CartSnapshotDTO.from_entity(cart)

    def convert(self, cart_id: UUID) -> None:
        """Conditional update: only one caller can convert a given cart."""
        updated = Cart.objects.filter(id=cart_id, status=CartStatus.ACTIVE).update(
            status=CartStatus.CONVERTED,
            updated_at=timezone.now(),
        )
        if not updated:
            status = Cart.objects.filter(id=cart_id).values_list("status", flat=True).first()
            if status is None:
                raise CartNotFound(cart_id)
            raise CartNotConvertible(cart_id, status)
        logger.info("cart.converted", cart_id=str(cart_id))
