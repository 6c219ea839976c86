"""Frozen product snapshots embedded into order lines.

A snapshot is copied by value at purchase time so historical orders keep
showing what was bought even after the catalog entry is edited.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from modules.catalog.models import Product, ProductVariant


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    sku: str
    description: str = ""
    product_type: str
    images: List[str] = Field(default_factory=list)
    variant_sku: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def capture(
        cls, product: Product, variant: Optional[ProductVariant] = None
    ) -> ProductSnapshot:
        return cls(
            name=product.name,
            sku=product.sku,
            description=product.description,
            product_type=product.product_type,
            images=list(product.images or []),
            variant_sku=variant.sku if variant else None,
            attributes=dict(variant.attributes or {}) if variant else {},
        )
