"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: methods return ``None``
instead of raising HTTP-level exceptions — the Service Layer decides
how to translate a missing entity into an API response.

Stock is only ever changed through ``reserve_stock`` / ``release_stock``,
each a single ``UPDATE ... WHERE`` statement, so concurrent checkouts
cannot both pass a check and then oversell the last unit.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from modules.products.models import Product, ProductVariant
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a live (not soft-deleted) product with its variants.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Product.objects.alive()
                .prefetch_related("variants")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List live products with optional Django ORM look-ups.

        Examples of valid filters::

            {"status": "active"}
            {"name__icontains": "assam"}
        """
        queryset = Product.objects.alive().prefetch_related("variants")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(
        self, entity: Product, update_fields: Optional[List[str]] = None
    ) -> Product:
        """Persist (create or update) a product.

        With ``update_fields`` only those columns are written and the
        instance is reloaded, so counters changed by concurrent orders
        (``stock_quantity``, ``purchases``) are never overwritten from a
        stale copy.
        """
        if update_fields is None:
            entity.save()
        else:
            entity.save(update_fields=update_fields)
            entity.refresh_from_db()
        logger.info(
            "product.saved",
            product_id=str(entity.id),
            sku=entity.sku,
        )
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a product by ID.

        Returns ``True`` if the product was found and soft-deleted,
        ``False`` if no product exists with the given ID.
        """
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU (case-insensitive via upper normalisation)."""
        return Product.objects.filter(sku=sku.strip().upper()).first()

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def available_stock(self, id: str, variant: Optional[str] = None) -> int:
        if variant:
            stock = (
                ProductVariant.objects.filter(product_id=id, name=variant)
                .values_list("stock", flat=True)
                .first()
            )
        else:
            stock = (
                Product.objects.filter(id=id)
                .values_list("stock_quantity", flat=True)
                .first()
            )
        return stock or 0

    @transaction.atomic
    def reserve_stock(
        self, id: str, quantity: int, variant: Optional[str] = None
    ) -> bool:
        now = timezone.now()
        if variant:
            updated = ProductVariant.objects.filter(
                product_id=id, name=variant, stock__gte=quantity
            ).update(stock=F("stock") - quantity, updated_at=now)
            if updated:
                Product.objects.filter(id=id).update(
                    purchases=F("purchases") + quantity, updated_at=now
                )
        else:
            updated = Product.objects.alive().filter(
                id=id, stock_quantity__gte=quantity
            ).update(
                stock_quantity=F("stock_quantity") - quantity,
                purchases=F("purchases") + quantity,
                updated_at=now,
            )

        log = logger.bind(product_id=str(id), variant=variant, quantity=quantity)
        if not updated:
            log.warning("product.stock_reservation_rejected")
            return False
        log.info("product.stock_reserved")
        return True

    @transaction.atomic
    def release_stock(
        self, id: str, quantity: int, variant: Optional[str] = None
    ) -> bool:
        now = timezone.now()
        if variant:
            updated = ProductVariant.objects.filter(product_id=id, name=variant).update(
                stock=F("stock") + quantity, updated_at=now
            )
            # the sale is undone even if the pack size no longer exists
            Product.objects.filter(id=id).update(
                purchases=Greatest(F("purchases") - quantity, Value(0)),
                updated_at=now,
            )
        else:
            updated = Product.objects.filter(id=id).update(
                stock_quantity=F("stock_quantity") + quantity,
                purchases=Greatest(F("purchases") - quantity, Value(0)),
                updated_at=now,
            )

        log = logger.bind(product_id=str(id), variant=variant, quantity=quantity)
        if not updated:
            log.warning("product.stock_release_skipped")
            return False
        log.info("product.stock_released")
        return True
