"""Catalog models: Product and ProductVariant.

Business rules implemented:
- SKU is unique and normalised to uppercase.
- Inactive products cannot be sold (enforced at the order service layer).
- Price must be greater than zero.
- Stock never goes negative (``PositiveIntegerField`` + conditional updates
  in the repository).
- A product with variants has exactly one default variant; each variant
  carries its own stock, independent of ``Product.stock_quantity``.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(SoftDeleteModel):
    """Product aggregate root.

    ``sku`` is normalised to uppercase on save to prevent visual duplicates
    (e.g. "assam-250" vs "ASSAM-250").  ``purchases`` is the cumulative
    number of units sold; order placement increments it and cancellation
    gives the units back.
    """

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    purchases = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError(
                {"stock_quantity": "Stock quantity cannot be negative."}
            )

    # ------------------------------------------------------------------
    # Catalog helpers
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_deleted

    @property
    def default_variant(self) -> Optional[ProductVariant]:
        variants = list(self.variants.all())
        if not variants:
            return None
        return next((v for v in variants if v.is_default), variants[0])

    @property
    def default_price(self) -> Decimal:
        """Listing price: the default variant's price when variants exist."""
        variant = self.default_variant
        return variant.price if variant else self.price

    def get_variant(self, name: str) -> Optional[ProductVariant]:
        return next((v for v in self.variants.all() if v.name == name), None)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                sku=self.sku,
                name=self.name,
            )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class ProductVariant(BaseModel):
    """Sellable pack size of a product (e.g. "250g", "500g", "1kg").

    Saving a default variant clears the flag on its siblings; the first
    variant of a product always becomes the default; deleting the default
    promotes the oldest remaining variant.
    """

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="variants",
    )
    name = models.CharField(max_length=50)
    sku = models.CharField(max_length=64, unique=True, null=True, blank=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock = models.PositiveIntegerField(default=0)
    weight = models.CharField(max_length=20, blank=True, default="")
    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = "product_variants"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "name"],
                name="product_variants_unique_name",
            ),
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="product_variants_price_positive",
            ),
        ]

    @transaction.atomic
    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        siblings = ProductVariant.objects.filter(product_id=self.product_id).exclude(
            pk=self.pk
        )
        if self.is_default:
            siblings.filter(is_default=True).update(is_default=False)
        elif not siblings.filter(is_default=True).exists():
            self.is_default = True
        super().save(*args, **kwargs)

    @transaction.atomic
    def delete(self, *args, **kwargs):
        was_default = self.is_default
        product_id = self.product_id
        result = super().delete(*args, **kwargs)
        if was_default:
            successor = (
                ProductVariant.objects.filter(product_id=product_id)
                .order_by("created_at")
                .first()
            )
            if successor is not None:
                successor.is_default = True
                successor.save(update_fields=["is_default", "updated_at"])
        return result

    def __str__(self) -> str:
        return f"{self.product.name} ({self.name})"
