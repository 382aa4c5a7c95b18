"""Coupon table.

Coupons are issued once and never edited by the storefront; there is
no redemption tracking.  ``code`` is stored uppercase so look-ups can
be case-insensitive without a functional index.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed amount"


class Coupon(BaseModel):
    code = models.CharField(max_length=32, unique=True)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    min_order = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    description = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "coupons"
        ordering = ["min_order", "code"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(value__gte=0),
                name="coupons_value_non_negative",
            ),
            models.CheckConstraint(
                check=~models.Q(discount_type="percentage") | models.Q(value__lte=100),
                name="coupons_percentage_at_most_100",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code
