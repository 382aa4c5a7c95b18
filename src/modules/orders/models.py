"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- Status transitions are validated in the service layer against the
  lifecycle in ``constants.py``.
- Each status change generates an append-only history record.
- ``order_number`` is unique; the repository regenerates it on conflict.
- ``total == subtotal - discount_amount + shipping_charges + tax_amount``
  (checked by ``totals_are_consistent``).
- Line items are frozen copies (name, variant, unit price) so historical
  orders do not change when the catalog does.
- Orders are never deleted; cancellation is a status.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F

from modules.core.models import BaseModel
from modules.orders.constants import (
    LIFECYCLE_RANK,
    TERMINAL_STATES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin

ZERO = Decimal("0.00")


def _money(**kwargs: Any) -> models.DecimalField:
    return models.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` (``BESTEA2026000042``) is a display label; the UUIDv7
    ``id`` is used for all internal references and API look-ups.

    ``idempotency_key`` is nullable: only checkouts that send an
    ``Idempotency-Key`` header carry one.
    """

    order_number = models.CharField(max_length=32, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    subtotal = _money(default=ZERO)
    discount_amount = _money(default=ZERO)
    coupon_code = models.CharField(max_length=32, blank=True, default="")
    discount_type = models.CharField(max_length=20, blank=True, default="")
    shipping_charges = _money(default=ZERO)
    tax_amount = _money(default=ZERO)
    tax_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    total = _money(default=ZERO)

    shipping_address = models.JSONField()
    billing_address = models.JSONField(null=True, blank=True, default=None)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_result = models.JSONField(null=True, blank=True, default=None)
    paid_at = models.DateTimeField(null=True, blank=True, default=None)

    notes = models.TextField(blank=True, default="")
    tracking = models.JSONField(null=True, blank=True, default=None)
    cancellation_reason = models.CharField(max_length=255, blank=True, default="")

    confirmed_at = models.DateTimeField(null=True, blank=True, default=None)
    shipped_at = models.DateTimeField(null=True, blank=True, default=None)
    delivered_at = models.DateTimeField(null=True, blank=True, default=None)
    cancelled_at = models.DateTimeField(null=True, blank=True, default=None)

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["user", "-created_at"], name="orders_user_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(discount_amount__lte=F("subtotal")),
                name="orders_discount_within_subtotal",
            ),
        ]

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def lifecycle_rank(self) -> int:
        """Position on the fulfilment path; -1 outside of it."""
        return LIFECYCLE_RANK.get(self.status, -1)

    def totals_are_consistent(self) -> bool:
        return self.total == (
            self.subtotal - self.discount_amount + self.shipping_charges + self.tax_amount
        )

    def clean(self) -> None:
        super().clean()
        if not self.totals_are_consistent():
            raise ValidationError(
                {"total": "Total must equal subtotal - discount + shipping + tax."}
            )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Frozen copy of a cart line at the time of purchase.

    ``product`` is a weak reference used for restocking and display only;
    it is never used to re-price the order.  ``line_total`` is always
    ``quantity * unit_price``, recalculated on every save.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.SET_NULL,
        null=True,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    variant = models.CharField(max_length=50, blank=True, default="")
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price = _money()
    line_total = _money(editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        label = f"{self.product_name} ({self.variant})" if self.variant else self.product_name
        return f"{label} x{self.quantity}"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Audit records are immutable.  ``user`` is nullable: ``None`` means the
    change was made by the system.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
