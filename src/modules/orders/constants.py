"""Order domain constants.

Defines status and payment choices and the lifecycle ordering used by
the order state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    RETURNED = "returned", "Returned"
    EXCHANGE_REQUESTED = "exchange_requested", "Exchange requested"


class PaymentMethod(models.TextChoices):
    COD = "cod", "Cash on delivery"
    RAZORPAY = "razorpay", "Razorpay"
    STRIPE = "stripe", "Stripe"
    UPI = "upi", "UPI"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


# Forward-only fulfilment path; an order may skip ahead but never go back.
LIFECYCLE: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

LIFECYCLE_RANK: dict[str, int] = {status: rank for rank, status in enumerate(LIFECYCLE)}

# Reachable only from DELIVERED; handled outside this system afterwards.
ESCALATION_STATES: set[str] = {OrderStatus.RETURNED, OrderStatus.EXCHANGE_REQUESTED}

TERMINAL_STATES: set[str] = {OrderStatus.CANCELLED} | ESCALATION_STATES

CANCELLABLE_STATES: set[str] = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}

SHIPPED_STATES: set[str] = {
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
} | ESCALATION_STATES

# Status -> timestamp field set the first time the order reaches it.
MILESTONE_FIELDS: dict[str, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
}

ORDER_NUMBER_MAX_RETRIES = 5

DEFAULT_CANCELLATION_REASON = "Cancelled by customer"
