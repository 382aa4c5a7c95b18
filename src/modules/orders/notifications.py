"""Plain-text order emails.

Rendering is kept deliberately small: one subject and body per event,
sent through ``django.core.mail`` so the configured ``EMAIL_BACKEND``
decides how (or whether) it is delivered.
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from django.conf import settings
from django.core.mail import send_mail

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order

logger = structlog.get_logger(__name__)


def _greeting(order: Order) -> str:
    name = order.user.get_full_name() or order.shipping_address.get("name") or "Customer"
    return f"Dear {name},"


def _item_lines(order: Order) -> List[str]:
    lines = []
    for item in order.items.all():
        label = f"{item.product_name} ({item.variant})" if item.variant else item.product_name
        lines.append(f"  {label} x{item.quantity}  ₹{item.line_total}")
    return lines


def _summary_lines(order: Order) -> List[str]:
    lines = [f"  Subtotal: ₹{order.subtotal}"]
    if order.discount_amount:
        lines.append(f"  Discount ({order.coupon_code}): -₹{order.discount_amount}")
    lines += [
        f"  Shipping: ₹{order.shipping_charges}",
        f"  Tax ({order.tax_percentage}%): ₹{order.tax_amount}",
        f"  Total: ₹{order.total}",
    ]
    return lines


class OrderNotifier:
    """Builds and sends the customer emails for order events."""

    def __init__(self, from_email: Optional[str] = None) -> None:
        self._from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send_confirmation(self, order: Order) -> bool:
        body = [
            _greeting(order),
            "",
            "Thank you for your order! We're excited to deliver fresh tea to your doorstep.",
            "",
            f"Order number: {order.order_number}",
            f"Status: {order.get_status_display()}",
            f"Payment: {order.get_payment_method_display()}",
            "",
            "Items:",
            *_item_lines(order),
            "",
            *_summary_lines(order),
        ]
        return self._send(order, f"Order Confirmation - {order.order_number}", body)

    def send_status_update(self, order: Order, old_status: str, new_status: str) -> bool:
        """Status mail for one transition; the order may have moved on since."""
        label = OrderStatus(new_status).label
        body = [
            _greeting(order),
            "",
            f"Your order {order.order_number} has moved from "
            f"{OrderStatus(old_status).label} to {label}.",
        ]
        tracking = order.tracking or {}
        if tracking.get("tracking_number"):
            body += [
                "",
                f"Courier: {tracking.get('courier', '')}",
                f"Tracking number: {tracking['tracking_number']}",
            ]
            if tracking.get("tracking_url"):
                body.append(f"Track it at: {tracking['tracking_url']}")
        subject = f"Order {label} - {order.order_number}"
        return self._send(order, subject, body)

    def send_cancellation(self, order: Order) -> bool:
        body = [
            _greeting(order),
            "",
            f"Your order {order.order_number} has been cancelled.",
            f"Reason: {order.cancellation_reason}",
        ]
        if order.payment_status == PaymentStatus.PAID:
            body += ["", "Your refund will be processed to the original payment method."]
        return self._send(order, f"Order Cancelled - {order.order_number}", body)

    def _send(self, order: Order, subject: str, body: List[str]) -> bool:
        log = logger.bind(order_id=str(order.id), order_number=order.order_number)
        recipient = order.user.email
        if not recipient:
            log.warning("order.notification_skipped", reason="missing_email", subject=subject)
            return False
        send_mail(
            subject,
            "\n".join(body),
            self._from_email,
            [recipient],
            fail_silently=False,
        )
        log.info("order.notification_sent", subject=subject)
        return True
