"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  Each one
carries the machine-readable ``code`` the client uses to show a precise
message; ``api_exception_handler`` renders them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rest_framework import status

from modules.core.exceptions import DomainError
from modules.products.exceptions import ProductNotFound

__all__ = [
    "AlreadyCancelled",
    "AlreadyShipped",
    "CancellationWindowExpired",
    "EmptyCart",
    "InsufficientStock",
    "InvalidOrderStatus",
    "OrderAccessDenied",
    "OrderNotFound",
    "ProductNotFound",
    "ProductUnavailable",
    "VariantNotFound",
]


class EmptyCart(DomainError):
    code = "empty_cart"

    def __init__(self) -> None:
        super().__init__("Cannot place an order without items.")


class ProductUnavailable(DomainError):
    """The product is inactive and cannot be sold."""

    code = "product_unavailable"

    def __init__(self, product_name: str) -> None:
        self.product_name = product_name
        super().__init__(f"{product_name} is currently unavailable.")


class VariantNotFound(DomainError):
    code = "variant_not_found"

    def __init__(self, product_name: str, variant: str) -> None:
        self.product_name = product_name
        self.variant = variant
        super().__init__(f"{product_name} is not available in '{variant}'.")


class InsufficientStock(DomainError):
    """Not enough stock to fulfil the order."""

    code = "insufficient_stock"

    def __init__(self, product_name: str, available: int) -> None:
        self.product_name = product_name
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_name}. Only {available} available."
        )


class OrderNotFound(DomainError):
    code = "order_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id: object) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")


class OrderAccessDenied(DomainError):
    code = "order_access_denied"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You are not allowed to access this order.") -> None:
        super().__init__(message)


class InvalidOrderStatus(DomainError):
    """Unknown status value or a transition the lifecycle does not allow."""

    code = "invalid_order_status"

    def __init__(self, message: str, current: Optional[str] = None) -> None:
        self.current = current
        super().__init__(message)


class AlreadyShipped(DomainError):
    code = "already_shipped"

    def __init__(self, current: str) -> None:
        self.current = current
        super().__init__(f"Order cannot be cancelled once it is {current}.")


class AlreadyCancelled(DomainError):
    code = "already_cancelled"

    def __init__(self) -> None:
        super().__init__("Order is already cancelled.")


class CancellationWindowExpired(DomainError):
    code = "cancellation_window_expired"

    def __init__(self, window_hours: int, placed_at: datetime) -> None:
        self.window_hours = window_hours
        self.placed_at = placed_at
        super().__init__(
            f"Orders can only be cancelled within {window_hours} hours of placement."
        )
