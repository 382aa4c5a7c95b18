"""Product domain exceptions.

Raised by the Service Layer when business rules are violated and
translated into the standard error envelope by
``modules.core.exceptions.api_exception_handler``.
"""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class ProductAlreadyExists(DomainError):
    """A product with the same SKU already exists."""

    code = "product_already_exists"
    status_code = status.HTTP_409_CONFLICT


class ProductNotFound(DomainError):
    """The requested product does not exist or has been soft-deleted."""

    code = "product_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, product_id: object) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found.")
