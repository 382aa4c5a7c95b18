"""Cart errors."""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class CartItemNotFound(DomainError):
    code = "cart_item_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Cart item '{key}' not found.")
