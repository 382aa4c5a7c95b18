"""Product repository interface.

Extends ``IRepository[Product]`` with the look-ups needed for unique
SKUs and with the atomic stock operations used by order placement and
cancellation.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Product]":
        """List products with optional filters."""

    @abstractmethod
    def save(
        self, entity: Product, update_fields: Optional[List[str]] = None
    ) -> Product:
        """Persist a product; with ``update_fields`` write only those columns."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Soft-delete a product by ID."""

    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU."""

    @abstractmethod
    def available_stock(self, id: str, variant: Optional[str] = None) -> int:
        """Current stock of a product (or one of its variants); 0 if missing."""

    @abstractmethod
    def reserve_stock(
        self, id: str, quantity: int, variant: Optional[str] = None
    ) -> bool:
        """Atomically take ``quantity`` units out of stock.

        Implemented as a single conditional update: decrement only where
        ``stock >= quantity``.  Returns ``False`` when no row was updated
        (missing product or not enough stock).  Also increments the
        product's ``purchases`` counter.
        """

    @abstractmethod
    def release_stock(
        self, id: str, quantity: int, variant: Optional[str] = None
    ) -> bool:
        """Atomically put ``quantity`` units back into stock.

        Decrements ``purchases`` by the same amount, floored at zero, also
        when a variant line points at a pack size that was deleted since.
        Returns ``False`` if the units had nowhere to go back to.
        """
