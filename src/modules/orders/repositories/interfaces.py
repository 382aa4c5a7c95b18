"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: creation with a unique order number and frozen items,
status history tracking, row locking, and idempotency-key look-up.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, order: Order, items: List[Dict[str, Any]]) -> Order:
        """Insert ``order`` with a freshly generated order number, then its items.

        ``items`` are dicts with ``product_id``, ``product_name``,
        ``variant``, ``quantity`` and ``unit_price``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def list_for_user(
        self, user_id: Any, status: Optional[str] = None
    ) -> "models.QuerySet[Order]":
        """Orders owned by ``user_id``, newest first."""

    @abstractmethod
    def add_history(
        self,
        order_id: Any,
        old_status: Optional[str],
        new_status: str,
        user_id: Optional[Any] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def flush_events(self, order: Order) -> int:
        """Write the order's pending domain events to the outbox.

        Returns the number of events written.
        """
