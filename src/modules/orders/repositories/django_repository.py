"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems + outbox events) is persisted
atomically.

Concurrency control on status updates uses ``select_for_update()``
to prevent lost updates (no ``version`` field exists on the model).
Order numbers count this year's orders, so two concurrent checkouts can
compute the same one; the unique constraint catches it and the number
is regenerated inside a savepoint.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import ORDER_NUMBER_MAX_RETRIES
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, order: Order, items: List[Dict[str, Any]]) -> Order:
        self._insert_with_order_number(order)

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=item["product_id"],
                    product_name=item["product_name"],
                    variant=item.get("variant") or "",
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    line_total=item["quantity"] * item["unit_price"],
                )
                for item in items
            ]
        )

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    def _insert_with_order_number(self, order: Order) -> None:
        prefix = f"{settings.STOREFRONT['ORDER_NUMBER_PREFIX']}{timezone.localdate().year}"
        for attempt in range(ORDER_NUMBER_MAX_RETRIES):
            counter = Order.objects.filter(order_number__startswith=prefix).count()
            order.order_number = f"{prefix}{counter + 1 + attempt:06d}"
            try:
                with transaction.atomic():
                    order.save(force_insert=True)
                return
            except IntegrityError:
                if not Order.objects.filter(order_number=order.order_number).exists():
                    raise
                logger.warning(
                    "order.number_conflict",
                    order_number=order.order_number,
                    attempt=attempt + 1,
                )
        raise RuntimeError(
            f"Failed to generate unique order_number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _with_relations(self):
        return Order.objects.select_related("user").prefetch_related(
            "items", "status_history"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._with_relations().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside a transaction.  Items are prefetched so the
        caller can restock them while the row is locked.
        """
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .select_related("user")
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self._with_relations().filter(idempotency_key=key).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = self._with_relations()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_user(self, user_id: Any, status: Optional[str] = None):
        queryset = (
            Order.objects.filter(user_id=user_id)
            .prefetch_related("items")
            .order_by("-created_at", "-id")
        )
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and write its pending events to the outbox."""
        entity.save()
        event_count = self.flush_events(entity)
        logger.info("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    @transaction.atomic
    def flush_events(self, order: Order) -> int:
        events = order.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic=OUTBOX_TOPIC,
            )
        order.clear_domain_events()
        return len(events)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: Any,
        old_status: Optional[str],
        new_status: str,
        user_id: Optional[Any] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            user_id=user_id,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
