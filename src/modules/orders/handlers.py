"""Event handlers for Orders domain events.

Handlers run inside the outbox relay.  Exceptions propagate so the relay
records the failure and retries the event on a later run.
"""

from __future__ import annotations

from typing import Optional

import structlog

from modules.orders.events import OrderCancelled, OrderPlaced, OrderStatusChanged
from modules.orders.models import Order
from modules.orders.notifications import OrderNotifier
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


def _load(order_id) -> Optional[Order]:
    order = (
        Order.objects.select_related("user")
        .prefetch_related("items")
        .filter(id=order_id)
        .first()
    )
    if order is None:
        logger.warning("order.notification_orphaned", order_id=str(order_id))
    return order


class _NotifyingHandler:
    def __init__(self, notifier: Optional[OrderNotifier] = None) -> None:
        self._notifier = notifier

    @property
    def notifier(self) -> OrderNotifier:
        return self._notifier or OrderNotifier()


class OrderPlacedHandler(_NotifyingHandler, IEventHandler[OrderPlaced]):
    def handle(self, event: OrderPlaced) -> None:
        order = _load(event.aggregate_id)
        if order is not None:
            self.notifier.send_confirmation(order)


class OrderStatusChangedHandler(_NotifyingHandler, IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        order = _load(event.aggregate_id)
        if order is not None:
            self.notifier.send_status_update(order, event.old_status, event.new_status)


class OrderCancelledHandler(_NotifyingHandler, IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        order = _load(event.aggregate_id)
        if order is not None:
            self.notifier.send_cancellation(order)


order_placed_handler = OrderPlacedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
