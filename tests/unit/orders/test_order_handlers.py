"""Unit tests for order event handlers, notifications and the in-memory bus."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.dtos import TrackingDTO
from modules.orders.events import OrderCancelled, OrderPlaced, OrderStatusChanged
from modules.orders.handlers import (
    OrderCancelledHandler,
    OrderPlacedHandler,
    OrderStatusChangedHandler,
)
from modules.orders.models import Order
from modules.orders.notifications import OrderNotifier
from shared.infrastructure.bus import InMemoryEventBus, event_bus

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(order_service, order_dto, product):
    return order_service.place_order(order_dto((product, 2)))


def test_placed_handler_sends_confirmation(order, mailoutbox):
    OrderPlacedHandler().handle(OrderPlaced(aggregate_id=order.id))

    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    assert message.subject == f"Order Confirmation - {order.order_number}"
    assert message.to == ["asha@example.com"]
    assert "Masala Chai Loose x2" in message.body
    assert "Total: ₹" in message.body


def test_status_handler_includes_tracking(order_service, order, staff_user, mailoutbox):
    order_service.advance_status(
        order.id,
        OrderStatus.SHIPPED,
        staff_user,
        tracking=TrackingDTO(courier="Delhivery", tracking_number="DL42"),
    )

    OrderStatusChangedHandler().handle(
        OrderStatusChanged(aggregate_id=order.id, old_status="pending", new_status="shipped")
    )

    assert mailoutbox[0].subject == f"Order Shipped - {order.order_number}"
    assert "Tracking number: DL42" in mailoutbox[0].body


def test_cancelled_handler_mentions_reason(order_service, order, customer, mailoutbox):
    order_service.cancel_order(order.id, customer, reason="Ordered by mistake")

    OrderCancelledHandler().handle(OrderCancelled(aggregate_id=order.id))

    assert "Reason: Ordered by mistake" in mailoutbox[0].body


def test_missing_order_is_ignored(mailoutbox):
    OrderPlacedHandler().handle(OrderPlaced(aggregate_id=uuid4()))

    assert mailoutbox == []


def test_customer_without_email_is_skipped(order, customer, mailoutbox):
    customer.email = ""
    customer.save()

    sent = OrderNotifier().send_confirmation(Order.objects.get(id=order.id))

    assert sent is False
    assert mailoutbox == []


def test_app_registers_handlers_on_global_bus():
    assert event_bus.handlers_for(OrderPlaced)
    assert event_bus.handlers_for(OrderStatusChanged)
    assert event_bus.handlers_for(OrderCancelled)


def test_in_memory_event_bus_routes_events():
    bus = InMemoryEventBus()
    handled = []

    class CapturingHandler:
        def handle(self, event) -> None:
            handled.append(event)

    handler = CapturingHandler()
    event = OrderPlaced(aggregate_id=uuid4())

    bus.subscribe(OrderPlaced, handler)
    bus.subscribe(OrderPlaced, handler)
    bus.publish(event)

    assert handled == [event]


def test_handler_errors_propagate():
    bus = InMemoryEventBus()

    class FailingHandler:
        def handle(self, event) -> None:
            raise RuntimeError("smtp down")

    bus.subscribe(OrderPlaced, FailingHandler())

    with pytest.raises(RuntimeError):
        bus.publish(OrderPlaced(aggregate_id=uuid4()))
