"""Status transitions, milestones, history and tracking."""

from __future__ import annotations

from datetime import timedelta

import pytest

from modules.core.models import OutboxEvent
from modules.orders.constants import LIFECYCLE, OrderStatus
from modules.orders.dtos import TrackingDTO
from modules.orders.exceptions import InvalidOrderStatus, OrderAccessDenied, OrderNotFound
from modules.orders.models import Order

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(order_service, order_dto, product):
    return order_service.place_order(order_dto((product, 1)))


def _advance(service, order, *statuses, actor):
    for status in statuses:
        order = service.advance_status(order.id, status, actor)
    return order


class TestForwardTransitions:
    def test_walks_the_whole_lifecycle(self, order_service, order, staff_user):
        order = _advance(order_service, order, *LIFECYCLE[1:], actor=staff_user)

        assert order.status == OrderStatus.DELIVERED
        assert order.confirmed_at is not None
        assert order.shipped_at is not None
        assert order.delivered_at is not None

    def test_skipping_ahead_backfills_milestones(self, order_service, order, staff_user):
        order = order_service.advance_status(order.id, OrderStatus.SHIPPED, staff_user)

        assert order.confirmed_at == order.shipped_at
        assert order.delivered_at is None

    def test_milestones_are_set_once(self, make_order_service, order, staff_user):
        first_clock = order.created_at + timedelta(hours=1)
        later_clock = order.created_at + timedelta(hours=5)

        make_order_service(clock=lambda: first_clock).advance_status(
            order.id, OrderStatus.CONFIRMED, staff_user
        )
        order = make_order_service(clock=lambda: later_clock).advance_status(
            order.id, OrderStatus.SHIPPED, staff_user
        )

        assert order.confirmed_at == first_clock
        assert order.shipped_at == later_clock

    def test_owner_may_advance(self, order_service, order, customer):
        order = order_service.advance_status(order.id, OrderStatus.CONFIRMED, customer)

        assert order.status == OrderStatus.CONFIRMED

    def test_tracking_details_are_merged(self, order_service, order, staff_user):
        order = order_service.advance_status(
            order.id,
            OrderStatus.SHIPPED,
            staff_user,
            tracking=TrackingDTO(courier="Delhivery", tracking_number="DL123"),
        )
        order = order_service.advance_status(
            order.id,
            OrderStatus.OUT_FOR_DELIVERY,
            staff_user,
            tracking=TrackingDTO(tracking_url="https://track.example/DL123"),
        )

        assert order.tracking == {
            "courier": "Delhivery",
            "tracking_number": "DL123",
            "tracking_url": "https://track.example/DL123",
        }


class TestRejectedTransitions:
    def test_backwards_is_rejected(self, order_service, order, staff_user):
        _advance(order_service, order, OrderStatus.SHIPPED, actor=staff_user)

        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.CONFIRMED, staff_user)

    def test_same_status_is_rejected(self, order_service, order, staff_user):
        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.PENDING, staff_user)

    def test_unknown_status(self, order_service, order, staff_user):
        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, "teleported", staff_user)

    def test_cancel_through_status_is_rejected(self, order_service, order, staff_user):
        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.CANCELLED, staff_user)

    def test_escalation_only_from_delivered(self, order_service, order, staff_user):
        _advance(order_service, order, OrderStatus.SHIPPED, actor=staff_user)

        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.RETURNED, staff_user)

    @pytest.mark.parametrize(
        "escalation", [OrderStatus.RETURNED, OrderStatus.EXCHANGE_REQUESTED]
    )
    def test_delivered_can_only_escalate(self, order_service, order, staff_user, escalation):
        _advance(order_service, order, OrderStatus.DELIVERED, actor=staff_user)

        order = order_service.advance_status(order.id, escalation, staff_user)

        assert order.status == escalation
        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.DELIVERED, staff_user)

    def test_terminal_cancelled_order_is_frozen(self, order_service, order, customer, staff_user):
        order_service.cancel_order(order.id, customer)

        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.CONFIRMED, staff_user)

    def test_stranger_cannot_advance(self, order_service, order, other_customer):
        with pytest.raises(OrderAccessDenied):
            order_service.advance_status(order.id, OrderStatus.CONFIRMED, other_customer)

    def test_missing_order(self, order_service, staff_user):
        with pytest.raises(OrderNotFound):
            order_service.advance_status(
                "00000000-0000-0000-0000-000000000000", OrderStatus.CONFIRMED, staff_user
            )

    def test_rejected_transition_writes_nothing(self, order_service, order, staff_user):
        events_before = OutboxEvent.objects.count()

        with pytest.raises(InvalidOrderStatus):
            order_service.advance_status(order.id, OrderStatus.RETURNED, staff_user)

        assert Order.objects.get(id=order.id).status == OrderStatus.PENDING
        assert order.status_history.count() == 1
        assert OutboxEvent.objects.count() == events_before


class TestHistory:
    def test_history_is_monotonic_and_chained(self, order_service, order, staff_user):
        _advance(
            order_service,
            order,
            OrderStatus.CONFIRMED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            actor=staff_user,
        )

        history = list(Order.objects.get(id=order.id).status_history.all())
        assert [h.new_status for h in history] == [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        for previous, current in zip(history, history[1:]):
            assert current.old_status == previous.new_status
            assert current.created_at >= previous.created_at
        assert history[-1].user == staff_user

    def test_each_change_emits_an_event(self, order_service, order, staff_user):
        order_service.advance_status(order.id, OrderStatus.CONFIRMED, staff_user)

        event = OutboxEvent.objects.get(event_type="OrderStatusChanged")
        assert event.payload["old_status"] == OrderStatus.PENDING
        assert event.payload["new_status"] == OrderStatus.CONFIRMED


class TestTracking:
    def test_timeline_marks_reached_steps(self, order_service, order, customer, staff_user):
        _advance(order_service, order, OrderStatus.SHIPPED, actor=staff_user)

        tracking = order_service.track_order(order.id, customer)

        assert tracking.current_status == OrderStatus.SHIPPED
        assert [step.status for step in tracking.timeline] == list(LIFECYCLE)
        completed = {step.status: step.completed for step in tracking.timeline}
        assert completed == {
            OrderStatus.PENDING: True,
            OrderStatus.CONFIRMED: True,
            OrderStatus.PROCESSING: True,
            OrderStatus.SHIPPED: True,
            OrderStatus.OUT_FOR_DELIVERY: False,
            OrderStatus.DELIVERED: False,
        }
        assert tracking.timeline[0].date == order.created_at
        assert tracking.timeline[3].date is not None
        assert tracking.timeline[4].date is None

    def test_tracking_is_private(self, order_service, order, other_customer):
        with pytest.raises(OrderAccessDenied):
            order_service.track_order(order.id, other_customer)

    def test_admin_can_view_any_order(self, order_service, order, staff_user):
        assert order_service.get_order(order.id, staff_user).id == order.id


class TestListOrders:
    def test_only_own_orders_newest_first(
        self, order_service, order_dto, product, customer, other_customer
    ):
        first = order_service.place_order(order_dto((product, 1)))
        second = order_service.place_order(order_dto((product, 1)))
        order_service.place_order(order_dto((product, 1), user_id=other_customer.pk))

        orders = list(order_service.list_orders(customer))

        assert [o.id for o in orders] == [second.id, first.id]

    def test_status_filter(self, order_service, order_dto, product, customer, staff_user):
        first = order_service.place_order(order_dto((product, 1)))
        order_service.place_order(order_dto((product, 1)))
        order_service.advance_status(first.id, OrderStatus.CONFIRMED, staff_user)

        confirmed = list(order_service.list_orders(customer, OrderStatus.CONFIRMED))

        assert [o.id for o in confirmed] == [first.id]

    def test_invalid_status_filter(self, order_service, customer):
        with pytest.raises(InvalidOrderStatus):
            order_service.list_orders(customer, "lost")
