"""Unit tests for the OutboxEvent model.

Covers:
- Default status and UUIDv7 primary key.
- mark_as_published() / mark_as_failed(error) transitions.
- ready_for_relay() selection and ordering.
"""

from __future__ import annotations

import uuid

import pytest

from modules.core.models import EventStatus, OutboxEvent

pytestmark = pytest.mark.unit


def _make_event(**overrides) -> OutboxEvent:
    """Create and persist an OutboxEvent with sensible defaults."""
    defaults = {
        "event_type": "OrderPlaced",
        "payload": {"order_number": "BESTEA2026000001", "total": "404"},
        "aggregate_id": "abc-123",
        "topic": "orders",
    }
    defaults.update(overrides)
    return OutboxEvent.objects.create(**defaults)


class TestOutboxEventCreation:
    def test_create_event_with_defaults(self):
        event = _make_event()
        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.processed_at is None
        assert event.error_message is None
        assert event.retry_count == 0
        assert event.payload["total"] == "404"

    def test_id_is_uuid7(self):
        event = _make_event()
        assert isinstance(event.id, uuid.UUID)
        assert event.id.version == 7


class TestTransitions:
    def test_mark_as_published(self):
        event = _make_event()
        event.mark_as_published()
        event.refresh_from_db()
        assert event.status == EventStatus.PUBLISHED
        assert event.processed_at is not None

    def test_mark_as_failed_increments_retries(self):
        event = _make_event()
        event.mark_as_failed("smtp down")
        event.mark_as_failed("smtp still down")
        event.refresh_from_db()
        assert event.status == EventStatus.FAILED
        assert event.error_message == "smtp still down"
        assert event.retry_count == 2

    def test_str(self):
        event = _make_event(aggregate_id="order-1")
        assert str(event) == "OrderPlaced [PENDING] (order-1)"


class TestReadyForRelay:
    def test_selects_pending_and_retryable_failures_in_order(self):
        pending = _make_event(aggregate_id="a")
        retryable = _make_event(aggregate_id="b", status=EventStatus.FAILED, retry_count=2)
        _make_event(aggregate_id="c", status=EventStatus.FAILED, retry_count=5)
        _make_event(aggregate_id="d", status=EventStatus.PUBLISHED)

        ready = list(OutboxEvent.objects.ready_for_relay(max_retries=5))

        assert ready == [pending, retryable]
