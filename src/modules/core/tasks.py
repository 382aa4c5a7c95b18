"""Background tasks of the core module."""

from __future__ import annotations

from typing import Dict

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

RELAY_BATCH_SIZE = 100


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(batch_size: int = RELAY_BATCH_SIZE) -> Dict[str, int]:
    """Publish pending outbox events on the in-process event bus.

    Each event is handled in its own transaction so one failing handler
    does not hold back the rest of the batch.  Failures are recorded on
    the row and retried on the next run until ``OUTBOX_MAX_RETRIES``.
    """
    max_retries = settings.STOREFRONT["OUTBOX_MAX_RETRIES"]
    event_ids = list(
        OutboxEvent.objects.ready_for_relay(max_retries).values_list("id", flat=True)[
            :batch_size
        ]
    )
    published = failed = 0

    for event_id in event_ids:
        with transaction.atomic():
            outbox = (
                OutboxEvent.objects.select_for_update(skip_locked=True)
                .ready_for_relay(max_retries)
                .filter(id=event_id)
                .first()
            )
            if outbox is None:
                continue
            log = logger.bind(
                outbox_id=str(outbox.id),
                event_type=outbox.event_type,
                aggregate_id=outbox.aggregate_id,
            )
            try:
                with transaction.atomic():
                    event = DomainEvent.from_payload(
                        outbox.event_type, outbox.payload
                    )
                    event_bus.publish(event)
            except Exception as exc:  # noqa: BLE001 - recorded on the outbox row
                outbox.mark_as_failed(str(exc))
                log.warning(
                    "outbox.relay_failed",
                    error=str(exc),
                    retry_count=outbox.retry_count,
                )
                failed += 1
                continue
            outbox.mark_as_published()
            log.info("outbox.relayed")
            published += 1

    logger.info("outbox.relay_completed", published=published, failed=failed)
    return {"published": published, "failed": failed}
