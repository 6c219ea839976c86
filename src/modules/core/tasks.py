"""Asynchronous tasks of the core module."""

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

RELAY_BATCH_SIZE = 100


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(batch_size: int = RELAY_BATCH_SIZE) -> dict:
    """Publish ``PENDING`` outbox rows to the event bus.

    Delivery is best-effort: a handler failure marks the row ``FAILED`` and
    the relay moves on to the next event.
    """
    published = failed = 0
    with transaction.atomic():
        pending = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(status=EventStatus.PENDING)
            .order_by("created_at", "id")[:batch_size]
        )
        for row in pending:
            try:
                event_bus.publish_payload(row.event_type, row.payload)
            except Exception as exc:  # noqa: BLE001 - a broken handler must not stall the relay
                logger.exception(
                    "outbox.publish_failed",
                    outbox_id=str(row.id),
                    event_type=row.event_type,
                )
                row.mark_as_failed(str(exc))
                failed += 1
            else:
                row.mark_as_published()
                published += 1

    if published or failed:
        logger.info("outbox.relayed", published=published, failed=failed)
    return {"published": published, "failed": failed}
