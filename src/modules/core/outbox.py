"""Write side of the transactional outbox.

``record_events`` must be called inside the transaction that produced the
events. Delivery is scheduled with ``transaction.on_commit`` so nothing is
published for a rolled-back unit of work.
"""

from __future__ import annotations

from typing import Iterable, List

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


def record_events(events: Iterable[DomainEvent]) -> List[OutboxEvent]:
    """Persist *events* as ``PENDING`` outbox rows and schedule the relay."""
    rows = [
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=event.to_payload(),
            topic=event.topic,
        )
        for event in events
    ]
    if rows:
        transaction.on_commit(_enqueue_relay, robust=True)
        logger.debug(
            "outbox.events_recorded",
            event_types=[row.event_type for row in rows],
        )
    return rows


def _enqueue_relay() -> None:
    from modules.core.tasks import relay_outbox_events

    relay_outbox_events.delay()
