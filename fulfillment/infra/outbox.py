"""
Transactional outbox: domain events are written in the same transaction as
the state change that produced them and drained later by the projector.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from fulfillment.domain.events import AggregateType, DomainEvent
from fulfillment.infra.models import TimeStampedModel, enum_choices


logger = logging.getLogger(__name__)


def _json_safe(value):
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class OutboxEvent(TimeStampedModel):
    """One pending or processed domain event."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    aggregate_id = models.UUIDField()
    aggregate_type = models.CharField(max_length=16, choices=enum_choices(AggregateType))
    event_type = models.CharField(max_length=64)
    event_data = models.JSONField()
    processed = models.BooleanField(default=False)
    processed_at = models.DateTimeField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "fulfillment_outbox_event"
        indexes = [
            models.Index(fields=("processed", "created_at")),
            models.Index(fields=("aggregate_type", "aggregate_id")),
        ]


class OutboxRepository:
    """Writes events from services and hands batches to the projector."""

    @transaction.atomic
    def add_event(self, event: DomainEvent, aggregate_type: AggregateType) -> UUID:
        """Append an event inside the caller's transaction."""
        if not event.occurred_at:
            event.occurred_at = timezone.now().isoformat()

        outbox_event = OutboxEvent.objects.create(
            aggregate_id=event.aggregate_id,
            aggregate_type=AggregateType(aggregate_type).value,
            event_type=event.event_type,
            event_data={key: _json_safe(value) for key, value in asdict(event).items()},
        )
        logger.debug(
            "outbox_event_added",
            extra={"operation": event.event_type, "aggregate_id": str(event.aggregate_id)},
        )
        return outbox_event.id

    def get_unprocessed_events(self, limit: int = 100, max_retries: int | None = None) -> list[OutboxEvent]:
        """Oldest pending events first; events past ``max_retries`` are skipped."""
        queryset = OutboxEvent.objects.filter(processed=False)
        if max_retries is not None:
            queryset = queryset.filter(retry_count__lt=max_retries)
        return list(queryset.order_by("created_at")[:limit])

    def mark_processed(self, event_id: UUID) -> None:
        OutboxEvent.objects.filter(id=event_id).update(processed=True, processed_at=timezone.now())

    def increment_retry(self, event_id: UUID) -> None:
        OutboxEvent.objects.filter(id=event_id).update(retry_count=F("retry_count") + 1)
