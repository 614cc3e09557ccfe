"""
Projector for updating read models from outbox events.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from fulfillment.domain.invoice import InvoiceStatus
from fulfillment.domain.money import ZERO, to_money
from fulfillment.infra.models import CustomerORM, InvoiceORM
from fulfillment.infra.outbox import OutboxEvent, OutboxRepository
from fulfillment.infra.read_models import CustomerReceivable, OrderSummary


logger = logging.getLogger(__name__)

# Invoices that no longer count towards a customer's receivable.
_CLOSED = (InvoiceStatus.CANCELLED.value, InvoiceStatus.REFUNDED.value)


class Projector:
    """Projector for updating read models from domain events."""

    def __init__(self, outbox_repo: OutboxRepository | None = None):
        self.outbox_repo = outbox_repo or OutboxRepository()

    def process_outbox_events(self, limit: int = 100, max_retries: int | None = None) -> int:
        """Process unprocessed outbox events. Returns how many succeeded."""
        events = self.outbox_repo.get_unprocessed_events(limit=limit, max_retries=max_retries)
        processed_count = 0

        for event_orm in events:
            try:
                with transaction.atomic():
                    self._process_event(event_orm)
                    self.outbox_repo.mark_processed(event_orm.id)
                processed_count += 1
            except Exception as e:
                # One bad event must not block the rest of the batch
                self.outbox_repo.increment_retry(event_orm.id)
                logger.error(
                    "projector_error",
                    extra={
                        "event_id": str(event_orm.id),
                        "operation": event_orm.event_type,
                        "error": str(e),
                    },
                    exc_info=True,
                )

        return processed_count

    def _process_event(self, event_orm: OutboxEvent) -> None:
        """Process single event."""
        handler = getattr(self, f"_handle_{event_orm.aggregate_type.lower()}", None)
        if handler is None:
            logger.warning(
                "projector_unknown_aggregate",
                extra={"event_id": str(event_orm.id), "operation": event_orm.event_type},
            )
            return
        handler(event_orm.aggregate_id, event_orm.event_type, event_orm.event_data)

    def _handle_order(self, order_id: UUID, event_type: str, event_data: dict) -> None:
        if event_type == "OrderCreated":
            customer_id = UUID(event_data["customer_id"])
            customer = CustomerORM.objects.filter(id=customer_id).first()
            OrderSummary.objects.update_or_create(
                id=order_id,
                defaults={
                    "order_number": event_data["order_number"],
                    "customer_id": customer_id,
                    "customer_name": customer.name if customer else "",
                    "status": "PENDING",
                    "total_amount": Decimal(event_data["total_amount"]),
                    "items_count": event_data.get("items_count", 0),
                    "created_at_read": timezone.now(),
                }
            )
        elif event_type == "OrderUpdated":
            OrderSummary.objects.filter(id=order_id).update(
                total_amount=Decimal(event_data["total_amount"]),
                items_count=event_data.get("items_count", 0),
            )
        elif event_type == "OrderStatusChanged":
            OrderSummary.objects.filter(id=order_id).update(status=event_data["status"])
        elif event_type == "OrderCancelled":
            OrderSummary.objects.filter(id=order_id).update(status="CANCELLED")

    def _handle_invoice(self, invoice_id: UUID, event_type: str, event_data: dict) -> None:
        customer_id = event_data.get("customer_id")
        if customer_id:
            self._refresh_receivable(UUID(customer_id))

    def _handle_payment(self, payment_id: UUID, event_type: str, event_data: dict) -> None:
        invoice_ids = {event_data["invoice_id"], event_data.get("previous_invoice_id")}
        customer_ids = set(
            InvoiceORM.objects
            .filter(id__in=[UUID(value) for value in invoice_ids if value])
            .values_list("customer_id", flat=True)
        )
        for customer_id in customer_ids:
            self._refresh_receivable(customer_id)

    def _refresh_receivable(self, customer_id: UUID) -> None:
        """Rebuild a customer's receivable from the invoice table."""
        totals = (
            InvoiceORM.objects
            .filter(customer_id=customer_id)
            .exclude(status__in=_CLOSED)
            .aggregate(
                invoiced=Sum("total_amount"),
                paid=Sum("amount_paid"),
                open_count=Count("id", filter=~Q(status=InvoiceStatus.PAID.value)),
            )
        )
        invoiced = to_money(totals["invoiced"]) if totals["invoiced"] is not None else ZERO
        paid = to_money(totals["paid"]) if totals["paid"] is not None else ZERO
        CustomerReceivable.objects.update_or_create(
            customer_id=customer_id,
            defaults={
                "invoiced_total": invoiced,
                "paid_total": paid,
                "outstanding": invoiced - paid,
                "open_invoices": totals["open_count"] or 0,
                "last_activity_at": timezone.now(),
            }
        )
