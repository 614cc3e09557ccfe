"""
Read models (projections) for CQRS.
"""
from __future__ import annotations

from uuid import uuid4

from django.db import models

from fulfillment.infra.models import MONEY, TimeStampedModel


class OrderSummary(TimeStampedModel):
    """Read model for order summary (denormalized for fast reads)."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order_number = models.CharField(max_length=32)
    customer_id = models.UUIDField()
    customer_name = models.CharField(max_length=255)
    status = models.CharField(max_length=16)
    total_amount = models.DecimalField(**MONEY)
    items_count = models.IntegerField(default=0)
    created_at_read = models.DateTimeField()  # Denormalized from write model

    class Meta:
        db_table = "fulfillment_order_summary"
        indexes = [
            models.Index(fields=("customer_id", "status")),
            models.Index(fields=("customer_id", "-created_at_read")),
            models.Index(fields=("status",)),
        ]


class CustomerReceivable(TimeStampedModel):
    """Read model for a customer's open balance across invoices."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    customer_id = models.UUIDField(unique=True)
    invoiced_total = models.DecimalField(**MONEY)
    paid_total = models.DecimalField(**MONEY)
    outstanding = models.DecimalField(**MONEY)
    open_invoices = models.IntegerField(default=0)
    last_activity_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "fulfillment_customer_receivable"
