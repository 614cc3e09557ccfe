"""
Domain events written to the transactional outbox.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class EventVersion(str, Enum):
    """Event version for upcasting."""
    V1 = "1.0"


class AggregateType(str, Enum):
    """Outbox stream an event belongs to; the projector dispatches on it."""
    ORDER = "Order"
    INVOICE = "Invoice"
    PAYMENT = "Payment"


@dataclass
class DomainEvent:
    """Base domain event."""
    event_id: UUID
    aggregate_id: UUID
    event_type: str
    # version and occurred_at are set in subclasses to avoid dataclass field ordering issues


# Order events
@dataclass
class OrderCreated(DomainEvent):
    """Order created and its stock reserved."""
    order_number: str
    customer_id: UUID
    total_amount: Decimal
    items_count: int
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class OrderUpdated(DomainEvent):
    """Order fields or items changed."""
    total_amount: Decimal
    items_count: int
    items_replaced: bool = False
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class OrderStatusChanged(DomainEvent):
    """Order moved along its fulfillment path."""
    previous_status: str
    status: str
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class OrderCancelled(DomainEvent):
    """Order cancelled and its stock released."""
    released_quantity: int
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


# Invoice events
@dataclass
class InvoiceCreated(DomainEvent):
    """Invoice issued."""
    invoice_number: str
    customer_id: UUID
    total_amount: Decimal
    order_id: UUID | None = None
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class InvoiceUpdated(DomainEvent):
    """Invoice amounts, balance or status changed."""
    customer_id: UUID
    previous_status: str
    status: str
    total_amount: Decimal
    amount_paid: Decimal
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class InvoiceCancelled(DomainEvent):
    """Invoice cancelled."""
    customer_id: UUID
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


# Payment events
@dataclass
class PaymentRecorded(DomainEvent):
    """Payment received against an invoice."""
    invoice_id: UUID
    amount: Decimal
    payment_method: str
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class PaymentUpdated(DomainEvent):
    """Payment amount, invoice or details changed."""
    invoice_id: UUID
    previous_invoice_id: UUID
    amount: Decimal
    previous_amount: Decimal
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""


@dataclass
class PaymentDeleted(DomainEvent):
    """Payment removed and reversed on its invoice."""
    invoice_id: UUID
    amount: Decimal
    actor: str | None = None
    version: EventVersion = EventVersion.V1
    occurred_at: str = ""
