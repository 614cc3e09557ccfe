"""
Expose ORM models for Django's auto-discovery while keeping real definitions
under the infrastructure module.
"""

from fulfillment.infra.models import (
    CustomerORM,
    InvoiceORM,
    OrderItemORM,
    OrderORM,
    PaymentORM,
    ProductORM,
)
from fulfillment.infra.outbox import OutboxEvent
from fulfillment.infra.read_models import CustomerReceivable, OrderSummary

__all__ = [
    "CustomerORM",
    "CustomerReceivable",
    "InvoiceORM",
    "OrderItemORM",
    "OrderORM",
    "OrderSummary",
    "OutboxEvent",
    "PaymentORM",
    "ProductORM",
]
