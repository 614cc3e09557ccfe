from fulfillment.services.inventory import InventoryLedger
from fulfillment.services.invoices import InvoiceService
from fulfillment.services.orders import OrderService
from fulfillment.services.payments import PaymentService
from fulfillment.services.reconciliation import Discrepancy, ReconciliationService

__all__ = [
    "Discrepancy",
    "InventoryLedger",
    "InvoiceService",
    "OrderService",
    "PaymentService",
    "ReconciliationService",
]
