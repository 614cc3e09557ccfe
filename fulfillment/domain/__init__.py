from fulfillment.domain.invoice import Invoice, InvoiceStatus
from fulfillment.domain.order import Order, OrderItem, OrderPaymentStatus, OrderStatus
from fulfillment.domain.payment import Payment, PaymentMethod

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "Order",
    "OrderItem",
    "OrderPaymentStatus",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
]
