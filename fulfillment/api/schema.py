"""
GraphQL schema definition using Ariadne.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from ariadne import (
    EnumType,
    MutationType,
    ObjectType,
    QueryType,
    ScalarType,
    load_schema_from_path,
    make_executable_schema,
)

from fulfillment.domain.invoice import InvoiceStatus
from fulfillment.domain.order import OrderPaymentStatus, OrderStatus
from fulfillment.domain.payment import PaymentMethod
from fulfillment.infra.repositories import InvoiceRepository
from fulfillment.services import (
    InventoryLedger,
    InvoiceService,
    OrderService,
    PaymentService,
    ReconciliationService,
)
from fulfillment.services.invoices import AMOUNT_FIELDS

# Load schema from .graphql files
SCHEMAS_DIR = Path(__file__).parent / "schemas"
type_defs = "\n".join([
    load_schema_from_path(SCHEMAS_DIR / "common.graphql"),
    load_schema_from_path(SCHEMAS_DIR / "query.graphql"),
    load_schema_from_path(SCHEMAS_DIR / "mutation.graphql"),
])

query = QueryType()
mutation = MutationType()
order = ObjectType("Order")
invoice = ObjectType("Invoice")
reconciliation_report = ObjectType("ReconciliationReport")


def _actor(info):
    return info.context.get("actor")


# Queries

@query.field("order")
def resolve_order(_, info, id):
    return OrderService().get_order(id)


@query.field("orderByNumber")
def resolve_order_by_number(_, info, order_number):
    return OrderService().get_order_by_number(order_number)


@query.field("orders")
def resolve_orders(_, info, customer_id=None, status=None, payment_status=None, limit=50, offset=0):
    return OrderService().list_orders(
        customer_id=customer_id,
        status=status,
        payment_status=payment_status,
        limit=limit,
        offset=offset,
    )


@query.field("invoice")
def resolve_invoice(_, info, id):
    return InvoiceService().get_invoice(id)


@query.field("invoiceForOrder")
def resolve_invoice_for_order(_, info, order_id):
    return InvoiceService().get_invoice_for_order(order_id)


@query.field("invoices")
def resolve_invoices(_, info, customer_id=None, status=None, limit=50, offset=0):
    return InvoiceService().list_invoices(customer_id=customer_id, status=status, limit=limit, offset=offset)


@query.field("payment")
def resolve_payment(_, info, id):
    return PaymentService().get_payment(id)


@query.field("paymentsForInvoice")
def resolve_payments_for_invoice(_, info, invoice_id):
    return PaymentService().payments_for_invoice(invoice_id)


@query.field("stockLevel")
def resolve_stock_level(_, info, product_id):
    return InventoryLedger().stock_level(product_id)


@query.field("lowStockProducts")
def resolve_low_stock_products(_, info):
    return InventoryLedger().low_stock_products()


@query.field("overdueInvoices")
def resolve_overdue_invoices(_, info):
    return InvoiceService().overdue_invoices()


@query.field("reconciliation")
def resolve_reconciliation(_, info):
    return ReconciliationService().audit()


@reconciliation_report.field("ok")
def resolve_reconciliation_ok(discrepancies, info):
    return not discrepancies


@reconciliation_report.field("discrepancies")
def resolve_reconciliation_discrepancies(discrepancies, info):
    return discrepancies


@order.field("invoice")
def resolve_order_invoice(order_obj, info):
    return InvoiceRepository().get_by_order_id(order_obj.id)


@invoice.field("payments")
def resolve_invoice_payments(invoice_obj, info):
    return PaymentService().payments_for_invoice(invoice_obj.id)


# Mutations

@mutation.field("createOrder")
def resolve_create_order(_, info, input: dict):
    """Resolve create order mutation."""
    details = dict(input)
    customer_id = details.pop("customer_id")
    items = details.pop("items")
    return OrderService().create_order(customer_id, items, actor=_actor(info), **details)


@mutation.field("updateOrder")
def resolve_update_order(_, info, id, input: dict):
    return OrderService().update_order(id, dict(input), actor=_actor(info))


@mutation.field("changeOrderStatus")
def resolve_change_order_status(_, info, id, status):
    return OrderService().change_status(id, status, actor=_actor(info))


@mutation.field("cancelOrder")
def resolve_cancel_order(_, info, id):
    return OrderService().cancel_order(id, actor=_actor(info))


@mutation.field("createInvoice")
def resolve_create_invoice(_, info, input: dict):
    """Resolve create invoice mutation; amounts only apply to standalone invoices."""
    data = dict(input)
    amounts = {field: data.pop(field) for field in AMOUNT_FIELDS if data.get(field) is not None}
    return InvoiceService().create_invoice(
        customer_id=data["customer_id"],
        order_id=data.get("order_id"),
        amounts=amounts or None,
        invoice_date=data.get("invoice_date"),
        due_date=data.get("due_date"),
        notes=data.get("notes") or "",
        actor=_actor(info),
    )


@mutation.field("updateInvoice")
def resolve_update_invoice(_, info, id, input: dict):
    return InvoiceService().update_invoice(id, dict(input), actor=_actor(info))


@mutation.field("cancelInvoice")
def resolve_cancel_invoice(_, info, id):
    return InvoiceService().cancel_invoice(id, actor=_actor(info))


@mutation.field("markInvoiceSent")
def resolve_mark_invoice_sent(_, info, id):
    return InvoiceService().mark_sent(id, actor=_actor(info))


@mutation.field("markOverdueInvoices")
def resolve_mark_overdue_invoices(_, info):
    return {"count": InvoiceService().mark_overdue()}


@mutation.field("refundInvoice")
def resolve_refund_invoice(_, info, id):
    return InvoiceService().refund_invoice(id, actor=_actor(info))


@mutation.field("createPayment")
def resolve_create_payment(_, info, input: dict):
    return PaymentService().create_payment(actor=_actor(info), **input)


@mutation.field("updatePayment")
def resolve_update_payment(_, info, id, input: dict):
    return PaymentService().update_payment(id, dict(input), actor=_actor(info))


@mutation.field("deletePayment")
def resolve_delete_payment(_, info, id):
    """Delete a payment and return the invoice it was reversed on."""
    service = PaymentService()
    payment = service.get_payment(id)
    service.delete_payment(id, actor=_actor(info))
    return {"payment_id": id, "invoice": service.invoice_service.get_invoice(payment.invoice_id)}


# Define custom scalars
decimal_scalar = ScalarType("Decimal")
uuid_scalar = ScalarType("UUID")
datetime_scalar = ScalarType("DateTime")


@decimal_scalar.serializer
def serialize_decimal(value):
    """Serialize Decimal to string."""
    return str(value)


@decimal_scalar.value_parser
def parse_decimal_value(value):
    """Parse Decimal from string."""
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value: {value}") from e
    if not parsed.is_finite():
        raise ValueError(f"Invalid decimal value: {value}")
    return parsed


@uuid_scalar.serializer
def serialize_uuid(value):
    return str(value)


@uuid_scalar.value_parser
def parse_uuid_value(value):
    """Parse UUID from string."""
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


@uuid_scalar.literal_parser
def parse_uuid_literal(ast, variables=None):
    """Parse UUID from GraphQL literal."""
    return UUID(str(ast.value))


@datetime_scalar.serializer
def serialize_datetime(value):
    """Serialize DateTime to ISO format string."""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@datetime_scalar.value_parser
def parse_datetime_value(value):
    """Parse DateTime from ISO string."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


order_status = EnumType("OrderStatus", OrderStatus)
order_payment_status = EnumType("OrderPaymentStatus", OrderPaymentStatus)
invoice_status = EnumType("InvoiceStatus", InvoiceStatus)
payment_method = EnumType("PaymentMethod", PaymentMethod)


# Create executable schema
schema = make_executable_schema(
    type_defs,
    query,
    mutation,
    order,
    invoice,
    reconciliation_report,
    datetime_scalar,
    decimal_scalar,
    uuid_scalar,
    order_status,
    order_payment_status,
    invoice_status,
    payment_method,
    convert_names_case=True,
)
