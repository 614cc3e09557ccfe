"""
Infrastructure repositories for domain entities.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.db.models import F, Sum

from fulfillment.domain.invoice import Invoice, InvoiceStatus, SETTLED_STATUSES
from fulfillment.domain.money import ZERO, to_money
from fulfillment.domain.order import Order, OrderItem, OrderPaymentStatus, OrderStatus
from fulfillment.domain.payment import Payment, PaymentMethod
from fulfillment.infra.models import (
    CustomerORM,
    InvoiceORM,
    OrderItemORM,
    OrderORM,
    PaymentORM,
    ProductORM,
)


class CustomerRepository:
    """Read-only customer directory."""

    def get_by_id(self, customer_id: UUID) -> CustomerORM | None:
        return CustomerORM.objects.filter(id=customer_id).first()

    def exists(self, customer_id: UUID) -> bool:
        return CustomerORM.objects.filter(id=customer_id).exists()

    def create(self, name: str, email: str | None = None) -> UUID:
        """Create new customer."""
        new_customer = CustomerORM.objects.create(
            name=name,
            email=email,
        )
        return new_customer.id


class ProductRepository:
    """Catalog lookups plus the atomic stock primitives."""

    def get_by_id(self, product_id: UUID) -> ProductORM | None:
        return ProductORM.objects.filter(id=product_id).first()

    def exists_by_sku(self, sku: str) -> bool:
        return ProductORM.objects.filter(sku=sku).exists()

    def create(
        self,
        sku: str,
        name: str,
        unit_price: Decimal,
        stock_quantity: int = 0,
        reorder_level: int = 0,
        reorder_quantity: int = 0,
    ) -> UUID:
        product = ProductORM.objects.create(
            sku=sku,
            name=name,
            unit_price=to_money(unit_price),
            stock_quantity=stock_quantity,
            reorder_level=reorder_level,
            reorder_quantity=reorder_quantity,
        )
        return product.id

    def stock_of(self, product_id: UUID) -> int | None:
        return (
            ProductORM.objects
            .filter(id=product_id)
            .values_list("stock_quantity", flat=True)
            .first()
        )

    def decrement_stock(self, product_id: UUID, quantity: int) -> bool:
        """Compare-and-decrement in one UPDATE. False when stock is short."""
        updated = (
            ProductORM.objects
            .filter(id=product_id, stock_quantity__gte=quantity)
            .update(stock_quantity=F("stock_quantity") - quantity)
        )
        return updated == 1

    def increment_stock(self, product_id: UUID, quantity: int) -> bool:
        updated = (
            ProductORM.objects
            .filter(id=product_id)
            .update(stock_quantity=F("stock_quantity") + quantity)
        )
        return updated == 1

    def low_stock(self) -> list[ProductORM]:
        """Products at or below their reorder level."""
        return list(
            ProductORM.objects
            .filter(active=True, stock_quantity__lte=F("reorder_level"))
            .order_by("stock_quantity", "sku")
        )


class OrderRepository:
    """Repository for Order aggregate."""

    def get_by_id(self, order_id: UUID, for_update: bool = False) -> Order | None:
        """Get order by ID with items; lock the row when for_update is set."""
        queryset = OrderORM.objects.prefetch_related("items")
        if for_update:
            queryset = queryset.select_for_update()
        order_orm = queryset.filter(id=order_id).first()
        return self._to_domain(order_orm) if order_orm else None

    def get_by_number(self, order_number: str) -> Order | None:
        order_orm = (
            OrderORM.objects
            .prefetch_related("items")
            .filter(order_number=order_number)
            .first()
        )
        return self._to_domain(order_orm) if order_orm else None

    def exists(self, order_id: UUID) -> bool:
        return OrderORM.objects.filter(id=order_id).exists()

    def exists_by_order_number(self, order_number: str) -> bool:
        return OrderORM.objects.filter(order_number=order_number).exists()

    def list(
        self,
        customer_id: UUID | None = None,
        status: OrderStatus | None = None,
        payment_status: OrderPaymentStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        """Filtered listing, newest first."""
        queryset = OrderORM.objects.prefetch_related("items")
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        if status is not None:
            queryset = queryset.filter(status=OrderStatus(status).value)
        if payment_status is not None:
            queryset = queryset.filter(payment_status=OrderPaymentStatus(payment_status).value)
        orders_orm = queryset.order_by("-order_date")[offset:offset + limit]
        return [self._to_domain(order_orm) for order_orm in orders_orm]

    def all_ids(self) -> list[UUID]:
        return list(OrderORM.objects.order_by("order_date").values_list("id", flat=True))

    def set_payment_status(self, order_id: UUID, payment_status: OrderPaymentStatus) -> None:
        """Mirror an invoice outcome onto the order; cancelled orders keep CANCELLED."""
        (
            OrderORM.objects
            .filter(id=order_id)
            .exclude(status=OrderStatus.CANCELLED.value)
            .update(payment_status=payment_status.value)
        )

    @transaction.atomic
    def save(self, order: Order) -> UUID:
        """Save order aggregate, rewriting its items."""
        order_orm, created = OrderORM.objects.update_or_create(
            id=order.id,
            defaults={
                "order_number": order.order_number,
                "customer_id": order.customer_id,
                "order_date": order.order_date,
                "delivery_date": order.delivery_date,
                "status": order.status.value,
                "payment_status": order.payment_status.value,
                "shipping_address": order.shipping_address,
                "shipping_city": order.shipping_city,
                "shipping_state": order.shipping_state,
                "shipping_country": order.shipping_country,
                "shipping_postal_code": order.shipping_postal_code,
                "shipping_method": order.shipping_method,
                "payment_method": order.payment_method,
                "subtotal": order.subtotal,
                "tax_amount": order.tax_amount,
                "shipping_cost": order.shipping_cost,
                "discount_amount": order.discount_amount,
                "total_amount": order.total_amount,
                "notes": order.notes,
                "created_by": order.created_by,
            }
        )

        # Delete existing items and recreate
        if not created:
            OrderItemORM.objects.filter(order=order_orm).delete()

        OrderItemORM.objects.bulk_create([
            OrderItemORM(
                id=item.id,
                order=order_orm,
                product_id=item.product_id,
                position=position,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_percent=item.discount_percent,
                tax_percent=item.tax_percent,
                total=item.total,
            )
            for position, item in enumerate(order.items)
        ])

        return order_orm.id

    def _to_domain(self, order_orm: OrderORM) -> Order:
        """Convert ORM model to domain entity."""
        # Build items list directly (bypass add_item() so terminal orders still load)
        items = [
            OrderItem(
                id=item_orm.id,
                product_id=item_orm.product_id,
                quantity=item_orm.quantity,
                unit_price=item_orm.unit_price,
                discount_percent=item_orm.discount_percent,
                tax_percent=item_orm.tax_percent,
            )
            for item_orm in order_orm.items.all()
        ]

        return Order(
            id=order_orm.id,
            order_number=order_orm.order_number,
            customer_id=order_orm.customer_id,
            items=items,
            status=OrderStatus(order_orm.status),
            payment_status=OrderPaymentStatus(order_orm.payment_status),
            tax_amount=order_orm.tax_amount,
            shipping_cost=order_orm.shipping_cost,
            discount_amount=order_orm.discount_amount,
            order_date=order_orm.order_date,
            delivery_date=order_orm.delivery_date,
            shipping_address=order_orm.shipping_address,
            shipping_city=order_orm.shipping_city,
            shipping_state=order_orm.shipping_state,
            shipping_country=order_orm.shipping_country,
            shipping_postal_code=order_orm.shipping_postal_code,
            shipping_method=order_orm.shipping_method,
            payment_method=order_orm.payment_method,
            notes=order_orm.notes,
            created_by=order_orm.created_by,
        )


class InvoiceRepository:
    """Repository for Invoice aggregate."""

    def get_by_id(self, invoice_id: UUID, for_update: bool = False) -> Invoice | None:
        queryset = InvoiceORM.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        invoice_orm = queryset.filter(id=invoice_id).first()
        return self._to_domain(invoice_orm) if invoice_orm else None

    def get_by_order_id(self, order_id: UUID) -> Invoice | None:
        invoice_orm = InvoiceORM.objects.filter(order_id=order_id).first()
        return self._to_domain(invoice_orm) if invoice_orm else None

    def exists_for_order(self, order_id: UUID) -> bool:
        return InvoiceORM.objects.filter(order_id=order_id).exists()

    def exists_by_invoice_number(self, invoice_number: str) -> bool:
        return InvoiceORM.objects.filter(invoice_number=invoice_number).exists()

    def list(
        self,
        customer_id: UUID | None = None,
        status: InvoiceStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Invoice]:
        queryset = InvoiceORM.objects.all()
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        if status is not None:
            queryset = queryset.filter(status=InvoiceStatus(status).value)
        return [
            self._to_domain(invoice_orm)
            for invoice_orm in queryset.order_by("-invoice_date")[offset:offset + limit]
        ]

    def all_ids(self) -> list[UUID]:
        return list(InvoiceORM.objects.order_by("invoice_date").values_list("id", flat=True))

    def find_overdue(self, now: datetime, for_update: bool = False) -> list[Invoice]:
        """Invoices past their due date that are not paid, cancelled or refunded."""
        queryset = (
            InvoiceORM.objects
            .filter(due_date__lt=now)
            .exclude(status__in=[status.value for status in SETTLED_STATUSES])
            .order_by("due_date")
        )
        if for_update:
            queryset = queryset.select_for_update()
        return [self._to_domain(invoice_orm) for invoice_orm in queryset]

    @transaction.atomic
    def save(self, invoice: Invoice) -> UUID:
        """Save invoice aggregate; amount_due is always rewritten from the totals."""
        invoice_orm, _ = InvoiceORM.objects.update_or_create(
            id=invoice.id,
            defaults={
                "invoice_number": invoice.invoice_number,
                "order_id": invoice.order_id,
                "customer_id": invoice.customer_id,
                "invoice_date": invoice.invoice_date,
                "due_date": invoice.due_date,
                "sent_at": invoice.sent_at,
                "status": invoice.status.value,
                "subtotal": invoice.subtotal,
                "tax_amount": invoice.tax_amount,
                "discount_amount": invoice.discount_amount,
                "total_amount": invoice.total_amount,
                "amount_paid": invoice.amount_paid,
                "amount_due": invoice.amount_due,
                "notes": invoice.notes,
                "created_by": invoice.created_by,
            }
        )
        return invoice_orm.id

    def _to_domain(self, invoice_orm: InvoiceORM) -> Invoice:
        return Invoice(
            id=invoice_orm.id,
            invoice_number=invoice_orm.invoice_number,
            customer_id=invoice_orm.customer_id,
            order_id=invoice_orm.order_id,
            status=InvoiceStatus(invoice_orm.status),
            subtotal=invoice_orm.subtotal,
            tax_amount=invoice_orm.tax_amount,
            discount_amount=invoice_orm.discount_amount,
            total_amount=invoice_orm.total_amount,
            amount_paid=invoice_orm.amount_paid,
            invoice_date=invoice_orm.invoice_date,
            due_date=invoice_orm.due_date,
            sent_at=invoice_orm.sent_at,
            notes=invoice_orm.notes,
            created_by=invoice_orm.created_by,
        )


class PaymentRepository:
    """Repository for payments."""

    def get_by_id(self, payment_id: UUID, for_update: bool = False) -> Payment | None:
        queryset = PaymentORM.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        payment_orm = queryset.filter(id=payment_id).first()
        return self._to_domain(payment_orm) if payment_orm else None

    def for_invoice(self, invoice_id: UUID) -> list[Payment]:
        return [
            self._to_domain(payment_orm)
            for payment_orm in PaymentORM.objects.filter(invoice_id=invoice_id).order_by("payment_date")
        ]

    def total_for_invoice(self, invoice_id: UUID) -> Decimal:
        total = PaymentORM.objects.filter(invoice_id=invoice_id).aggregate(total=Sum("amount"))["total"]
        return to_money(total) if total is not None else ZERO

    def save(self, payment: Payment) -> UUID:
        payment_orm, _ = PaymentORM.objects.update_or_create(
            id=payment.id,
            defaults={
                "invoice_id": payment.invoice_id,
                "amount": payment.amount,
                "payment_method": payment.payment_method.value,
                "payment_date": payment.payment_date,
                "reference_number": payment.reference_number,
                "notes": payment.notes,
                "created_by": payment.created_by,
            }
        )
        return payment_orm.id

    def delete(self, payment_id: UUID) -> None:
        PaymentORM.objects.filter(id=payment_id).delete()

    def _to_domain(self, payment_orm: PaymentORM) -> Payment:
        return Payment(
            id=payment_orm.id,
            invoice_id=payment_orm.invoice_id,
            amount=payment_orm.amount,
            payment_method=PaymentMethod(payment_orm.payment_method),
            payment_date=payment_orm.payment_date,
            reference_number=payment_orm.reference_number,
            notes=payment_orm.notes,
            created_by=payment_orm.created_by,
        )
