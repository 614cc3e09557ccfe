from __future__ import annotations

from uuid import uuid4

from django.db import models

from fulfillment.domain.invoice import InvoiceStatus
from fulfillment.domain.order import OrderPaymentStatus, OrderStatus
from fulfillment.domain.payment import PaymentMethod


def enum_choices(enum_cls) -> tuple:
    return tuple((member.value, member.value.replace("_", " ").title()) for member in enum_cls)


MONEY = dict(max_digits=12, decimal_places=2)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CustomerORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True, null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        db_table = "fulfillment_customer"

    def __str__(self):
        return self.name


class ProductORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    unit_price = models.DecimalField(**MONEY)
    stock_quantity = models.PositiveIntegerField(default=0)
    reorder_level = models.PositiveIntegerField(default=0)
    reorder_quantity = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)

    class Meta:
        db_table = "fulfillment_product"

    def __str__(self):
        return f"{self.sku} {self.name}"


class OrderORM(TimeStampedModel):
    STATUS_CHOICES = enum_choices(OrderStatus)
    PAYMENT_STATUS_CHOICES = enum_choices(OrderPaymentStatus)

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True)
    customer = models.ForeignKey(
        CustomerORM,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    order_date = models.DateTimeField()
    delivery_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES)
    shipping_address = models.CharField(max_length=255, blank=True, default="")
    shipping_city = models.CharField(max_length=100, blank=True, default="")
    shipping_state = models.CharField(max_length=100, blank=True, default="")
    shipping_country = models.CharField(max_length=100, blank=True, default="")
    shipping_postal_code = models.CharField(max_length=20, blank=True, default="")
    shipping_method = models.CharField(max_length=50, blank=True, default="")
    payment_method = models.CharField(max_length=50, blank=True, default="")
    subtotal = models.DecimalField(**MONEY)
    tax_amount = models.DecimalField(**MONEY)
    shipping_cost = models.DecimalField(**MONEY)
    discount_amount = models.DecimalField(**MONEY)
    total_amount = models.DecimalField(**MONEY)
    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=150, null=True, blank=True)

    class Meta:
        db_table = "fulfillment_order"
        indexes = [
            models.Index(fields=("customer", "status")),
            models.Index(fields=("payment_status",)),
            models.Index(fields=("order_date",)),
        ]

    def __str__(self):
        return self.order_number


class OrderItemORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        ProductORM,
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    position = models.PositiveIntegerField(default=0)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(**MONEY)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    tax_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    total = models.DecimalField(**MONEY)

    class Meta:
        db_table = "fulfillment_order_item"
        ordering = ("position",)
        indexes = [
            models.Index(fields=("order",)),
        ]


class InvoiceORM(TimeStampedModel):
    STATUS_CHOICES = enum_choices(InvoiceStatus)

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    invoice_number = models.CharField(max_length=32, unique=True)
    order = models.OneToOneField(
        OrderORM,
        on_delete=models.PROTECT,
        related_name="invoice",
        null=True,
        blank=True,
    )
    customer = models.ForeignKey(
        CustomerORM,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    invoice_date = models.DateTimeField()
    due_date = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    subtotal = models.DecimalField(**MONEY)
    tax_amount = models.DecimalField(**MONEY)
    discount_amount = models.DecimalField(**MONEY)
    total_amount = models.DecimalField(**MONEY)
    amount_paid = models.DecimalField(**MONEY)
    amount_due = models.DecimalField(**MONEY)
    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=150, null=True, blank=True)

    class Meta:
        db_table = "fulfillment_invoice"
        indexes = [
            models.Index(fields=("customer", "status")),
            models.Index(fields=("status", "due_date")),
        ]

    def __str__(self):
        return self.invoice_number


class PaymentORM(TimeStampedModel):
    METHOD_CHOICES = enum_choices(PaymentMethod)

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    invoice = models.ForeignKey(
        InvoiceORM,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(**MONEY)
    payment_method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    payment_date = models.DateTimeField()
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=150, null=True, blank=True)

    class Meta:
        db_table = "fulfillment_payment"
        indexes = [
            models.Index(fields=("invoice",)),
            models.Index(fields=("payment_date",)),
        ]
