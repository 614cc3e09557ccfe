from django.contrib import admin

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


@admin.register(CustomerORM)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "active", "created_at")
    list_filter = ("active",)
    search_fields = ("name", "email")


@admin.register(ProductORM)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "unit_price", "stock_quantity", "reorder_level", "active")
    list_filter = ("active",)
    search_fields = ("sku", "name")
    # Stock moves only through orders
    readonly_fields = ("stock_quantity",)


class OrderItemInline(admin.TabularInline):
    model = OrderItemORM
    extra = 0
    readonly_fields = ("product", "position", "quantity", "unit_price", "discount_percent", "tax_percent", "total")
    can_delete = False


@admin.register(OrderORM)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer", "status", "payment_status", "total_amount", "order_date")
    list_filter = ("status", "payment_status", "order_date")
    search_fields = ("order_number", "customer__name")
    inlines = (OrderItemInline,)
    readonly_fields = ("order_number", "subtotal", "total_amount", "status", "payment_status", "created_by")


@admin.register(InvoiceORM)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer", "order", "status", "total_amount", "amount_paid", "amount_due", "due_date")
    list_filter = ("status", "invoice_date")
    search_fields = ("invoice_number", "customer__name", "order__order_number")
    readonly_fields = ("invoice_number", "status", "amount_paid", "amount_due", "sent_at", "created_by")


@admin.register(PaymentORM)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice", "amount", "payment_method", "payment_date", "created_at")
    list_filter = ("payment_method", "payment_date")
    search_fields = ("invoice__invoice_number", "reference_number")
    readonly_fields = ("invoice", "amount", "created_by")


@admin.register(OrderSummary)
class OrderSummaryAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer_name", "status", "total_amount", "items_count", "created_at_read")
    list_filter = ("status",)
    readonly_fields = ("id", "order_number", "customer_id", "customer_name", "status", "total_amount", "items_count", "created_at_read")


@admin.register(CustomerReceivable)
class CustomerReceivableAdmin(admin.ModelAdmin):
    list_display = ("customer_id", "invoiced_total", "paid_total", "outstanding", "open_invoices", "last_activity_at")
    readonly_fields = ("id", "customer_id", "invoiced_total", "paid_total", "outstanding", "open_invoices", "last_activity_at")


@admin.register(OutboxEvent)
class OutboxEventAdmin(admin.ModelAdmin):
    list_display = ("id", "aggregate_id", "aggregate_type", "event_type", "processed", "retry_count", "created_at")
    list_filter = ("processed", "aggregate_type", "event_type", "created_at")
    readonly_fields = ("id", "aggregate_id", "aggregate_type", "event_type", "event_data", "processed", "processed_at", "retry_count")
