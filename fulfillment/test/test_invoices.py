"""
Tests for the invoice engine.
"""
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.test import override_settings
from django.utils import timezone

from fulfillment.domain.errors import Conflict, InvalidState, NotFound, ValidationError
from fulfillment.domain.invoice import InvoiceStatus
from fulfillment.domain.order import OrderPaymentStatus
from fulfillment.infra.models import InvoiceORM
from fulfillment.test.base import FulfillmentTestCase


class CreateInvoiceTest(FulfillmentTestCase):

    def test_invoice_from_order_copies_amounts(self):
        order = self.create_order((self.widget_id, 3), shipping_cost=Decimal("4.00"))
        invoice = self.invoice_service.create_invoice(self.customer_id, order_id=order.id, actor="billing")

        self.assertRegex(invoice.invoice_number, r"^INV-\d{8}-\d{4}$")
        self.assertEqual(invoice.subtotal, Decimal("30.00"))
        self.assertEqual(invoice.total_amount, Decimal("34.00"))
        self.assertEqual(invoice.amount_due, Decimal("34.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PENDING)
        self.assertEqual(self.invoice_service.get_invoice_for_order(order.id).id, invoice.id)

    def test_second_invoice_for_order_conflicts(self):
        order = self.create_order((self.widget_id, 1))
        self.invoice_service.create_invoice(self.customer_id, order_id=order.id)
        with self.assertRaises(Conflict):
            self.invoice_service.create_invoice(self.customer_id, order_id=order.id)
        self.assertEqual(InvoiceORM.objects.filter(order_id=order.id).count(), 1)

    def test_standalone_total_defaults_to_parts(self):
        invoice = self.invoice_service.create_invoice(
            self.customer_id,
            amounts={
                "subtotal": Decimal("200.00"),
                "tax_amount": Decimal("40.00"),
                "discount_amount": Decimal("15.00"),
            },
        )
        self.assertIsNone(invoice.order_id)
        self.assertEqual(invoice.total_amount, Decimal("225.00"))

    @override_settings(FULFILLMENT={"INVOICE_DUE_DAYS": 14})
    def test_due_date_defaults_from_settings(self):
        invoice = self.create_standalone_invoice()
        self.assertEqual(invoice.due_date - invoice.invoice_date, timedelta(days=14))

    def test_rejects_foreign_or_cancelled_orders(self):
        other_customer = self.customer_repo.create(name="Globex")
        order = self.create_order((self.widget_id, 1))
        with self.assertRaises(ValidationError):
            self.invoice_service.create_invoice(other_customer, order_id=order.id)

        self.order_service.cancel_order(order.id)
        with self.assertRaises(InvalidState):
            self.invoice_service.create_invoice(self.customer_id, order_id=order.id)

    def test_missing_references(self):
        with self.assertRaises(NotFound):
            self.invoice_service.create_invoice(uuid4(), amounts={"subtotal": Decimal("1.00")})
        with self.assertRaises(NotFound):
            self.invoice_service.create_invoice(self.customer_id, order_id=uuid4())


class InvoicePaymentTest(FulfillmentTestCase):

    def test_payments_accumulate_to_paid(self):
        """Total 100.00, pay 40 then 60, then the invoice is frozen."""
        invoice = self.create_standalone_invoice("100.00")

        invoice = self.invoice_service.record_payment(invoice.id, Decimal("40.00"))
        self.assertEqual(invoice.amount_due, Decimal("60.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PARTIALLY_PAID)

        invoice = self.invoice_service.record_payment(invoice.id, Decimal("60.00"))
        self.assertEqual(invoice.amount_due, Decimal("0.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(InvoiceORM.objects.get(id=invoice.id).amount_due, Decimal("0.00"))

        with self.assertRaises(InvalidState):
            self.invoice_service.update_invoice(invoice.id, {"notes": "late edit"})

    def test_payment_status_mirrors_onto_order(self):
        order = self.create_order((self.widget_id, 5))
        invoice = self.invoice_service.create_invoice(self.customer_id, order_id=order.id)

        self.invoice_service.record_payment(invoice.id, Decimal("10.00"))
        self.assertEqual(self.order_service.get_order(order.id).payment_status, OrderPaymentStatus.PARTIALLY_PAID)

        self.invoice_service.record_payment(invoice.id, Decimal("40.00"))
        self.assertEqual(self.order_service.get_order(order.id).payment_status, OrderPaymentStatus.PAID)

    def test_cancelled_order_keeps_cancelled_payment_status(self):
        order = self.create_order((self.widget_id, 1))
        invoice = self.invoice_service.create_invoice(self.customer_id, order_id=order.id)
        self.order_service.cancel_order(order.id)
        self.invoice_service.record_payment(invoice.id, Decimal("5.00"))
        self.assertEqual(self.order_service.get_order(order.id).payment_status, OrderPaymentStatus.CANCELLED)

    def test_closed_invoice_rejects_payment(self):
        invoice = self.create_standalone_invoice()
        self.invoice_service.cancel_invoice(invoice.id)
        with self.assertRaises(InvalidState):
            self.invoice_service.record_payment(invoice.id, Decimal("1.00"))


class UpdateInvoiceTest(FulfillmentTestCase):

    def test_standalone_amounts_recompute_total(self):
        invoice = self.create_standalone_invoice("100.00")
        self.invoice_service.record_payment(invoice.id, Decimal("50.00"))
        invoice = self.invoice_service.update_invoice(
            invoice.id,
            {"tax_amount": Decimal("20.00"), "notes": "adjusted"},
        )
        self.assertEqual(invoice.total_amount, Decimal("120.00"))
        self.assertEqual(invoice.amount_due, Decimal("70.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PARTIALLY_PAID)
        self.assertEqual(invoice.notes, "adjusted")

    def test_lowering_total_can_settle_invoice(self):
        invoice = self.create_standalone_invoice("100.00")
        self.invoice_service.record_payment(invoice.id, Decimal("50.00"))
        invoice = self.invoice_service.update_invoice(invoice.id, {"subtotal": Decimal("50.00")})
        self.assertEqual(invoice.status, InvoiceStatus.PAID)

    def test_order_linked_invoice_follows_order(self):
        order = self.create_order((self.widget_id, 2))
        invoice = self.invoice_service.create_invoice(self.customer_id, order_id=order.id)
        self.order_service.update_order(order.id, {"shipping_cost": Decimal("6.00")})

        invoice = self.invoice_service.update_invoice(invoice.id, {"subtotal": Decimal("1.00")})
        self.assertEqual(invoice.subtotal, Decimal("20.00"))
        self.assertEqual(invoice.total_amount, Decimal("26.00"))


class InvoiceAdminTransitionTest(FulfillmentTestCase):

    def test_cancel_twice_is_noop(self):
        invoice = self.create_standalone_invoice()
        self.assertEqual(self.invoice_service.cancel_invoice(invoice.id).status, InvoiceStatus.CANCELLED)
        self.assertEqual(self.invoice_service.cancel_invoice(invoice.id).status, InvoiceStatus.CANCELLED)

    def test_cannot_cancel_paid(self):
        invoice = self.create_standalone_invoice("10.00")
        self.invoice_service.record_payment(invoice.id, Decimal("10.00"))
        with self.assertRaises(InvalidState):
            self.invoice_service.cancel_invoice(invoice.id)

    def test_mark_sent(self):
        invoice = self.create_standalone_invoice()
        invoice = self.invoice_service.mark_sent(invoice.id, actor="billing")
        self.assertEqual(invoice.status, InvoiceStatus.SENT)
        self.assertIsNotNone(invoice.sent_at)
        with self.assertRaises(InvalidState):
            self.invoice_service.mark_sent(invoice.id)

    def test_mark_overdue_sweep(self):
        past_due = self.create_standalone_invoice()
        self.invoice_service.update_invoice(past_due.id, {"due_date": timezone.now() - timedelta(days=2)})
        paid = self.create_standalone_invoice("10.00")
        self.invoice_service.update_invoice(paid.id, {"due_date": timezone.now() - timedelta(days=2)})
        self.invoice_service.record_payment(paid.id, Decimal("10.00"))
        self.create_standalone_invoice()

        self.assertEqual([invoice.id for invoice in self.invoice_service.overdue_invoices()], [past_due.id])
        self.assertEqual(self.invoice_service.mark_overdue(), 1)
        self.assertEqual(self.invoice_service.get_invoice(past_due.id).status, InvoiceStatus.OVERDUE)
        self.assertEqual(self.invoice_service.mark_overdue(), 0)

    def test_overdue_invoice_still_takes_payments(self):
        invoice = self.create_standalone_invoice()
        self.invoice_service.update_invoice(invoice.id, {"due_date": timezone.now() - timedelta(days=1)})
        self.invoice_service.mark_overdue()
        invoice = self.invoice_service.record_payment(invoice.id, Decimal("100.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PAID)

    def test_partial_payment_keeps_overdue(self):
        invoice = self.create_standalone_invoice()
        self.invoice_service.update_invoice(invoice.id, {"due_date": timezone.now() - timedelta(days=1)})
        self.invoice_service.record_payment(invoice.id, Decimal("40.00"))
        self.assertEqual(self.invoice_service.mark_overdue(), 1)

        invoice = self.invoice_service.record_payment(invoice.id, Decimal("10.00"))
        self.assertEqual(invoice.status, InvoiceStatus.OVERDUE)
        self.assertEqual(invoice.amount_due, Decimal("50.00"))

        invoice = self.invoice_service.update_invoice(invoice.id, {"notes": "reminder sent"})
        self.assertEqual(invoice.status, InvoiceStatus.OVERDUE)
        self.assertEqual(invoice.notes, "reminder sent")

    def test_refund_updates_order(self):
        order = self.create_order((self.widget_id, 1))
        invoice = self.invoice_service.create_invoice(self.customer_id, order_id=order.id)
        self.invoice_service.record_payment(invoice.id, Decimal("10.00"))

        invoice = self.invoice_service.refund_invoice(invoice.id, actor="billing")
        self.assertEqual(invoice.status, InvoiceStatus.REFUNDED)
        self.assertEqual(self.order_service.get_order(order.id).payment_status, OrderPaymentStatus.REFUNDED)
        with self.assertRaises(InvalidState):
            self.invoice_service.cancel_invoice(invoice.id)

    def test_list_invoices(self):
        invoice = self.create_standalone_invoice()
        self.invoice_service.cancel_invoice(invoice.id)
        self.create_standalone_invoice()
        self.assertEqual(len(self.invoice_service.list_invoices(customer_id=self.customer_id)), 2)
        self.assertEqual(len(self.invoice_service.list_invoices(status=InvoiceStatus.CANCELLED)), 1)
        with self.assertRaises(NotFound):
            self.invoice_service.get_invoice(uuid4())
