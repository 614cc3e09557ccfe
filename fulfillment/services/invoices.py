"""
Invoice engine: issues invoices from orders or as standalone charges and keeps
amount due and status derived from the amount paid.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from django.db import transaction
from django.utils import timezone

from fulfillment.conf import get_setting
from fulfillment.domain.errors import Conflict, InvalidState, NotFound, ValidationError
from fulfillment.domain.events import AggregateType, InvoiceCancelled, InvoiceCreated, InvoiceUpdated
from fulfillment.domain.invoice import Invoice, InvoiceStatus
from fulfillment.domain.money import ZERO
from fulfillment.domain.order import OrderPaymentStatus, OrderStatus
from fulfillment.infra.locks import invoice_lock
from fulfillment.infra.outbox import OutboxRepository
from fulfillment.infra.repositories import (
    CustomerRepository,
    InvoiceRepository,
    OrderRepository,
)
from fulfillment.services.numbering import INVOICE_PREFIX, generate_number


logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("subtotal", "tax_amount", "discount_amount", "total_amount")

_ORDER_PAYMENT_STATUS = {
    InvoiceStatus.PAID: OrderPaymentStatus.PAID,
    InvoiceStatus.PARTIALLY_PAID: OrderPaymentStatus.PARTIALLY_PAID,
    InvoiceStatus.REFUNDED: OrderPaymentStatus.REFUNDED,
    InvoiceStatus.PENDING: OrderPaymentStatus.PENDING,
    InvoiceStatus.SENT: OrderPaymentStatus.PENDING,
}


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        invoice_repo: InvoiceRepository | None = None,
        order_repo: OrderRepository | None = None,
        customer_repo: CustomerRepository | None = None,
        outbox_repo: OutboxRepository | None = None,
    ):
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.order_repo = order_repo or OrderRepository()
        self.customer_repo = customer_repo or CustomerRepository()
        self.outbox_repo = outbox_repo or OutboxRepository()

    @transaction.atomic
    def create_invoice(
        self,
        customer_id: UUID,
        order_id: UUID | None = None,
        amounts: dict | None = None,
        invoice_date: datetime | None = None,
        due_date: datetime | None = None,
        notes: str = "",
        actor: str | None = None,
    ) -> Invoice:
        """
        Issue an invoice.

        With ``order_id`` the amounts mirror the order and the order may not be
        invoiced twice. Without it ``amounts`` supplies subtotal, tax_amount,
        discount_amount and optionally total_amount.
        """
        if not self.customer_repo.exists(customer_id):
            raise NotFound("Customer", customer_id)

        now = timezone.now()
        invoice = Invoice(
            customer_id=customer_id,
            invoice_date=invoice_date or now,
            notes=notes or "",
            created_by=actor,
        )

        if order_id is not None:
            # Lock the order so two requests cannot both invoice it
            order = self.order_repo.get_by_id(order_id, for_update=True)
            if order is None:
                raise NotFound("Order", order_id)
            if self.invoice_repo.exists_for_order(order_id):
                raise Conflict(f"Invoice already exists for order {order.order_number}")
            if order.customer_id != customer_id:
                raise ValidationError(f"Order {order.order_number} belongs to another customer")
            if order.status == OrderStatus.CANCELLED:
                raise InvalidState(f"Cannot invoice cancelled order {order.order_number}")
            invoice.order_id = order.id
            invoice.set_amounts(
                order.subtotal,
                order.tax_amount,
                order.discount_amount,
                order.total_amount,
            )
        else:
            amounts = amounts or {}
            invoice.set_amounts(
                amounts.get("subtotal", ZERO),
                amounts.get("tax_amount", ZERO),
                amounts.get("discount_amount", ZERO),
                amounts.get("total_amount"),
            )

        if due_date is None:
            due_days = get_setting("INVOICE_DUE_DAYS")
            if due_days is not None:
                due_date = invoice.invoice_date + timedelta(days=due_days)
        invoice.due_date = due_date

        invoice.invoice_number = generate_number(
            INVOICE_PREFIX, self.invoice_repo.exists_by_invoice_number, now=now
        )
        invoice.derive_status()
        self.invoice_repo.save(invoice)
        self._sync_order(invoice)

        self._emit(InvoiceCreated(
            event_id=uuid4(),
            aggregate_id=invoice.id,
            event_type="InvoiceCreated",
            invoice_number=invoice.invoice_number,
            customer_id=customer_id,
            total_amount=invoice.total_amount,
            order_id=invoice.order_id,
            actor=actor,
        ))
        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "order_id": str(invoice.order_id) if invoice.order_id else None,
                "user_id": actor,
                "total_amount": str(invoice.total_amount),
            },
        )
        return invoice

    @transaction.atomic
    def update_invoice(self, invoice_id: UUID, patch: dict, actor: str | None = None) -> Invoice:
        """
        Partially update an invoice that is not paid, cancelled or refunded.

        Amounts of a standalone invoice come from the patch (total recomputed
        unless given). An order-linked invoice ignores amount keys and re-reads
        the order's current totals instead.
        """
        invoice = self._get_for_update(invoice_id)
        invoice.ensure_editable()
        previous_status = invoice.status

        if "due_date" in patch:
            invoice.due_date = patch["due_date"]
        if "notes" in patch:
            invoice.notes = patch["notes"] or ""

        if invoice.is_order_linked:
            order = self.order_repo.get_by_id(invoice.order_id)
            invoice.set_amounts(
                order.subtotal,
                order.tax_amount,
                order.discount_amount,
                order.total_amount,
            )
            if any(field in patch for field in AMOUNT_FIELDS):
                logger.info(
                    "invoice_amount_patch_ignored",
                    extra={"invoice_id": str(invoice.id), "user_id": actor},
                )
        elif any(patch.get(field) is not None for field in AMOUNT_FIELDS):
            invoice.set_amounts(
                self._pick(patch, "subtotal", invoice.subtotal),
                self._pick(patch, "tax_amount", invoice.tax_amount),
                self._pick(patch, "discount_amount", invoice.discount_amount),
                patch.get("total_amount"),
            )

        invoice.derive_status()
        self.invoice_repo.save(invoice)
        self._sync_order(invoice)
        self._emit_updated(invoice, previous_status)
        logger.info(
            "invoice_updated",
            extra={
                "invoice_id": str(invoice.id),
                "user_id": actor,
                "status": invoice.status.value,
            },
        )
        return invoice

    @transaction.atomic
    def record_payment(self, invoice_id: UUID, delta: Decimal) -> Invoice:
        """
        Apply a signed payment delta and re-derive amount due and status.

        The only entry point the payment ledger uses; negative deltas reverse
        removed or adjusted payments.
        """
        with invoice_lock(invoice_id):
            invoice = self._get_for_update(invoice_id)
            previous_status = invoice.status
            invoice.apply_payment(delta)
            self.invoice_repo.save(invoice)
            self._sync_order(invoice)
            self._emit_updated(invoice, previous_status)

        logger.info(
            "invoice_payment_recorded",
            extra={
                "invoice_id": str(invoice.id),
                "amount": str(delta),
                "amount_due": str(invoice.amount_due),
                "status": invoice.status.value,
            },
        )
        return invoice

    @transaction.atomic
    def cancel_invoice(self, invoice_id: UUID, actor: str | None = None) -> Invoice:
        """Cancel an unpaid invoice; cancelling twice changes nothing."""
        invoice = self._get_for_update(invoice_id)
        if not invoice.cancel():
            return invoice

        self.invoice_repo.save(invoice)
        self._emit(InvoiceCancelled(
            event_id=uuid4(),
            aggregate_id=invoice.id,
            event_type="InvoiceCancelled",
            customer_id=invoice.customer_id,
            actor=actor,
        ))
        logger.info(
            "invoice_cancelled",
            extra={"invoice_id": str(invoice.id), "user_id": actor},
        )
        return invoice

    @transaction.atomic
    def mark_sent(self, invoice_id: UUID, actor: str | None = None) -> Invoice:
        """Administrative transition PENDING -> SENT."""
        invoice = self._get_for_update(invoice_id)
        previous_status = invoice.status
        invoice.mark_sent(timezone.now())
        self.invoice_repo.save(invoice)
        self._emit_updated(invoice, previous_status)
        logger.info(
            "invoice_sent",
            extra={"invoice_id": str(invoice.id), "user_id": actor},
        )
        return invoice

    @transaction.atomic
    def mark_overdue(self, now: datetime | None = None) -> int:
        """Flag every unsettled invoice past its due date as OVERDUE."""
        now = now or timezone.now()
        flagged = 0
        for invoice in self.invoice_repo.find_overdue(now, for_update=True):
            previous_status = invoice.status
            if not invoice.mark_overdue(now):
                continue
            self.invoice_repo.save(invoice)
            self._emit_updated(invoice, previous_status)
            flagged += 1

        logger.info("invoices_marked_overdue", extra={"count": flagged})
        return flagged

    @transaction.atomic
    def refund_invoice(self, invoice_id: UUID, actor: str | None = None) -> Invoice:
        """Administrative transition PAID / PARTIALLY_PAID -> REFUNDED."""
        invoice = self._get_for_update(invoice_id)
        previous_status = invoice.status
        invoice.refund()
        self.invoice_repo.save(invoice)
        self._sync_order(invoice)
        self._emit_updated(invoice, previous_status)
        logger.info(
            "invoice_refunded",
            extra={
                "invoice_id": str(invoice.id),
                "user_id": actor,
                "amount": str(invoice.amount_paid),
            },
        )
        return invoice

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if invoice is None:
            raise NotFound("Invoice", invoice_id)
        return invoice

    def get_invoice_for_order(self, order_id: UUID) -> Invoice:
        if not self.order_repo.exists(order_id):
            raise NotFound("Order", order_id)
        invoice = self.invoice_repo.get_by_order_id(order_id)
        if invoice is None:
            raise NotFound("Invoice for order", order_id)
        return invoice

    def list_invoices(
        self,
        customer_id: UUID | None = None,
        status: InvoiceStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Invoice]:
        if customer_id is not None and not self.customer_repo.exists(customer_id):
            raise NotFound("Customer", customer_id)
        return self.invoice_repo.list(customer_id=customer_id, status=status, limit=limit, offset=offset)

    def overdue_invoices(self, now: datetime | None = None) -> list[Invoice]:
        """Unsettled invoices whose due date has passed."""
        return self.invoice_repo.find_overdue(now or timezone.now())

    def _get_for_update(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id, for_update=True)
        if invoice is None:
            raise NotFound("Invoice", invoice_id)
        return invoice

    def _sync_order(self, invoice: Invoice) -> None:
        """Mirror the invoice outcome onto the linked order's payment status."""
        if not invoice.is_order_linked:
            return
        payment_status = _ORDER_PAYMENT_STATUS.get(invoice.status)
        if payment_status is not None:
            self.order_repo.set_payment_status(invoice.order_id, payment_status)

    def _emit_updated(self, invoice: Invoice, previous_status: InvoiceStatus) -> None:
        self._emit(InvoiceUpdated(
            event_id=uuid4(),
            aggregate_id=invoice.id,
            event_type="InvoiceUpdated",
            customer_id=invoice.customer_id,
            previous_status=previous_status.value,
            status=invoice.status.value,
            total_amount=invoice.total_amount,
            amount_paid=invoice.amount_paid,
        ))

    def _emit(self, event) -> None:
        self.outbox_repo.add_event(event, AggregateType.INVOICE)

    @staticmethod
    def _pick(patch: dict, field: str, current: Decimal) -> Decimal:
        value = patch.get(field)
        return current if value is None else value
