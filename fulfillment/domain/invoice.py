"""
Domain model for Invoice aggregate.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from fulfillment.domain.errors import InvalidState, ensure_non_negative
from fulfillment.domain.money import ZERO, to_money


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    PENDING = "PENDING"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


# Statuses that block payments and edits.
CLOSED_STATUSES = frozenset({InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED})
# Statuses the derivation rule sets from amount_paid.
PAYMENT_DERIVED_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID})
# Excluded from the overdue sweep.
SETTLED_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED})


class Invoice:
    """Invoice aggregate root."""

    def __init__(
        self,
        id: UUID | None = None,
        invoice_number: str = "",
        customer_id: UUID | None = None,
        order_id: UUID | None = None,
        status: InvoiceStatus = InvoiceStatus.PENDING,
        subtotal: Decimal = ZERO,
        tax_amount: Decimal = ZERO,
        discount_amount: Decimal = ZERO,
        total_amount: Decimal | None = None,
        amount_paid: Decimal = ZERO,
        invoice_date: datetime | None = None,
        due_date: datetime | None = None,
        sent_at: datetime | None = None,
        notes: str = "",
        created_by: str | None = None,
    ):
        self.id = id or uuid4()
        self.invoice_number = invoice_number
        self.customer_id = customer_id
        self.order_id = order_id
        self._status = status
        self.invoice_date = invoice_date
        self.due_date = due_date
        self.sent_at = sent_at
        self.notes = notes
        self.created_by = created_by
        self._amount_paid = to_money(amount_paid)
        self.set_amounts(subtotal, tax_amount, discount_amount, total_amount)

    @property
    def status(self) -> InvoiceStatus:
        return self._status

    @property
    def amount_paid(self) -> Decimal:
        return self._amount_paid

    @property
    def amount_due(self) -> Decimal:
        return to_money(self.total_amount - self._amount_paid)

    @property
    def is_order_linked(self) -> bool:
        return self.order_id is not None

    def set_amounts(
        self,
        subtotal: Decimal,
        tax_amount: Decimal,
        discount_amount: Decimal,
        total_amount: Decimal | None = None,
    ) -> None:
        """Set the charge breakdown; total defaults to subtotal + tax - discount."""
        self.subtotal = to_money(subtotal)
        self.tax_amount = to_money(tax_amount)
        self.discount_amount = to_money(discount_amount)
        if total_amount is None:
            total_amount = self.subtotal + self.tax_amount - self.discount_amount
        self.total_amount = to_money(total_amount)
        ensure_non_negative(self.subtotal, "Subtotal")
        ensure_non_negative(self.total_amount, "Total amount")

    def ensure_accepts_payments(self) -> None:
        if self._status in CLOSED_STATUSES:
            raise InvalidState(
                f"Cannot record payment for {self._status.value.lower()} invoice {self.invoice_number or self.id}"
            )

    def ensure_editable(self) -> None:
        if self._status in CLOSED_STATUSES or self._status == InvoiceStatus.PAID:
            raise InvalidState(
                f"Cannot update {self._status.value.lower()} invoice {self.invoice_number or self.id}"
            )

    def apply_payment(self, delta: Decimal) -> None:
        """Add a signed payment delta and re-derive the status."""
        self.ensure_accepts_payments()
        self._amount_paid = to_money(self._amount_paid + to_money(delta))
        self.derive_status()

    def derive_status(self) -> InvoiceStatus:
        """
        Re-derive status from the paid amount.

        CANCELLED and REFUNDED are never touched. OVERDUE is kept while money is
        still owed. Fully covered invoices become PAID, partially covered ones
        PARTIALLY_PAID. When payments are reversed down to zero, a
        payment-derived status falls back to the state the invoice was issued
        in (SENT once it has been sent, else PENDING).
        """
        if self._status in CLOSED_STATUSES:
            return self._status
        if self.amount_due <= ZERO:
            self._status = InvoiceStatus.PAID
        elif self._status == InvoiceStatus.OVERDUE:
            return self._status
        elif self._amount_paid > ZERO:
            self._status = InvoiceStatus.PARTIALLY_PAID
        elif self._status in PAYMENT_DERIVED_STATUSES:
            self._status = InvoiceStatus.SENT if self.sent_at else InvoiceStatus.PENDING
        return self._status

    def mark_sent(self, now: datetime) -> None:
        if self._status != InvoiceStatus.PENDING:
            raise InvalidState(f"Only pending invoices can be sent, invoice is {self._status.value}")
        self._status = InvoiceStatus.SENT
        self.sent_at = now

    def mark_overdue(self, now: datetime) -> bool:
        """Flag as overdue when past due and unsettled. Returns True if changed."""
        if self._status in SETTLED_STATUSES or self._status == InvoiceStatus.OVERDUE:
            return False
        if self.due_date is None or self.due_date >= now:
            return False
        self._status = InvoiceStatus.OVERDUE
        return True

    def refund(self) -> None:
        if self._status not in PAYMENT_DERIVED_STATUSES:
            raise InvalidState(
                f"Only paid or partially paid invoices can be refunded, invoice is {self._status.value}"
            )
        self._status = InvoiceStatus.REFUNDED

    def cancel(self) -> bool:
        """Cancel the invoice. Returns False when it was already cancelled."""
        if self._status == InvoiceStatus.CANCELLED:
            return False
        if self._status == InvoiceStatus.PAID:
            raise InvalidState("Cannot cancel fully paid invoices")
        if self._status == InvoiceStatus.REFUNDED:
            raise InvalidState("Cannot cancel refunded invoices")
        self._status = InvoiceStatus.CANCELLED
        return True
