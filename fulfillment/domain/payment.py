"""
Domain model for Payment.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from fulfillment.domain.errors import ensure_positive
from fulfillment.domain.money import to_money


class PaymentMethod(str, Enum):
    """Payment method enumeration."""
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"


class Payment:
    """A money receipt applied against one invoice."""

    def __init__(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_method: PaymentMethod,
        id: UUID | None = None,
        payment_date: datetime | None = None,
        reference_number: str = "",
        notes: str = "",
        created_by: str | None = None,
    ):
        self.id = id or uuid4()
        self.invoice_id = invoice_id
        self.amount = to_money(amount)
        ensure_positive(self.amount, "Payment amount")
        self.payment_method = PaymentMethod(payment_method)
        self.payment_date = payment_date
        self.reference_number = reference_number
        self.notes = notes
        self.created_by = created_by

    def change_amount(self, amount: Decimal) -> Decimal:
        """Set a new amount, returning the previous one."""
        amount = to_money(amount)
        ensure_positive(amount, "Payment amount")
        previous, self.amount = self.amount, amount
        return previous
