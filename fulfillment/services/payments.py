"""
Payment ledger: every payment mutation pushes a compensating delta into the
invoice engine so amount paid always equals the sum of recorded payments.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from django.db import transaction
from django.utils import timezone

from fulfillment.domain.errors import NotFound
from fulfillment.domain.events import AggregateType, PaymentDeleted, PaymentRecorded, PaymentUpdated
from fulfillment.domain.payment import Payment, PaymentMethod
from fulfillment.infra.outbox import OutboxRepository
from fulfillment.infra.repositories import InvoiceRepository, PaymentRepository
from fulfillment.services.invoices import InvoiceService


logger = logging.getLogger(__name__)

DETAIL_FIELDS = ("payment_date", "reference_number", "notes")


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        payment_repo: PaymentRepository | None = None,
        invoice_repo: InvoiceRepository | None = None,
        invoice_service: InvoiceService | None = None,
        outbox_repo: OutboxRepository | None = None,
    ):
        self.payment_repo = payment_repo or PaymentRepository()
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.invoice_service = invoice_service or InvoiceService(invoice_repo=self.invoice_repo)
        self.outbox_repo = outbox_repo or OutboxRepository()

    @transaction.atomic
    def create_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_method: PaymentMethod,
        payment_date: datetime | None = None,
        reference_number: str = "",
        notes: str = "",
        actor: str | None = None,
    ) -> Payment:
        """Record a payment and apply it to its invoice."""
        self._lock_open_invoices(invoice_id)

        payment = Payment(
            invoice_id=invoice_id,
            amount=amount,
            payment_method=payment_method,
            payment_date=payment_date or timezone.now(),
            reference_number=reference_number or "",
            notes=notes or "",
            created_by=actor,
        )
        self.payment_repo.save(payment)
        self.invoice_service.record_payment(invoice_id, payment.amount)

        self._emit(PaymentRecorded(
            event_id=uuid4(),
            aggregate_id=payment.id,
            event_type="PaymentRecorded",
            invoice_id=invoice_id,
            amount=payment.amount,
            payment_method=payment.payment_method.value,
            actor=actor,
        ))
        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(invoice_id),
                "user_id": actor,
                "amount": str(payment.amount),
            },
        )
        return payment

    @transaction.atomic
    def update_payment(self, payment_id: UUID, patch: dict, actor: str | None = None) -> Payment:
        """
        Partially update a payment.

        Moving to another invoice reverses the old amount on the old invoice
        and applies the (possibly new) amount on the new one. An amount change
        on the same invoice reverses the old amount and then applies the new
        one, as two separate deltas.
        """
        payment = self._get_for_update(payment_id)
        old_invoice_id = payment.invoice_id
        new_invoice_id = patch.get("invoice_id") or old_invoice_id
        if not isinstance(new_invoice_id, UUID):
            new_invoice_id = UUID(str(new_invoice_id))
        self._lock_open_invoices(old_invoice_id, new_invoice_id)

        previous_amount = payment.amount
        if patch.get("amount") is not None:
            payment.change_amount(patch["amount"])

        if new_invoice_id != old_invoice_id:
            self.invoice_service.record_payment(old_invoice_id, -previous_amount)
            payment.invoice_id = new_invoice_id
            self.invoice_service.record_payment(new_invoice_id, payment.amount)
        elif payment.amount != previous_amount:
            self.invoice_service.record_payment(old_invoice_id, -previous_amount)
            self.invoice_service.record_payment(old_invoice_id, payment.amount)

        if patch.get("payment_method") is not None:
            payment.payment_method = PaymentMethod(patch["payment_method"])
        for field in DETAIL_FIELDS:
            if patch.get(field) is not None:
                setattr(payment, field, patch[field])

        self.payment_repo.save(payment)

        self._emit(PaymentUpdated(
            event_id=uuid4(),
            aggregate_id=payment.id,
            event_type="PaymentUpdated",
            invoice_id=payment.invoice_id,
            previous_invoice_id=old_invoice_id,
            amount=payment.amount,
            previous_amount=previous_amount,
            actor=actor,
        ))
        logger.info(
            "payment_updated",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id),
                "user_id": actor,
                "amount": str(payment.amount),
            },
        )
        return payment

    @transaction.atomic
    def delete_payment(self, payment_id: UUID, actor: str | None = None) -> None:
        """Reverse a payment on its invoice, then remove it."""
        payment = self._get_for_update(payment_id)
        self._lock_open_invoices(payment.invoice_id)

        self.invoice_service.record_payment(payment.invoice_id, -payment.amount)
        self.payment_repo.delete(payment.id)

        self._emit(PaymentDeleted(
            event_id=uuid4(),
            aggregate_id=payment.id,
            event_type="PaymentDeleted",
            invoice_id=payment.invoice_id,
            amount=payment.amount,
            actor=actor,
        ))
        logger.info(
            "payment_deleted",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id),
                "user_id": actor,
                "amount": str(payment.amount),
            },
        )

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self.payment_repo.get_by_id(payment_id)
        if payment is None:
            raise NotFound("Payment", payment_id)
        return payment

    def payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        if self.invoice_repo.get_by_id(invoice_id) is None:
            raise NotFound("Invoice", invoice_id)
        return self.payment_repo.for_invoice(invoice_id)

    def _get_for_update(self, payment_id: UUID) -> Payment:
        payment = self.payment_repo.get_by_id(payment_id, for_update=True)
        if payment is None:
            raise NotFound("Payment", payment_id)
        return payment

    def _lock_open_invoices(self, *invoice_ids: UUID) -> None:
        """Lock the invoices in id order and check they still take payments."""
        for invoice_id in sorted(set(invoice_ids), key=str):
            invoice = self.invoice_repo.get_by_id(invoice_id, for_update=True)
            if invoice is None:
                raise NotFound("Invoice", invoice_id)
            invoice.ensure_accepts_payments()

    def _emit(self, event) -> None:
        self.outbox_repo.add_event(event, AggregateType.PAYMENT)
