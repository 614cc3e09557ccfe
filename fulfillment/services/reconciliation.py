"""
Reconciliation: audits stored invoice and order figures against the records
they are derived from.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from django.db.models import Sum

from fulfillment.domain.errors import NotFound
from fulfillment.domain.invoice import Invoice, InvoiceStatus
from fulfillment.domain.money import ZERO, to_money
from fulfillment.domain.order import OrderItem
from fulfillment.infra.models import InvoiceORM, OrderORM
from fulfillment.infra.repositories import InvoiceRepository, OrderRepository, PaymentRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Discrepancy:
    """One stored figure that disagrees with what it should be derived from."""
    entity: str
    entity_id: UUID
    number: str
    check: str
    expected: str
    actual: str


class ReconciliationService:
    """Verifies the cross-entity money and stock invariants."""

    def __init__(
        self,
        invoice_repo: InvoiceRepository | None = None,
        order_repo: OrderRepository | None = None,
        payment_repo: PaymentRepository | None = None,
    ):
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.order_repo = order_repo or OrderRepository()
        self.payment_repo = payment_repo or PaymentRepository()

    def verify_invoice(self, invoice_id: UUID) -> list[Discrepancy]:
        invoice_orm = InvoiceORM.objects.select_related("order").filter(id=invoice_id).first()
        if invoice_orm is None:
            raise NotFound("Invoice", invoice_id)

        found = []

        def check(name, expected, actual):
            if expected != actual:
                found.append(Discrepancy(
                    entity="Invoice",
                    entity_id=invoice_orm.id,
                    number=invoice_orm.invoice_number,
                    check=name,
                    expected=str(expected),
                    actual=str(actual),
                ))

        paid = self.payment_repo.total_for_invoice(invoice_orm.id)
        check("amount_paid", paid, to_money(invoice_orm.amount_paid))
        check(
            "amount_due",
            to_money(invoice_orm.total_amount - invoice_orm.amount_paid),
            to_money(invoice_orm.amount_due),
        )

        derived = Invoice(
            status=InvoiceStatus(invoice_orm.status),
            subtotal=invoice_orm.subtotal,
            tax_amount=invoice_orm.tax_amount,
            discount_amount=invoice_orm.discount_amount,
            total_amount=invoice_orm.total_amount,
            amount_paid=invoice_orm.amount_paid,
            sent_at=invoice_orm.sent_at,
        ).derive_status()
        check("status", derived.value, invoice_orm.status)

        if invoice_orm.order is not None:
            check(
                "order_total",
                to_money(invoice_orm.order.total_amount),
                to_money(invoice_orm.total_amount),
            )
        return found

    def verify_order(self, order_id: UUID) -> list[Discrepancy]:
        order_orm = OrderORM.objects.prefetch_related("items").filter(id=order_id).first()
        if order_orm is None:
            raise NotFound("Order", order_id)

        found = []

        def check(name, expected, actual):
            if expected != actual:
                found.append(Discrepancy(
                    entity="Order",
                    entity_id=order_orm.id,
                    number=order_orm.order_number,
                    check=name,
                    expected=str(expected),
                    actual=str(actual),
                ))

        for item_orm in order_orm.items.all():
            recomputed = OrderItem(
                product_id=item_orm.product_id,
                quantity=item_orm.quantity,
                unit_price=item_orm.unit_price,
                discount_percent=item_orm.discount_percent,
                tax_percent=item_orm.tax_percent,
            ).total
            check(f"item_total[{item_orm.position}]", recomputed, to_money(item_orm.total))

        items_sum = order_orm.items.aggregate(total=Sum("total"))["total"]
        check("subtotal", to_money(items_sum) if items_sum is not None else ZERO, to_money(order_orm.subtotal))
        check(
            "total_amount",
            to_money(
                order_orm.subtotal
                + order_orm.tax_amount
                + order_orm.shipping_cost
                - order_orm.discount_amount
            ),
            to_money(order_orm.total_amount),
        )
        return found

    def audit(self) -> list[Discrepancy]:
        """Run every check over all invoices and orders."""
        found = []
        for invoice_id in self.invoice_repo.all_ids():
            found.extend(self.verify_invoice(invoice_id))
        for order_id in self.order_repo.all_ids():
            found.extend(self.verify_order(order_id))

        for discrepancy in found:
            logger.warning(
                "reconciliation_discrepancy",
                extra={
                    "entity": discrepancy.entity,
                    "entity_id": str(discrepancy.entity_id),
                    "number": discrepancy.number,
                    "check": discrepancy.check,
                    "expected": discrepancy.expected,
                    "actual": discrepancy.actual,
                },
            )
        logger.info("reconciliation_audit_finished", extra={"count": len(found)})
        return found
